"""Handshake for the authenticated real-time chat socket."""

from __future__ import annotations

import asyncio

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from .errors import (
    ParleyConnectionError,
    ParleyHandshakeError,
    ParleyTimeout,
)


async def connect_websocket(
    url: str,
    *,
    token: str | None = None,
    ping_interval: int | None = 20,
    timeout: float = 5.0,
) -> ClientConnection:
    """Open the real-time link to the chat server.

    The server authenticates the upgrade request itself, so the access token
    travels in the ``Authorization`` header of the handshake. Without a token
    the handshake is attempted anonymously and the server decides.

    The whole attempt (TCP, TLS and upgrade) runs under one watchdog. When
    it fires the half-open attempt is cancelled and ``ParleyTimeout`` is
    raised, which callers treat as "start a new attempt now" rather than as
    a failure to wait out.
    """
    headers = _handshake_headers(token)
    try:
        return await asyncio.wait_for(
            websockets.connect(
                url,
                additional_headers=headers,
                ping_interval=ping_interval,
                close_timeout=5,
                max_size=None,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise ParleyTimeout("WebSocket connection timed out") from err
    except (InvalidHandshake, InvalidURI) as err:
        raise ParleyHandshakeError("WebSocket handshake failed") from err
    except (OSError, WebSocketException) as err:
        raise ParleyConnectionError("WebSocket connection failed") from err


def _handshake_headers(token: str | None) -> dict[str, str] | None:
    if not token:
        return None
    return {"Authorization": f"Bearer {token}"}
