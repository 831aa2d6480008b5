"""WebSocket client wrapper for the Parley real-time channel."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, WebSocketException

from .errors import ParleyClientError, ParleyConnectionError
from .ws import connect_websocket

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class ParleyWsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class ParleyWsMessage:
    """Normalized WebSocket message payload."""

    type: ParleyWsMessageType
    data: str | None = None


class ParleyWsClient:
    """Wrapper around the websockets library for the Parley server."""

    def __init__(self) -> None:
        self._ws: ClientConnection | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(
        self,
        url: str,
        *,
        token: str | None = None,
        ping_interval: int = 20,
        timeout: float = 5.0,
    ) -> None:
        """Connect to the real-time endpoint."""
        self._ws = await connect_websocket(
            url,
            token=token,
            ping_interval=ping_interval,
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close the websocket connection."""
        if self._ws is not None:
            await self._ws.close()

    async def send_text(self, text: str) -> None:
        """Send a UTF-8 text frame.

        Raises:
            ParleyConnectionError: If not connected or the socket is gone
        """
        if self._ws is None:
            raise ParleyConnectionError("WebSocket is not connected")
        try:
            await self._ws.send(text)
        except WebSocketException as err:
            raise ParleyConnectionError("WebSocket send failed") from err

    async def send_json(self, payload: dict[str, Any]) -> None:
        """Send a JSON payload to the websocket."""
        await self.send_text(json.dumps(payload))

    def __aiter__(self) -> AsyncIterator[ParleyWsMessage]:
        if self._ws is None:
            raise ParleyConnectionError("WebSocket is not connected")
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[ParleyWsMessage]:
        if self._ws is None:
            raise ParleyConnectionError("WebSocket is not connected")

        try:
            async for msg in self._ws:
                normalized = self._normalize_message(msg)
                if normalized is None:
                    continue
                yield normalized
        except ConnectionClosed:
            yield ParleyWsMessage(type=ParleyWsMessageType.CLOSED)
        except Exception:
            yield ParleyWsMessage(type=ParleyWsMessageType.ERROR)
        else:
            # Normal iteration completion means the peer closed gracefully.
            yield ParleyWsMessage(type=ParleyWsMessageType.CLOSED)

    @staticmethod
    def _normalize_message(msg: Any) -> ParleyWsMessage | None:
        """Normalize raw frames; binary frames are not part of the protocol."""
        if isinstance(msg, (bytes, bytearray, memoryview)):
            return None
        if isinstance(msg, str):
            return ParleyWsMessage(ParleyWsMessageType.TEXT, msg)
        return ParleyWsMessage(ParleyWsMessageType.TEXT, str(msg))

    @staticmethod
    def decode_json(message: ParleyWsMessage) -> dict[str, Any]:
        """Decode a TEXT message payload into a JSON object."""
        if message.type is not ParleyWsMessageType.TEXT:
            raise ParleyClientError("Only TEXT messages can be decoded")
        if not isinstance(message.data, str):
            raise ParleyClientError("Message data is not a string")
        result = json.loads(message.data)
        if not isinstance(result, dict):
            raise ParleyClientError("Frame is not a JSON object")
        return result
