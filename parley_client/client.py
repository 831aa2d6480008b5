"""Facade wiring the request client and the real-time session together."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import aiohttp

from .auth import AuthStore
from .config import ParleyConfig
from .dispatcher import Dispatcher, NullDispatcher
from .http import AuthenticatedRequestClient
from .session import RealtimeSession

_LOGGER = logging.getLogger(__name__)


class ParleyClient:
    """One HTTP session, one request client and one real-time session.

    Both halves share the same AuthStore and Dispatcher; the real-time
    session takes its handshake credential from the request client, so an
    expired token is refreshed before every connect attempt.

    Example::

        async with ParleyClient(store, dispatcher) as client:
            await client.requests.get_your_chats()
            await client.submit({"method": "sendMessage", "text": "hello"})
    """

    def __init__(
        self,
        auth_store: AuthStore,
        dispatcher: Dispatcher | None = None,
        *,
        config: ParleyConfig | None = None,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.config = config or ParleyConfig()
        self._auth_store = auth_store
        self._dispatcher = dispatcher or NullDispatcher()
        self._http_session = http_session
        self._owns_http_session = http_session is None
        self._requests: AuthenticatedRequestClient | None = None
        self._session: RealtimeSession | None = None

    @property
    def requests(self) -> AuthenticatedRequestClient:
        if self._requests is None:
            raise RuntimeError("Client is not started")
        return self._requests

    @property
    def session(self) -> RealtimeSession:
        if self._session is None:
            raise RuntimeError("Client is not started")
        return self._session

    async def start(self) -> None:
        """Open the HTTP session and start the real-time connection."""
        if self._session is not None:
            return
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()

        self._requests = AuthenticatedRequestClient(
            self._http_session,
            self.config.base_url,
            self._auth_store,
            self._dispatcher,
            retry_delay=self.config.retry_delay,
        )
        self._session = RealtimeSession(
            self.config.websocket_url,
            self._requests,
            self._dispatcher,
            connect_timeout=self.config.connect_timeout,
            flush_interval=self.config.flush_interval,
            resend_grace=self.config.resend_grace,
            ping_interval=self.config.ping_interval,
        )
        _LOGGER.info("Starting Parley client for %s", self.config.base_url)
        await self._session.connect()

    async def close(self) -> None:
        """Close the real-time session and, if owned, the HTTP session."""
        if self._session is not None:
            await self._session.close()
            self._session = None
        self._requests = None
        if self._owns_http_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    async def submit(self, payload: Mapping[str, Any]) -> str:
        """Queue a real-time frame; see RealtimeSession.submit."""
        return await self.session.submit(payload)

    async def __aenter__(self) -> ParleyClient:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
