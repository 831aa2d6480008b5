"""Pytest configuration and fixtures for parley_client tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from parley_client.dispatcher import NullDispatcher
from parley_client.ws_client import ParleyWsMessage, ParleyWsMessageType


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    return MagicMock(spec=aiohttp.ClientSession)


@pytest.fixture
def dispatcher() -> MagicMock:
    """Create a mock Dispatcher recording every notification."""
    return MagicMock(spec=NullDispatcher)


def create_mock_response(
    status: int = 200,
    json_data: Any = None,
    text_data: str | None = None,
) -> AsyncMock:
    """Create a configured mock response.

    Args:
        status: HTTP status code
        json_data: Data to return from json() call
        text_data: Data to return from text() call

    Returns:
        Configured AsyncMock response
    """
    response = AsyncMock()
    response.status = status

    if json_data is not None:
        response.json.return_value = json_data
    if text_data is not None:
        response.text.return_value = text_data

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response


async def _iterate_chunks(chunks: list[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


def create_stream_response(chunks: list[bytes], status: int = 200) -> AsyncMock:
    """Create a mock response whose body arrives as ``chunks``."""
    response = create_mock_response(status=status)
    response.content = MagicMock()
    response.content.iter_any.return_value = _iterate_chunks(chunks)
    return response


def connection_refused() -> aiohttp.ClientConnectorError:
    """Build the error aiohttp raises when the server refuses a connection."""
    return aiohttp.ClientConnectorError(
        MagicMock(), ConnectionRefusedError(111, "Connection refused")
    )


class FakeWsClient:
    """In-memory stand-in for ParleyWsClient."""

    def __init__(self, *, connect_error: Exception | None = None) -> None:
        self.connect_error = connect_error
        self.send_error: Exception | None = None
        self.connect_calls: list[dict[str, Any]] = []
        self.sent: list[str] = []
        self.closed = False
        self._inbox: asyncio.Queue[ParleyWsMessage] = asyncio.Queue()

    async def connect(
        self,
        url: str,
        *,
        token: str | None = None,
        ping_interval: int = 20,
        timeout: float = 5.0,
    ) -> None:
        self.connect_calls.append({"url": url, "token": token, "timeout": timeout})
        if self.connect_error is not None:
            raise self.connect_error

    async def send_text(self, text: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(text)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.drop()

    def feed(self, frame: dict[str, Any]) -> None:
        self._inbox.put_nowait(
            ParleyWsMessage(ParleyWsMessageType.TEXT, json.dumps(frame))
        )

    def drop(self) -> None:
        self._inbox.put_nowait(ParleyWsMessage(ParleyWsMessageType.CLOSED))

    def __aiter__(self) -> AsyncIterator[ParleyWsMessage]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ParleyWsMessage]:
        while True:
            msg = await self._inbox.get()
            yield msg
            if msg.type is not ParleyWsMessageType.TEXT:
                return


class FakeWsFactory:
    """Hands out queued FakeWsClients, then fresh healthy ones."""

    def __init__(self, *clients: FakeWsClient) -> None:
        self._queued = list(clients)
        self.created: list[FakeWsClient] = []

    def __call__(self) -> FakeWsClient:
        client = self._queued.pop(0) if self._queued else FakeWsClient()
        self.created.append(client)
        return client


class FakeClock:
    """Epoch-milliseconds clock moved by hand."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until ``predicate`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not reached in time")
        await asyncio.sleep(0.001)
