"""Real-time session manager for the Parley server.

This module owns the persistent WebSocket connection. It handles:
- The reconnect state machine (disconnected, connecting, connected)
- The connect-attempt watchdog
- At-least-once delivery of outbound frames through the outbox
- Acknowledgment filtering and routing of inbound frames

The session never gives up: connect failures are retried for as long as the
session is open. Outbound frames stay in the outbox until the server
acknowledges their ``tempId``, and every tick of the flush timer resends the
ones older than the grace period. The server is expected to deduplicate by
``tempId``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from .dispatcher import Dispatcher, notify
from .errors import ParleyClientError, ParleyTimeout, ParleyUnauthorizedError
from .models import ConnectionState, PendingMessage
from .outbox import Outbox
from .protocol import (
    acknowledged_id,
    build_outbound_frame,
    encode_frame,
    is_acknowledgment,
    new_correlation_id,
    now_ms,
)
from .ws_client import ParleyWsClient, ParleyWsMessage, ParleyWsMessageType

_LOGGER = logging.getLogger(__name__)


class TokenSource(Protocol):
    """Supplies a fresh access token for the WebSocket handshake."""

    async def authorization_token(self, *, notify_unauthorized: bool = True) -> str: ...


class RealtimeSession:
    """Auto-reconnecting real-time session with an acknowledged outbox.

    Usage:
        session = RealtimeSession(url, requests, dispatcher)
        await session.connect()
        temp_id = await session.submit({"method": "sendMessage", "text": "hi"})
        await session.close()
    """

    def __init__(
        self,
        url: str,
        auth: TokenSource | None,
        dispatcher: Dispatcher,
        *,
        connect_timeout: float = 5.0,
        flush_interval: float = 10.0,
        resend_grace: float = 10.0,
        ping_interval: int = 20,
        clock: Callable[[], int] = now_ms,
        ws_client_factory: Callable[[], ParleyWsClient] = ParleyWsClient,
    ) -> None:
        """Initialize session.

        Args:
            url: WebSocket endpoint URL
            auth: Token source used before every connect attempt
            dispatcher: Receives inbound frames and state changes
            connect_timeout: Connect-attempt watchdog (seconds)
            flush_interval: Outbox resend period (seconds)
            resend_grace: Minimum age before a pending frame is resent (seconds)
            ping_interval: Keepalive ping interval (seconds)
            clock: Epoch-milliseconds clock
            ws_client_factory: Builds a fresh transport per connect attempt
        """
        self.url = url
        self._auth = auth
        self._dispatcher = dispatcher

        self._connect_timeout = connect_timeout
        self._flush_interval = flush_interval
        self._resend_grace_ms = int(resend_grace * 1000)
        self._ping_interval = ping_interval
        self._clock = clock
        self._ws_client_factory = ws_client_factory

        # Connection state
        self._ws: ParleyWsClient | None = None
        self._connection_state = ConnectionState.DISCONNECTED
        self._run_task: asyncio.Task[None] | None = None
        self._flush_task: asyncio.Task[None] | None = None
        self._attempts = 0
        self._shutdown_requested = False

        self._outbox = Outbox()

        self._connection_state_callback: Callable[[ConnectionState], None] | None = (
            None
        )

    # -------------------------------------------------------------------------
    # Public API: Connection Management
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Start the reconnect loop and the flush timer.

        Calling this while a connect attempt is outstanding does nothing.
        """
        if self._shutdown_requested:
            _LOGGER.debug("[%s] Connect ignored: session closed", self.url)
            return

        if self._run_task is None or self._run_task.done():
            self._run_task = asyncio.create_task(self._run())
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.create_task(self._flush_loop())

    async def close(self) -> None:
        """Stop reconnecting and close the socket. Pending frames are kept."""
        _LOGGER.info("[%s] Closing session", self.url)
        self._shutdown_requested = True

        for task in (self._run_task, self._flush_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as err:
                _LOGGER.exception("[%s] Task failed before close: %s", self.url, err)
        self._run_task = None
        self._flush_task = None

        await self._drop_socket()
        self._set_state(ConnectionState.DISCONNECTED)

    @property
    def connection_state(self) -> ConnectionState:
        """Get current connection state."""
        return self._connection_state

    @property
    def is_connected(self) -> bool:
        return self._connection_state is ConnectionState.CONNECTED

    @property
    def outbox(self) -> Outbox:
        return self._outbox

    def on_connection_state_changed(
        self, callback: Callable[[ConnectionState], None]
    ) -> None:
        """Register callback for connection state changes."""
        self._connection_state_callback = callback

    # -------------------------------------------------------------------------
    # Public API: Outbound Frames
    # -------------------------------------------------------------------------

    async def submit(self, payload: Mapping[str, Any]) -> str:
        """Queue a frame for delivery and send it right away if connected.

        The frame is tracked in the outbox before the send, so it survives a
        send that races a disconnect.

        Returns:
            The correlation id stamped on the frame as ``tempId``.
        """
        created_at = self._clock()
        correlation_id = new_correlation_id()
        frame = build_outbound_frame(
            payload, temp_id=correlation_id, timestamp_ms=created_at
        )
        message = PendingMessage(
            correlation_id=correlation_id,
            payload=encode_frame(frame),
            created_at=created_at,
        )
        self._outbox.append(message)

        if self.is_connected:
            await self._send(message)
        return correlation_id

    async def flush(self) -> int:
        """Resend every pending frame older than the grace period.

        Returns:
            Number of frames written to the socket.
        """
        if not self.is_connected:
            return 0

        sent = 0
        for message in self._outbox.due(self._clock(), self._resend_grace_ms):
            if not self.is_connected:
                break
            if await self._send(message):
                sent += 1
        return sent

    # -------------------------------------------------------------------------
    # Internal: Connection State Machine
    # -------------------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        """Update connection state and notify listeners."""
        if self._connection_state is state:
            return
        _LOGGER.debug(
            "[%s] State: %s -> %s",
            self.url,
            self._connection_state.value,
            state.value,
        )
        self._connection_state = state
        if self._connection_state_callback:
            try:
                self._connection_state_callback(state)
            except Exception as err:
                _LOGGER.exception("[%s] State callback error: %s", self.url, err)
        notify(self._dispatcher, "on_connection_state_changed", state)

    async def _run(self) -> None:
        """Connect, listen until the link drops, repeat."""
        try:
            while not self._shutdown_requested:
                if await self._attempt():
                    await self._listen()
        except asyncio.CancelledError:
            _LOGGER.debug("[%s] Reconnect loop cancelled", self.url)
            raise

    async def _attempt(self) -> bool:
        """Run one connect attempt.

        A watchdog timeout restarts immediately. Any other failure waits out
        the rest of the watchdog window first, so a refused connection is not
        retried in a tight loop.

        Returns:
            True if the session is now connected.
        """
        self._set_state(ConnectionState.CONNECTING)
        self._attempts += 1
        loop = asyncio.get_running_loop()
        started = loop.time()

        _LOGGER.info("[%s] Connecting (attempt #%d)", self.url, self._attempts)
        ws = self._ws_client_factory()
        try:
            token = await self._access_token()
            await ws.connect(
                self.url,
                token=token,
                ping_interval=self._ping_interval,
                timeout=self._connect_timeout,
            )
        except ParleyTimeout:
            _LOGGER.debug("[%s] Connect attempt timed out, restarting", self.url)
            return False
        except ParleyClientError as err:
            _LOGGER.warning("[%s] Connection failed: %s", self.url, err)
            await self._wait_out_window(loop.time() - started)
            return False
        except Exception as err:
            _LOGGER.exception("[%s] Unexpected connect error: %s", self.url, err)
            await self._wait_out_window(loop.time() - started)
            return False

        self._ws = ws
        self._attempts = 0
        _LOGGER.info("[%s] WebSocket connected", self.url)
        self._set_state(ConnectionState.CONNECTED)
        return True

    async def _wait_out_window(self, elapsed: float) -> None:
        remaining = self._connect_timeout - elapsed
        if remaining > 0:
            await asyncio.sleep(remaining)

    async def _access_token(self) -> str | None:
        if self._auth is None:
            return None
        try:
            return await self._auth.authorization_token(notify_unauthorized=False)
        except ParleyUnauthorizedError:
            _LOGGER.warning("[%s] No valid credential, connecting without", self.url)
            return None

    async def _drop_socket(self) -> None:
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            await asyncio.wait_for(ws.close(), timeout=2.0)
        except TimeoutError:
            _LOGGER.warning("[%s] WebSocket close timed out", self.url)
        except ParleyClientError as err:
            _LOGGER.debug("[%s] WebSocket close failed: %s", self.url, err)

    # -------------------------------------------------------------------------
    # Internal: Message Listener
    # -------------------------------------------------------------------------

    async def _listen(self) -> None:
        """Read frames until the link drops, then fall back to disconnected."""
        ws = self._ws
        if ws is None:
            return

        message_count = 0
        try:
            async for msg in ws:
                if msg.type is ParleyWsMessageType.TEXT:
                    message_count += 1
                    self._handle_text(msg)
                elif msg.type is ParleyWsMessageType.CLOSED:
                    _LOGGER.info("[%s] WebSocket closed by server", self.url)
                    break
                elif msg.type is ParleyWsMessageType.ERROR:
                    _LOGGER.error("[%s] WebSocket error", self.url)
                    break
        except asyncio.CancelledError:
            _LOGGER.debug(
                "[%s] Listener cancelled (%d messages)", self.url, message_count
            )
            raise
        except ParleyClientError as err:
            _LOGGER.warning("[%s] Client error: %s", self.url, err)
        except Exception as err:
            _LOGGER.exception("[%s] Unexpected error: %s", self.url, err)
        finally:
            if not self._shutdown_requested:
                await self._drop_socket()
                self._set_state(ConnectionState.DISCONNECTED)

    def _handle_text(self, msg: ParleyWsMessage) -> None:
        """Consume acknowledgments, forward everything else."""
        try:
            frame = ParleyWsClient.decode_json(msg)
        except (ValueError, ParleyClientError) as err:
            _LOGGER.warning("[%s] Invalid frame: %s", self.url, err)
            return

        if is_acknowledgment(frame):
            temp_id = acknowledged_id(frame)
            if temp_id is not None and self._outbox.acknowledge(temp_id):
                _LOGGER.debug("[%s] Acknowledged %s", self.url, temp_id)
            else:
                _LOGGER.debug("[%s] Unmatched acknowledgment %s", self.url, temp_id)
            return

        notify(self._dispatcher, "on_realtime_message", frame)

    # -------------------------------------------------------------------------
    # Internal: Outbox Delivery
    # -------------------------------------------------------------------------

    async def _send(self, message: PendingMessage) -> bool:
        ws = self._ws
        if ws is None:
            return False
        try:
            await ws.send_text(message.payload)
            return True
        except ParleyClientError as err:
            _LOGGER.warning(
                "[%s] Send of %s failed, kept for resend: %s",
                self.url,
                message.correlation_id,
                err,
            )
            return False

    async def _flush_loop(self) -> None:
        """Resend aged pending frames every flush interval."""
        try:
            while not self._shutdown_requested:
                await asyncio.sleep(self._flush_interval)
                try:
                    sent = await self.flush()
                except Exception as err:
                    _LOGGER.exception("[%s] Flush error: %s", self.url, err)
                    continue
                if sent:
                    _LOGGER.debug("[%s] Resent %d pending frames", self.url, sent)
        except asyncio.CancelledError:
            _LOGGER.debug("[%s] Flush timer cancelled", self.url)
            raise
