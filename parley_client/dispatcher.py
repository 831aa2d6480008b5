"""Outcome sink contract for the session and request client."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .errors import ParleyClientError
    from .models import ConnectionState

_LOGGER = logging.getLogger(__name__)


@runtime_checkable
class Dispatcher(Protocol):
    """Receives everything that crosses the client boundary.

    Transient transport failures never reach the dispatcher; they are retried
    inside the component that observed them.
    """

    def on_realtime_message(self, frame: dict[str, Any]) -> None:
        """Non-acknowledgment frame from the real-time channel, in arrival order."""

    def on_connection_state_changed(self, state: ConnectionState) -> None:
        """Real-time connection moved to ``state``."""

    def on_result(self, operation: str, result: Any) -> None:
        """Request/response operation succeeded."""

    def on_error(self, operation: str, error: ParleyClientError) -> None:
        """Server rejected the operation; ``error`` has a human-readable message."""

    def on_confirmation_required(self, operation: str) -> None:
        """Sign request accepted; tokens follow once the account is confirmed."""

    def on_unauthorized(self) -> None:
        """Refresh token rejected; the user must sign in again."""


class NullDispatcher:
    """Dispatcher that ignores every notification."""

    def on_realtime_message(self, frame: dict[str, Any]) -> None:
        pass

    def on_connection_state_changed(self, state: ConnectionState) -> None:
        pass

    def on_result(self, operation: str, result: Any) -> None:
        pass

    def on_error(self, operation: str, error: ParleyClientError) -> None:
        pass

    def on_confirmation_required(self, operation: str) -> None:
        pass

    def on_unauthorized(self) -> None:
        pass


def notify(dispatcher: Dispatcher, hook: str, *args: Any) -> None:
    """Invoke a dispatcher hook, logging instead of raising on failure."""
    try:
        getattr(dispatcher, hook)(*args)
    except Exception as err:
        _LOGGER.exception("Dispatcher %s callback error: %s", hook, err)
