"""Value types shared by the real-time session and the request client."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ConnectionState(Enum):
    """Real-time connection states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True, slots=True)
class PendingMessage:
    """Outbound real-time message awaiting a server acknowledgment.

    Attributes:
        correlation_id: Unique id echoed back by the server as ``tempId``.
        payload: Serialized frame text, resent verbatim on every flush.
        created_at: Creation time in epoch milliseconds.
    """

    correlation_id: str
    payload: str
    created_at: int

    def age(self, now_ms: int) -> int:
        """Return the message age in milliseconds."""
        return now_ms - self.created_at


@dataclass(frozen=True, slots=True)
class TokenPair:
    """Access/refresh credential pair issued by the sign endpoints."""

    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class MessagePage:
    """One page of chat history.

    ``first_page`` is True when the request carried no ``lastMessageId``
    cursor, i.e. the page holds the most recent messages.
    """

    chat_id: int
    first_page: bool
    messages: list[Any] = field(default_factory=list)
