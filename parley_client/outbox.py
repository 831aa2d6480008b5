"""In-memory queue of unacknowledged real-time messages."""

from __future__ import annotations

from collections.abc import Iterator

from .models import PendingMessage


class Outbox:
    """Ordered collection of messages that have not been acknowledged yet.

    Insertion order is send priority. Entries leave the outbox only when the
    server acknowledges their correlation id; there is no size cap and no
    eviction, so a session that never reconnects keeps every message.

    The outbox is not thread-safe. It must only be touched from the event
    loop that owns the session.
    """

    def __init__(self) -> None:
        self._messages: list[PendingMessage] = []

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[PendingMessage]:
        return iter(list(self._messages))

    def __contains__(self, correlation_id: object) -> bool:
        return any(m.correlation_id == correlation_id for m in self._messages)

    def append(self, message: PendingMessage) -> None:
        """Queue a message at the tail.

        Raises:
            ValueError: If a message with the same correlation id is pending.
        """
        if message.correlation_id in self:
            raise ValueError(
                f"Correlation id already pending: {message.correlation_id}"
            )
        self._messages.append(message)

    def acknowledge(self, correlation_id: str) -> bool:
        """Drop the first message with ``correlation_id``.

        Returns:
            True if a message was removed, False if none was pending.
        """
        for index, message in enumerate(self._messages):
            if message.correlation_id == correlation_id:
                del self._messages[index]
                return True
        return False

    def due(self, now_ms: int, grace_ms: int) -> list[PendingMessage]:
        """Return messages at least ``grace_ms`` old, in insertion order."""
        return [m for m in self._messages if m.age(now_ms) >= grace_ms]
