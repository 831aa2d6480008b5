"""Credential storage contract used by the request client."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable


@runtime_checkable
class AuthStore(Protocol):
    """Holds the current access/refresh tokens.

    Implementations own persistence. The client never caches tokens itself;
    it reads them through this interface before every call and writes
    refreshed tokens back.
    """

    def is_access_token_expired(self) -> bool: ...

    def get_access_token(self) -> str: ...

    def get_refresh_token(self) -> str: ...

    def set_access_token(self, token: str) -> None: ...

    def set_both_tokens(self, access: str, refresh: str) -> None: ...


class InMemoryAuthStore:
    """Process-local AuthStore.

    The access token is considered expired ``access_ttl`` seconds after it
    was stored, or immediately when no token was ever stored.
    """

    def __init__(
        self,
        access_token: str = "",
        refresh_token: str = "",
        *,
        access_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._access_token = access_token
        self._refresh_token = refresh_token
        self._access_ttl = access_ttl
        self._clock = clock
        self._access_stored_at: float | None = clock() if access_token else None

    def is_access_token_expired(self) -> bool:
        if not self._access_token or self._access_stored_at is None:
            return True
        return self._clock() - self._access_stored_at >= self._access_ttl

    def get_access_token(self) -> str:
        return self._access_token

    def get_refresh_token(self) -> str:
        return self._refresh_token

    def set_access_token(self, token: str) -> None:
        self._access_token = token
        self._access_stored_at = self._clock()

    def set_both_tokens(self, access: str, refresh: str) -> None:
        self._refresh_token = refresh
        self.set_access_token(access)

    def expire_access_token(self) -> None:
        """Force the next call through the refresh exchange."""
        self._access_stored_at = None
