"""Decoder for the streamed reply of the sign-in/sign-up endpoints.

The server answers a sign request with a short status line first and, only
when the request is accepted, the issued token pair afterwards. Both parts
are framed with ``data:`` markers. The decoder classifies the first line of
the first chunk and accumulates everything after it.
"""

from __future__ import annotations

import json
import re
from enum import Enum

from .errors import (
    AlreadyExistsError,
    ParleyClientError,
    ParleyDomainError,
    UnprocessableError,
    UserNotFoundError,
    WrongCredentialError,
)
from .models import TokenPair

_DATA_MARKER = "data:"
_WHITESPACE = re.compile(r"\s+")

_REJECTIONS: dict[str, type[ParleyDomainError]] = {
    "Not Found": UserNotFoundError,
    "Forbidden": WrongCredentialError,
    "Conflict": AlreadyExistsError,
    "Unprocessable Entity": UnprocessableError,
}


class SignReplyState(Enum):
    """Decoder states."""

    AWAITING_STATUS = "awaiting_status"
    ACCUMULATING = "accumulating"
    REJECTED = "rejected"


def _clean(text: str) -> str:
    return _WHITESPACE.sub(" ", text.replace(_DATA_MARKER, "")).strip()


class SignReplyDecoder:
    """Two-phase decoder owned by a single sign request."""

    def __init__(self) -> None:
        self.state = SignReplyState.AWAITING_STATUS
        self.error: ParleyDomainError | None = None
        self._body = bytearray()

    @property
    def accepted(self) -> bool:
        return self.state is SignReplyState.ACCUMULATING

    @property
    def rejected(self) -> bool:
        return self.state is SignReplyState.REJECTED

    def feed(self, chunk: bytes) -> bool:
        """Consume one chunk of the streamed body.

        Returns:
            True if this chunk was the status line.
        """
        if self.state is SignReplyState.AWAITING_STATUS:
            # The token event may share the chunk with the status line.
            head, _, rest = chunk.lstrip().partition(b"\n")
            status = _clean(head.decode("utf-8", errors="replace"))
            rejection = _REJECTIONS.get(status)
            if rejection is not None:
                self.error = rejection()
                self.state = SignReplyState.REJECTED
            else:
                self.state = SignReplyState.ACCUMULATING
                self._body.extend(rest)
            return True
        if self.state is SignReplyState.ACCUMULATING:
            self._body.extend(chunk)
        return False

    def token_pair(self) -> TokenPair:
        """Parse the accumulated payload into the issued token pair.

        Raises:
            ParleyClientError: If the reply was not accepted or the payload
                does not carry both tokens.
        """
        if not self.accepted:
            raise ParleyClientError("Sign reply was not accepted")
        text = _clean(self._body.decode("utf-8", errors="replace"))
        try:
            data = json.loads(text)
        except ValueError as err:
            raise ParleyClientError("Sign reply payload is not JSON") from err
        if not isinstance(data, dict) or "access" not in data or "refresh" not in data:
            raise ParleyClientError("Sign reply payload has no token pair")
        return TokenPair(
            access_token=str(data["access"]),
            refresh_token=str(data["refresh"]),
        )
