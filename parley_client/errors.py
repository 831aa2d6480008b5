"""Client error types for Parley server interactions."""

from __future__ import annotations


class ParleyClientError(Exception):
    """Base error for Parley client failures."""


class ParleyTimeout(ParleyClientError):
    """Timeout while communicating with the server."""


class ParleyConnectionError(ParleyClientError):
    """Network connection to the server failed."""


class ParleyHandshakeError(ParleyClientError):
    """WebSocket handshake failed."""


class ParleyResponseError(ParleyClientError):
    """HTTP response error from the server."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status


class ParleyUnauthorizedError(ParleyClientError):
    """Refresh token was rejected; the user has to sign in again."""


class ParleyDomainError(ParleyClientError):
    """Server rejected an operation for a business reason.

    The message is human-readable and meant to be shown to the user as is.
    """

    default_message = "Something went wrong, try again!"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class UserNotFoundError(ParleyDomainError):
    """No account matches the submitted credentials."""

    default_message = "User not found!"


class WrongCredentialError(ParleyDomainError):
    """Account exists but the password is wrong."""

    default_message = "Wrong password!"


class AlreadyExistsError(ParleyDomainError):
    """Resource being created already exists."""

    default_message = "User already exists!"


class UnprocessableError(ParleyDomainError):
    """Server could not process the submitted data."""
