"""Client-side session core for the Parley chat server."""

__version__ = "0.1.0"

from .auth import AuthStore, InMemoryAuthStore
from .client import ParleyClient
from .config import ParleyConfig
from .dispatcher import Dispatcher, NullDispatcher
from .errors import (
    AlreadyExistsError,
    ParleyClientError,
    ParleyConnectionError,
    ParleyDomainError,
    ParleyHandshakeError,
    ParleyResponseError,
    ParleyTimeout,
    ParleyUnauthorizedError,
    UnprocessableError,
    UserNotFoundError,
    WrongCredentialError,
)
from .http import AuthenticatedRequestClient, GroupAlreadyExistsError
from .models import ConnectionState, MessagePage, PendingMessage, TokenPair
from .outbox import Outbox
from .session import RealtimeSession
from .ws import connect_websocket
from .ws_client import ParleyWsClient, ParleyWsMessage, ParleyWsMessageType

__all__ = [
    "AlreadyExistsError",
    "AuthStore",
    "AuthenticatedRequestClient",
    "ConnectionState",
    "Dispatcher",
    "GroupAlreadyExistsError",
    "InMemoryAuthStore",
    "MessagePage",
    "NullDispatcher",
    "Outbox",
    "ParleyClient",
    "ParleyClientError",
    "ParleyConfig",
    "ParleyConnectionError",
    "ParleyDomainError",
    "ParleyHandshakeError",
    "ParleyResponseError",
    "ParleyTimeout",
    "ParleyUnauthorizedError",
    "ParleyWsClient",
    "ParleyWsMessage",
    "ParleyWsMessageType",
    "PendingMessage",
    "RealtimeSession",
    "TokenPair",
    "UnprocessableError",
    "UserNotFoundError",
    "WrongCredentialError",
    "__version__",
    "connect_websocket",
]
