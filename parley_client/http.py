"""Authenticated HTTP client for the Parley REST endpoints.

Every call goes through a token-freshness gate: when the stored access token
has expired, a refresh exchange runs first, and the original request is only
sent once a fresh token is in hand. Connection failures (host unreachable,
connection refused) are transient and retried without limit; authorization
failures and business rejections are reported to the dispatcher.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any, Final

import aiohttp

from .auth import AuthStore
from .dispatcher import Dispatcher, notify
from .errors import (
    AlreadyExistsError,
    ParleyClientError,
    ParleyConnectionError,
    ParleyDomainError,
    ParleyResponseError,
    ParleyUnauthorizedError,
    UnprocessableError,
)
from .models import MessagePage, TokenPair
from .sign_decoder import SignReplyDecoder

_LOGGER = logging.getLogger(__name__)

# Calls wait for a response or a transport failure, however long it takes.
_NO_TIMEOUT: Final = aiohttp.ClientTimeout(total=None)

# aiohttp raises ClientConnectorError for DNS failures and refused connections.
_TRANSIENT_ERRORS: Final = (aiohttp.ClientConnectorError,)


class GroupAlreadyExistsError(AlreadyExistsError):
    """A group with the requested name already exists."""

    default_message = "This group already exists!"


Rejections = Mapping[int, type[ParleyDomainError]]


async def _read_json(resp: aiohttp.ClientResponse, what: str) -> Any:
    """Decode a reply body, whatever content type the server declared."""
    try:
        return await resp.json(content_type=None)
    except ValueError as err:
        raise ParleyResponseError(resp.status, f"{what} reply is not JSON") from err


class AuthenticatedRequestClient:
    """HTTP client wrapper that keeps the bearer credential fresh.

    Calls are serialized: one request (including its refresh exchange) is in
    flight at a time per client instance.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str,
        auth_store: AuthStore,
        dispatcher: Dispatcher,
        *,
        retry_delay: float = 0.0,
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._auth_store = auth_store
        self._dispatcher = dispatcher
        self._retry_delay = retry_delay
        self._lock = asyncio.Lock()

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _pause(self, what: str, err: Exception) -> None:
        _LOGGER.warning("[%s] %s failed, retrying: %s", self._base_url, what, err)
        await asyncio.sleep(self._retry_delay)

    # -------------------------------------------------------------------------
    # Token freshness
    # -------------------------------------------------------------------------

    async def authorization_token(self, *, notify_unauthorized: bool = True) -> str:
        """Return a usable access token, refreshing it first if expired.

        Args:
            notify_unauthorized: Report a rejected refresh token to the
                dispatcher. The reconnect loop passes False so a dead
                credential is not reported on every attempt.

        Raises:
            ParleyUnauthorizedError: If the refresh token was rejected.
        """
        async with self._lock:
            return await self._fresh_access_token(notify_unauthorized)

    async def refresh(self) -> bool:
        """Exchange the refresh token for a new access token.

        Returns:
            True when new tokens were stored, False when the refresh token
            was rejected.
        """
        async with self._lock:
            return await self._refresh_exchange()

    async def _fresh_access_token(self, notify_unauthorized: bool = True) -> str:
        if self._auth_store.is_access_token_expired():
            _LOGGER.debug("[%s] Access token expired, refreshing", self._base_url)
            if not await self._refresh_exchange():
                _LOGGER.warning("[%s] Refresh token rejected", self._base_url)
                if notify_unauthorized:
                    notify(self._dispatcher, "on_unauthorized")
                raise ParleyUnauthorizedError("Refresh token rejected")
        return self._auth_store.get_access_token()

    async def _refresh_exchange(self) -> bool:
        url = self._url("sign/refresh")
        while True:
            form = {"refresh": self._auth_store.get_refresh_token()}
            try:
                async with self._session.post(
                    url, data=form, timeout=_NO_TIMEOUT
                ) as resp:
                    if resp.status == 401:
                        return False
                    if resp.status >= 400:
                        raise ParleyResponseError(
                            resp.status, "Token refresh failed"
                        )
                    data = await _read_json(resp, "Token refresh")
            except _TRANSIENT_ERRORS as err:
                await self._pause("Token refresh", err)
                continue
            except aiohttp.ClientError as err:
                raise ParleyConnectionError("Token refresh request failed") from err

            if not isinstance(data, dict) or not data.get("access"):
                raise ParleyResponseError(
                    resp.status, "Refresh reply carries no access token"
                )
            if data.get("refresh"):
                self._auth_store.set_both_tokens(data["access"], data["refresh"])
            else:
                self._auth_store.set_access_token(data["access"])
            _LOGGER.debug("[%s] Access token refreshed", self._base_url)
            return True

    # -------------------------------------------------------------------------
    # General request flow
    # -------------------------------------------------------------------------

    async def _call(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        data: Mapping[str, str] | None = None,
        rejections: Rejections | None = None,
    ) -> Any:
        """Perform an authenticated call and decode its JSON body.

        Raises:
            ParleyUnauthorizedError: Refresh token rejected, nothing was sent.
            ParleyDomainError: Status listed in ``rejections``.
            ParleyResponseError: Any other error status.
            ParleyConnectionError: Non-transient transport failure.
        """
        url = self._url(path)
        async with self._lock:
            while True:
                token = await self._fresh_access_token()
                try:
                    async with self._session.request(
                        method,
                        url,
                        params=params,
                        data=data,
                        headers={"Authorization": f"Bearer {token}"},
                        timeout=_NO_TIMEOUT,
                    ) as resp:
                        rejection = (rejections or {}).get(resp.status)
                        if rejection is not None:
                            raise rejection()
                        if resp.status >= 400:
                            raise ParleyResponseError(
                                resp.status, f"{method} {path} failed"
                            )
                        return await _read_json(resp, f"{method} {path}")
                except _TRANSIENT_ERRORS as err:
                    await self._pause(f"{method} {path}", err)
                except aiohttp.ClientError as err:
                    raise ParleyConnectionError(f"{method} {path} failed") from err

    async def _perform(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        data: Mapping[str, str] | None = None,
        rejections: Rejections | None = None,
        transform: Callable[[Any], Any] | None = None,
    ) -> Any:
        """Run ``_call`` and report its outcome to the dispatcher.

        Returns the (transformed) result, or None when the operation was
        rejected or unauthorized.
        """
        try:
            body = await self._call(
                method, path, params=params, data=data, rejections=rejections
            )
        except ParleyUnauthorizedError:
            return None
        except (ParleyDomainError, ParleyResponseError) as err:
            _LOGGER.info("[%s] %s rejected: %s", self._base_url, operation, err)
            notify(self._dispatcher, "on_error", operation, err)
            return None

        result = transform(body) if transform is not None else body
        notify(self._dispatcher, "on_result", operation, result)
        return result

    # -------------------------------------------------------------------------
    # Business operations
    # -------------------------------------------------------------------------

    async def create_group(self, body: Mapping[str, str]) -> dict[str, Any] | None:
        """Create a group chat."""
        return await self._perform(
            "create_group",
            "POST",
            "create/group",
            data=body,
            rejections={409: GroupAlreadyExistsError},
        )

    async def find_chats(self, body: Mapping[str, str]) -> list[Any] | None:
        """Search users and groups by name."""
        return await self._perform("find_chats", "GET", "api/find", params=body)

    async def get_your_chats(self) -> list[Any] | None:
        """List the chats the signed-in user takes part in."""
        return await self._perform("get_your_chats", "GET", "api/chats")

    async def get_dialogue_messages(
        self, body: Mapping[str, str]
    ) -> MessagePage | None:
        """Fetch a page of direct-message history with ``body["otherId"]``."""
        return await self._perform(
            "get_dialogue_messages",
            "GET",
            "messages/dialogue",
            params=body,
            transform=_page_builder(body, "otherId"),
        )

    async def get_group_messages(self, body: Mapping[str, str]) -> MessagePage | None:
        """Fetch a page of group history for ``body["groupId"]``."""
        return await self._perform(
            "get_group_messages",
            "GET",
            "messages/group",
            params=body,
            transform=_page_builder(body, "groupId"),
        )

    # -------------------------------------------------------------------------
    # Sign flow
    # -------------------------------------------------------------------------

    async def sign_in(self, body: Mapping[str, str]) -> TokenPair | None:
        """Sign in with the submitted credentials."""
        return await self._sign("sign_in", "sign/in", body)

    async def sign_up(self, body: Mapping[str, str]) -> TokenPair | None:
        """Register a new account."""
        return await self._sign("sign_up", "sign/up", body)

    async def _sign(
        self, operation: str, path: str, body: Mapping[str, str]
    ) -> TokenPair | None:
        url = self._url(path)
        async with self._lock:
            while True:
                decoder = SignReplyDecoder()
                try:
                    async with self._session.post(
                        url, data=body, timeout=_NO_TIMEOUT
                    ) as resp:
                        async for chunk in resp.content.iter_any():
                            if decoder.feed(chunk) and decoder.accepted:
                                notify(
                                    self._dispatcher,
                                    "on_confirmation_required",
                                    operation,
                                )
                            if decoder.rejected:
                                break
                except _TRANSIENT_ERRORS as err:
                    await self._pause(operation, err)
                    continue
                except aiohttp.ClientError as err:
                    raise ParleyConnectionError(f"{operation} request failed") from err
                break

        if decoder.rejected and decoder.error is not None:
            _LOGGER.info("[%s] %s rejected: %s", self._base_url, operation, decoder.error)
            notify(self._dispatcher, "on_error", operation, decoder.error)
            return None

        try:
            tokens = decoder.token_pair()
        except ParleyClientError as err:
            _LOGGER.warning("[%s] %s reply unusable: %s", self._base_url, operation, err)
            notify(self._dispatcher, "on_error", operation, UnprocessableError())
            return None

        self._auth_store.set_both_tokens(tokens.access_token, tokens.refresh_token)
        notify(self._dispatcher, "on_result", operation, tokens)
        return tokens

    async def check_refresh_token(self) -> bool:
        """Verify at start-up that the stored refresh token is still valid.

        Unlike the refresh exchange, the server also checks the token's
        expiry here.
        """
        url = self._url("sign/check-refresh")
        async with self._lock:
            while True:
                params = {"refresh": self._auth_store.get_refresh_token()}
                try:
                    async with self._session.get(
                        url, params=params, timeout=_NO_TIMEOUT
                    ) as resp:
                        status = resp.status
                except _TRANSIENT_ERRORS as err:
                    await self._pause("Refresh token check", err)
                    continue
                except aiohttp.ClientError as err:
                    raise ParleyConnectionError("Refresh token check failed") from err
                break

        if status == 401:
            notify(self._dispatcher, "on_unauthorized")
            return False
        notify(self._dispatcher, "on_result", "check_refresh_token", True)
        return True


def _page_builder(
    body: Mapping[str, str], id_field: str
) -> Callable[[Any], MessagePage]:
    chat_id = int(body[id_field])
    first_page = "lastMessageId" not in body

    def build(messages: Any) -> MessagePage:
        return MessagePage(
            chat_id=chat_id,
            first_page=first_page,
            messages=list(messages or []),
        )

    return build
