"""Async HTTP transport for the CRM API with the universal 401 contract."""
from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

import httpx

from core.logging_config import get_logger
from .config import ClientSettings, get_client_settings
from .errors import MalformedResponseError, RequestFailedError, TransportError, UnauthorizedError

LOGGER = get_logger(__name__)

UnauthorizedCallback = Callable[[], Union[None, Awaitable[None]]]

# String filter values that mean "no filter" in list queries.
_EMPTY_PARAM_VALUES = ("", "all")


def clean_params(params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop unset filters so ``?status=all`` and ``?status=`` never reach the server."""
    if not params:
        return {}
    return {
        key: value
        for key, value in params.items()
        if value is not None and not (isinstance(value, str) and value in _EMPTY_PARAM_VALUES)
    }


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            if isinstance(body.get(key), str):
                return body[key]
    return response.reason_phrase


class ApiClient:
    """
    Thin JSON client over ``httpx.AsyncClient``.

    A 401 raises ``UnauthorizedError`` and schedules ``on_unauthorized`` once,
    after ``login_redirect_delay``. While that call is pending further 401s
    do not schedule another one. No deadline is set beyond httpx's default
    timeout.

    Usage:
        async with ApiClient(token=token) as api:
            leads = await api.get("/api/leads", {"status": "new"})
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        token: Optional[str] = None,
        on_unauthorized: Optional[UnauthorizedCallback] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or get_client_settings()
        self.token = token
        self.on_unauthorized = on_unauthorized
        self._client = httpx.AsyncClient(base_url=self.settings.base_url, transport=transport)
        self._redirect_task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._redirect_task is not None and not self._redirect_task.done():
            self._redirect_task.cancel()
        await self._client.aclose()

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    @property
    def redirect_pending(self) -> bool:
        return self._redirect_task is not None and not self._redirect_task.done()

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        """
        Send a request and decode the JSON body.

        Returns:
            Decoded JSON, or None for an empty body.

        Raises:
            UnauthorizedError: On 401.
            RequestFailedError: On any other non-2xx status.
            TransportError: When the server cannot be reached.
            MalformedResponseError: When a 2xx body is not JSON.
        """
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            response = await self._client.request(
                method,
                endpoint,
                params=clean_params(params),
                json=json,
                headers=headers,
            )
        except httpx.TransportError as exc:
            LOGGER.warning(f"{method} {endpoint} failed: {exc!r}")
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

        if response.status_code == 401:
            self._schedule_login_redirect()
            raise UnauthorizedError(_error_message(response))

        if not response.is_success:
            LOGGER.debug(f"{method} {endpoint} -> {response.status_code}")
            raise RequestFailedError(response.status_code, _error_message(response))

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"{method} {endpoint} returned non-JSON body") from exc

    async def get(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, json: Any = None) -> Any:
        return await self.request("POST", endpoint, json=json)

    async def patch(self, endpoint: str, json: Any = None) -> Any:
        return await self.request("PATCH", endpoint, json=json)

    async def delete(self, endpoint: str) -> Any:
        return await self.request("DELETE", endpoint)

    # -------------------------------------------------------------------------
    # 401 handling
    # -------------------------------------------------------------------------

    def _schedule_login_redirect(self) -> None:
        if self.on_unauthorized is None or self.redirect_pending:
            return
        LOGGER.info(f"Unauthorized; redirecting to login in {self.settings.login_redirect_delay}s")
        self._redirect_task = asyncio.create_task(self._redirect_after_delay())

    async def _redirect_after_delay(self) -> None:
        await asyncio.sleep(self.settings.login_redirect_delay)
        result = self.on_unauthorized()
        if inspect.isawaitable(result):
            await result

    async def wait_for_redirect(self) -> None:
        """Await a pending login redirect, if any."""
        if self._redirect_task is not None:
            await self._redirect_task


__all__ = ["ApiClient", "clean_params", "UnauthorizedCallback"]
