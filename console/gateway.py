"""
Single egress point for every backend call made by the console.
"""
from __future__ import annotations

import functools
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from console.errors import AuthExpired, NotFound, RequestFailed, ValidationRejected
from console.models import (
    DingBotConfig,
    LoginResult,
    Page,
    PluginDescriptor,
    SecurityNotice,
    SyncTaskConfig,
    VulnerabilityDetail,
    VulnerabilitySummary,
)
from console.query import FilterState, notice_params, vulnerability_params
from console.session import SessionStore
from console.settings import API_BASE_PATH

LOGGER = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def intercept_unauthorized(
    send: Callable[..., Awaitable[httpx.Response]],
) -> Callable[..., Awaitable[httpx.Response]]:
    """
    Wrap the transport call so a 401 clears the session exactly once.

    The session clear runs before AuthExpired propagates, so by the time any
    controller sees the exception the login view is already the current view.
    """

    @functools.wraps(send)
    async def _wrapper(self: "HttpGateway", method: str, path: str, **kwargs: Any) -> httpx.Response:
        response = await send(self, method, path, **kwargs)
        if response.status_code == httpx.codes.UNAUTHORIZED:
            LOGGER.warning("Authorization rejected on %s %s, ending session", method, path)
            self.session.clear()
            raise AuthExpired("Session expired")
        return response

    return _wrapper


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        data = body.get("data")
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        if isinstance(body.get("detail"), str):
            return body["detail"]
    return f"HTTP {response.status_code}"


def _unwrap(response: httpx.Response) -> Any:
    try:
        body = response.json()
    except ValueError as exc:
        raise RequestFailed("Backend returned a non-JSON response", response.status_code) from exc
    if not isinstance(body, dict) or "data" not in body:
        raise RequestFailed("Backend response is missing its data envelope", response.status_code)
    return body["data"]


def _parse(model: type[M], data: Any) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise RequestFailed(f"Unexpected {model.__name__} payload") from exc


class HttpGateway:
    def __init__(
        self,
        session: SessionStore,
        base_url: str,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session = session
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + API_BASE_PATH,
            timeout=timeout_seconds,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpGateway":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _auth_headers(self) -> dict[str, str]:
        token = self.session.get_token()
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    @intercept_unauthorized
    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        LOGGER.debug("%s %s", method, path)
        try:
            return await self._client.request(method, path, headers=self._auth_headers(), **kwargs)
        except httpx.TimeoutException as exc:
            LOGGER.warning("%s %s timed out", method, path)
            raise RequestFailed("Request timed out") from exc
        except httpx.HTTPError as exc:
            LOGGER.warning("%s %s failed: %s", method, path, exc)
            raise RequestFailed(f"Request failed: {exc}") from exc

    async def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._send(method, path, **kwargs)
        if response.is_success:
            return _unwrap(response)
        message = _error_message(response)
        status = response.status_code
        if status == httpx.codes.NOT_FOUND:
            raise NotFound(message, status)
        if status in (httpx.codes.BAD_REQUEST, httpx.codes.UNPROCESSABLE_ENTITY):
            raise ValidationRejected(message, status)
        raise RequestFailed(message, status)

    async def authenticate(self, username: str, password: str) -> LoginResult:
        data = await self._call("POST", "/login", json={"username": username, "password": password})
        return _parse(LoginResult, data)

    async def list_vulnerabilities(self, filters: FilterState) -> Page[VulnerabilitySummary]:
        data = await self._call("GET", "/vulns", params=vulnerability_params(filters))
        return _parse(Page[VulnerabilitySummary], data)

    async def get_vulnerability(self, vuln_id: int | str) -> VulnerabilityDetail:
        data = await self._call("GET", f"/vulns/{vuln_id}")
        if data is None:
            raise NotFound(f"Vulnerability {vuln_id} not found", httpx.codes.NOT_FOUND)
        return _parse(VulnerabilityDetail, data)

    async def list_security_notices(self, filters: FilterState) -> Page[SecurityNotice]:
        data = await self._call("GET", "/sec_notice", params=notice_params(filters))
        return _parse(Page[SecurityNotice], data)

    async def get_sync_task(self) -> Optional[SyncTaskConfig]:
        data = await self._call("GET", "/sync_data_task")
        return _parse(SyncTaskConfig, data) if data else None

    async def save_sync_task(self, config: SyncTaskConfig) -> Any:
        return await self._call("POST", "/sync_data_task", json=config.payload())

    async def get_bot_config(self) -> Optional[DingBotConfig]:
        data = await self._call("GET", "/ding_bot_config")
        return _parse(DingBotConfig, data) if data else None

    async def save_bot_config(self, config: DingBotConfig) -> Any:
        return await self._call("POST", "/ding_bot_config", json=config.payload())

    async def list_plugins(self) -> list[PluginDescriptor]:
        data = await self._call("GET", "/plugins")
        return [_parse(PluginDescriptor, item) for item in data or []]

    async def list_notice_sources(self) -> list[PluginDescriptor]:
        data = await self._call("GET", "/notices")
        return [_parse(PluginDescriptor, item) for item in data or []]
