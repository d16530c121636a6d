"""Shared async HTTP client for the console backend API.

Wraps one ``httpx.AsyncClient`` with bearer authentication, JSON decoding and
the repository error taxonomy.  A 401 response invokes the ``on_unauthorized``
hook before raising so the owning session can drop its state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx

from shiftdesk.core.telemetry import inject_trace_context
from shiftdesk.repositories.errors import (
    InvalidPayloadError,
    RequestError,
    TransportError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000/api"


class ApiClient:
    """Authenticated JSON client bound to one API base URL.

    Parameters
    ----------
    base_url:
        Root of the API (e.g. ``http://localhost:8000/api``).
    token:
        Bearer token; may be set later via :meth:`set_token`.
    timeout_s / connect_timeout_s:
        httpx timeouts used when the client creates its own transport.
    http_client:
        Optional pre-built ``httpx.AsyncClient`` (tests inject one backed by
        ``httpx.MockTransport``).  When given, the caller owns its lifecycle.
    on_unauthorized:
        Called synchronously when any request answers 401.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        token: str | None = None,
        timeout_s: float = 20.0,
        connect_timeout_s: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
        on_unauthorized: Callable[[], None] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._owns_http_client = http_client is None
        self._http_client = (
            http_client
            if http_client is not None
            else httpx.AsyncClient(timeout=httpx.Timeout(timeout_s, connect=connect_timeout_s))
        )
        self.on_unauthorized = on_unauthorized

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def has_token(self) -> bool:
        return self._token is not None

    def set_token(self, token: str | None) -> None:
        self._token = token

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

    async def get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, *, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, *, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send one request and return the decoded JSON body (``None`` when empty)."""
        headers = {"Accept": "application/json", **inject_trace_context()}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        if params is not None:
            params = {k: v for k, v in params.items() if v is not None}

        url = f"{self._base_url}/{path.lstrip('/')}"
        try:
            response = await self._http_client.request(
                method, url, params=params, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 401:
            logger.warning("%s %s answered 401; session is no longer authenticated", method, path)
            if self.on_unauthorized is not None:
                self.on_unauthorized()
            raise UnauthorizedError(_safe_error_message(response))

        if response.status_code < 200 or response.status_code >= 300:
            raise RequestError(
                status_code=response.status_code,
                message=_safe_error_message(response),
            )

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise InvalidPayloadError(f"{method} {path} returned invalid JSON") from exc


def _safe_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error")
        if isinstance(message, str) and message.strip():
            return " ".join(message.split())[:200]

    text = response.text.strip()
    if text:
        return " ".join(text.split())[:200]
    return "unknown error"
