"""Async JSON client for the dashboard API with retries and timeout."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from night_shift.config import DEFAULT_USER_AGENT, DashboardSettings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BACKOFF_SECONDS = 1.0


class DashboardRequestError(RuntimeError):
    """Dashboard request failed after all retries."""

    def __init__(
        self,
        message: str,
        *,
        method: str,
        path: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.path = path
        self.status_code = status_code


class DashboardClient:
    """httpx wrapper for the dashboard JSON API.

    Connection failures are retried by the httpx transport. Server errors
    (5xx) are retried here with exponential backoff; client errors (4xx) and
    any other transport error fail immediately.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff_seconds
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds, connect=min(timeout_seconds, 10.0)),
            headers={"User-Agent": user_agent, "Content-Type": "application/json"},
            transport=transport or httpx.AsyncHTTPTransport(retries=max_retries),
        )

    @classmethod
    def from_settings(
        cls,
        settings: DashboardSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> DashboardClient:
        return cls(
            base_url=settings.base_url,
            timeout_seconds=settings.timeout_seconds,
            max_retries=settings.max_retries,
            retry_backoff_seconds=settings.retry_backoff_seconds,
            user_agent=settings.user_agent,
            transport=transport,
        )

    async def get(self, path: str, *, params: dict[str, str] | None = None) -> dict[str, Any]:
        return await self._request("GET", path, params=params)

    async def post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", path, body=body)

    async def patch(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PATCH", path, body=body)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        attempt = 0
        while True:
            try:
                response = await self._client.request(method, path, params=params, json=body)
            except httpx.HTTPError as exc:
                raise DashboardRequestError(
                    f"{method} {path} failed: {exc}",
                    method=method,
                    path=path,
                ) from exc

            if response.is_success:
                return _decode_body(response)
            if response.status_code >= 500 and attempt < self._max_retries:
                logger.warning(
                    "Server error (%d) on %s %s, retrying (%d/%d)",
                    response.status_code,
                    method,
                    path,
                    attempt + 1,
                    self._max_retries,
                )
                await self._backoff(attempt)
                attempt += 1
                continue
            raise DashboardRequestError(
                f"HTTP {response.status_code}: {response.text}",
                method=method,
                path=path,
                status_code=response.status_code,
            )

    async def _backoff(self, attempt: int) -> None:
        delay = self._retry_backoff * (2**attempt)
        if delay > 0:
            await asyncio.sleep(delay)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> DashboardClient:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()


def _decode_body(response: httpx.Response) -> dict[str, Any]:
    if not response.content:
        return {}
    try:
        payload = response.json()
    except ValueError:
        logger.warning("Failed to parse dashboard response as JSON")
        return {"success": True, "data": response.text}
    if isinstance(payload, dict):
        return payload
    return {"data": payload}
