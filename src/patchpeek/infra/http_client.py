from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

from .rate_limiter import RateLimitTracker

logger = logging.getLogger(__name__)


class AsyncHttpClient:
    """Thin async wrapper around ``httpx.AsyncClient`` for the GitHub API.

    Status handling is left to callers: releases and markdown classify 304,
    403, 404 and 429 differently. Every response feeds the rate-limit tracker.
    """

    def __init__(
        self,
        base_headers: Optional[Mapping[str, str]] = None,
        timeout_seconds: float = 20.0,
        rate_limit_tracker: Optional[RateLimitTracker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout_seconds,
            headers=dict(base_headers or {}),
            follow_redirects=True,
            max_redirects=10,
            transport=transport,
        )
        self._tracker = rate_limit_tracker

    @property
    def rate_limits(self) -> Optional[RateLimitTracker]:
        return self._tracker

    @staticmethod
    def auth_headers(token: Optional[str]) -> dict[str, str]:
        if not token:
            return {}
        return {"Authorization": f"token {token}"}

    async def get(
        self,
        url: str,
        *,
        token: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        merged = {**self.auth_headers(token), **dict(headers or {})}
        resp = await self._client.get(url, params=params, headers=merged)
        self._observe(resp, token)
        return resp

    async def post_json(
        self,
        url: str,
        payload: dict,
        *,
        token: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        merged = {**self.auth_headers(token), **dict(headers or {})}
        resp = await self._client.post(url, json=payload, headers=merged)
        self._observe(resp, token)
        return resp

    def _observe(self, resp: httpx.Response, token: Optional[str]) -> None:
        if self._tracker is not None:
            self._tracker.observe(resp.headers, token=token)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> AsyncHttpClient:
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.aclose()
