from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..core.domain.errors import RateLimitedError, RepoNotFoundError, UpstreamError
from .rate_limiter import reset_time_from_headers

logger = logging.getLogger(__name__)


def is_rate_limited(resp: httpx.Response) -> bool:
    """GitHub signals quota exhaustion as 403 with no remaining calls, or as 429."""
    if resp.status_code == 429:
        return True
    return resp.status_code == 403 and resp.headers.get("x-ratelimit-remaining") == "0"


def error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return f"HTTP {resp.status_code}"


def raise_for_github_status(resp: httpx.Response, *, repo: Optional[str] = None) -> None:
    """Map a GitHub response onto the distinguishable error kinds.

    404 -> RepoNotFoundError, exhausted quota -> RateLimitedError, any other
    non-2xx -> UpstreamError.
    """
    if resp.is_success:
        return
    if is_rate_limited(resp):
        raise RateLimitedError(repo=repo, reset_at=reset_time_from_headers(resp.headers), status_code=resp.status_code)
    if resp.status_code == 404:
        raise RepoNotFoundError(repo or "")
    label = repo or "request"
    raise UpstreamError(f"GitHub API error ({label}): {resp.status_code} {error_message(resp)}", repo=repo, status_code=resp.status_code)
