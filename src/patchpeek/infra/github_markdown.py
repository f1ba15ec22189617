from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..config.urls import DEFAULT_API_URL, get_markdown_url
from ..core.domain.errors import RateLimitedError, RenderError
from ..core.ports.render_port import MarkdownRendererPort
from .github_errors import error_message, is_rate_limited
from .http_client import AsyncHttpClient
from .rate_limiter import reset_time_from_headers

logger = logging.getLogger(__name__)


class GitHubMarkdownRenderer(MarkdownRendererPort):
    """Render release notes through POST /markdown in ``gfm`` mode.

    The repository is sent as ``context`` so that ``#123`` and commit SHAs
    link into it, which is how release pages on github.com render.
    """

    def __init__(self, http_client: AsyncHttpClient, *, api_url: str = DEFAULT_API_URL) -> None:
        self._http = http_client
        self._url = get_markdown_url(api_url)

    async def render(self, text: str, *, repo: str, token: Optional[str] = None) -> str:
        payload = {"text": text, "mode": "gfm", "context": repo}
        try:
            resp = await self._http.post_json(
                self._url,
                payload,
                token=token,
                headers={"Accept": "text/html"},
            )
        except httpx.HTTPError as e:
            raise RenderError(f"Markdown render failed ({repo}): {type(e).__name__}", repo=repo) from e

        if is_rate_limited(resp):
            raise RateLimitedError(repo=repo, reset_at=reset_time_from_headers(resp.headers), status_code=resp.status_code)
        if not resp.is_success:
            raise RenderError(f"Markdown render failed ({repo}): {resp.status_code} {error_message(resp)}", repo=repo, status_code=resp.status_code)
        return resp.text
