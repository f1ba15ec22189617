from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

import httpx
from pydantic import ValidationError

from ..config.urls import DEFAULT_API_URL, get_releases_url
from ..core.domain.errors import RateLimitedError, UpstreamError
from ..core.domain.models import FetchResult, Release
from ..core.ports.clock_port import ClockPort, SystemClock
from ..core.ports.release_port import ReleaseSourcePort
from .github_errors import raise_for_github_status
from .http_client import AsyncHttpClient
from .schemas import GhRelease

logger = logging.getLogger(__name__)

_ACCEPT = "application/vnd.github+json"


def _to_domain(gh: GhRelease) -> Release | None:
    if gh.published_at is None:
        return None
    return Release(
        id=gh.id,
        title=gh.name or gh.tag_name,
        tag_name=gh.tag_name,
        published_at=gh.published_at,
        body=gh.body or "",
        is_draft=gh.draft,
        is_prerelease=gh.prerelease,
        html_url=gh.html_url,
    )


class GitHubReleaseFetcher(ReleaseSourcePort):
    def __init__(
        self,
        http_client: AsyncHttpClient,
        *,
        api_url: str = DEFAULT_API_URL,
        per_page: int = 30,
        max_pages: int = 10,
        clock: ClockPort | None = None,
    ) -> None:
        self._http = http_client
        self._api_url = api_url
        self._per_page = per_page
        self._max_pages = max_pages
        self._clock = clock or SystemClock()

    async def fetch_releases(
        self,
        repo: str,
        *,
        token: Optional[str],
        cutoff: datetime,
        etag: Optional[str] = None,
        cached: Sequence[Release] = (),
        force: bool = False,
    ) -> FetchResult:
        """Walk release pages newest-first until an empty page or a release older than ``cutoff``.

        Only page 1 is conditional. A 304 there means the listing is unchanged
        and ``cached`` is returned as-is; callers must still filter it against
        their current window.
        """
        self._ensure_quota(repo, token)

        url = get_releases_url(repo, self._api_url)
        collected: list[Release] = []
        new_etag: Optional[str] = None

        for page in range(1, self._max_pages + 1):
            headers = {"Accept": _ACCEPT}
            if page == 1 and etag and not force:
                headers["If-None-Match"] = etag

            resp = await self._get(url, repo, token, page, headers)

            if page == 1 and resp.status_code == 304:
                logger.debug(f"{repo}: not modified, keeping {len(cached)} cached releases")
                return FetchResult(releases=tuple(cached), etag=etag, not_modified=True)

            raise_for_github_status(resp, repo=repo)
            if page == 1:
                new_etag = resp.headers.get("etag")

            items = self._parse_page(resp, repo)
            if not items:
                break

            for gh in items:
                if gh.draft or gh.prerelease:
                    continue
                release = _to_domain(gh)
                if release is None:
                    continue
                if release.published_at < cutoff:
                    logger.debug(f"{repo}: reached release {release.tag_name} older than cutoff on page {page}")
                    return FetchResult(releases=tuple(collected), etag=new_etag)
                collected.append(release)

            if len(items) < self._per_page:
                break
        else:
            logger.info(f"{repo}: stopped after {self._max_pages} pages")

        return FetchResult(releases=tuple(collected), etag=new_etag)

    def _ensure_quota(self, repo: str, token: Optional[str]) -> None:
        tracker = self._http.rate_limits
        if tracker is None:
            return
        reset_at = tracker.blocked_until(token=token, now=self._clock.now())
        if reset_at is not None:
            logger.info(f"{repo}: quota exhausted until {reset_at.isoformat()}, skipping request")
            raise RateLimitedError(repo=repo, reset_at=reset_at)

    async def _get(self, url: str, repo: str, token: Optional[str], page: int, headers: dict[str, str]) -> httpx.Response:
        try:
            resp = await self._http.get(
                url,
                token=token,
                params={"per_page": self._per_page, "page": page},
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"GitHub API error ({repo}): {type(e).__name__}: {e}", repo=repo) from e

        logger.info(
            f"{repo}: {resp.status_code} | Remaining tokens: "
            f"{resp.headers.get('x-ratelimit-remaining', '?')}/{resp.headers.get('x-ratelimit-limit', '?')}"
        )
        return resp

    @staticmethod
    def _parse_page(resp: httpx.Response, repo: str) -> list[GhRelease]:
        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError(f"GitHub API error ({repo}): invalid JSON", repo=repo) from e
        if not isinstance(data, list):
            raise UpstreamError(f"GitHub API error ({repo}): expected a JSON array", repo=repo)
        try:
            return [GhRelease.model_validate(item) for item in data]
        except ValidationError as e:
            raise UpstreamError(f"GitHub API error ({repo}): unexpected release payload", repo=repo) from e
