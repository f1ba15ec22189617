from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional, Sequence

from ..domain.errors import RateLimitedError, RepoNotFoundError, UpstreamError
from ..domain.models import RefreshFailure, RefreshRateLimited, RefreshReport, RefreshResult, RefreshSuccess
from ..ports.clock_port import ClockPort, SystemClock
from ..ports.config_port import ConfigStorePort
from ..ports.release_port import ReleaseSourcePort
from ..services.body_renderer import ReleaseBodyRenderer
from ..services.release_cache import ReleaseCache
from ...shared.utils import cutoff_for

logger = logging.getLogger(__name__)


class RefreshReleasesUseCase:
    """Fetch, filter, render and cache releases for every configured repository.

    Repositories are refreshed concurrently, at most ``concurrency`` at a time.
    Each repository's cache entry is guarded by its own lock. A non-forced
    request for a repository that is already being refreshed is skipped and
    reported as coalesced; a forced request waits for the running one and then
    runs, so configuration changes always take effect.
    """

    def __init__(
        self,
        fetcher: ReleaseSourcePort,
        renderer: ReleaseBodyRenderer,
        cache: ReleaseCache,
        *,
        concurrency: int = 5,
        clock: ClockPort | None = None,
        store: ConfigStorePort | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._renderer = renderer
        self._cache = cache
        self._concurrency = concurrency
        self._clock = clock or SystemClock()
        self._store = store
        self._results: dict[str, RefreshResult] = {}
        self._running = 0
        self.last_update_time: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._running > 0

    @property
    def results(self) -> dict[str, RefreshResult]:
        """Latest outcome per repository across all refreshes."""
        return dict(self._results)

    def rate_limit_hit(self, repos: Sequence[str] | None = None) -> bool:
        keys = self._results.keys() if repos is None else repos
        return any(r.rate_limited for k in keys if (r := self._results.get(k)) is not None)

    def rate_limit_reset(self, repos: Sequence[str] | None = None) -> Optional[datetime]:
        keys = self._results.keys() if repos is None else repos
        resets = [
            r.reset_at
            for k in keys
            if isinstance(r := self._results.get(k), RefreshRateLimited) and r.reset_at is not None
        ]
        return max(resets) if resets else None

    def forget(self, repo: str) -> None:
        self._results.pop(repo, None)

    def reset(self) -> None:
        self._results.clear()
        self.last_update_time = None

    async def execute(
        self,
        repos: Sequence[str],
        lookback_days: int,
        token: Optional[str] = None,
        *,
        force: bool = False,
        targets: Sequence[str] | None = None,
    ) -> RefreshReport:
        """Refresh ``targets`` (default: all of ``repos``).

        With a config store attached, the arguments only choose what to start
        with: each repository is refreshed with the repos, window and token
        current when its turn comes, and the final prune uses the config as it
        is when the refresh ends. Edits made meanwhile are never undone.
        """
        todo = list(dict.fromkeys(targets if targets is not None else repos))
        logger.info(f"Refreshing {len(todo)} repositories (force={force}, window={lookback_days}d)")

        semaphore = asyncio.Semaphore(self._concurrency)
        coalesced: list[str] = []
        results: dict[str, RefreshResult] = {}

        async def run(repo: str) -> None:
            lock = self._cache.lock_for(repo)
            if lock.locked() and not force:
                logger.info(f"{repo}: refresh already in flight, skipping")
                coalesced.append(repo)
                return
            async with lock:
                async with semaphore:
                    configured, days, current_token = self._current(repos, lookback_days, token)
                    if repo not in configured:
                        logger.info(f"{repo}: no longer configured, skipping")
                        return
                    cutoff = cutoff_for(self._clock.now(), days)
                    result = await self._refresh_repo(repo, cutoff, current_token, force)
                if repo not in self._current(repos, lookback_days, token)[0]:
                    # Removed while it was being fetched
                    logger.info(f"{repo}: removed during refresh, dropping result")
                    self._cache.remove(repo)
                    return
                results[repo] = result
                self._results[repo] = result

        self._running += 1
        try:
            await asyncio.gather(*(run(repo) for repo in todo))
        finally:
            self._running -= 1

        configured, days, _ = self._current(repos, lookback_days, token)
        self._cache.prune(configured, cutoff_for(self._clock.now(), days))
        for repo in list(self._results):
            if repo not in configured:
                self.forget(repo)

        finished_at = self._clock.now()
        self.last_update_time = finished_at
        failed = sum(1 for r in results.values() if isinstance(r, RefreshFailure))
        logger.info(f"Refreshed {len(results)} repositories, {failed} failed, {len(coalesced)} skipped")
        return RefreshReport(
            results=results,
            coalesced=tuple(coalesced),
            rate_limit_hit=self.rate_limit_hit(configured),
            finished_at=finished_at,
        )

    def _current(
        self, repos: Sequence[str], lookback_days: int, token: Optional[str]
    ) -> tuple[Sequence[str], int, Optional[str]]:
        if self._store is None:
            return repos, lookback_days, token
        config = self._store.get()
        return config.repos, config.lookback_days, config.github_token

    async def _refresh_repo(self, repo: str, cutoff: datetime, token: Optional[str], force: bool) -> RefreshResult:
        entry = self._cache.get(repo)
        try:
            fetched = await self._fetcher.fetch_releases(
                repo,
                token=token,
                cutoff=cutoff,
                etag=entry.etag,
                cached=entry.releases,
                force=force,
            )
        except RateLimitedError as e:
            logger.warning(f"Failed to refresh {repo}: {e.message}")
            return RefreshRateLimited(reset_at=e.reset_at)
        except (RepoNotFoundError, UpstreamError) as e:
            logger.error(f"Failed to refresh {repo}: {e.message}")
            return RefreshFailure(reason=e.message)
        except Exception as e:
            logger.exception(f"Unexpected error refreshing {repo}")
            return RefreshFailure(reason=f"Unexpected error refreshing {repo}: {type(e).__name__}")

        releases = tuple(r for r in fetched.releases if r.is_listable and r.published_at >= cutoff)
        entry = self._cache.upsert(repo, fetched.etag, releases)

        render_rate_limited = False
        for release in releases:
            if release.id in entry.rendered_html:
                continue
            if render_rate_limited:
                # Quota is gone; leave the rest for the view's plain-text fallback.
                break
            outcome = await self._renderer.render(repo, release, token)
            if outcome.ok:
                self._cache.set_rendered(repo, release.id, outcome.html)
            render_rate_limited = render_rate_limited or outcome.rate_limited

        logger.debug(f"{repo}: {len(releases)} releases in window (not_modified={fetched.not_modified})")
        return RefreshSuccess(releases=releases, render_rate_limited=render_rate_limited)
