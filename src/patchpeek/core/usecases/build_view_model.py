from __future__ import annotations

import logging

from ..domain.models import DashboardConfig, RefreshFailure, Release, ReleaseView, RepoView, ViewModel
from ..ports.clock_port import ClockPort, SystemClock
from ..services.release_cache import ReleaseCache
from .refresh_releases import RefreshReleasesUseCase
from ...shared.utils import cutoff_for, fallback_html, is_flagged

logger = logging.getLogger(__name__)


def _sort_key(view: RepoView) -> tuple[int, int, str]:
    return (-view.breaking_count, -view.release_count, view.repo.lower())


class BuildViewModelUseCase:
    """Read-only projection of cache, config and last refresh results for display."""

    def __init__(self, cache: ReleaseCache, refresher: RefreshReleasesUseCase, clock: ClockPort | None = None) -> None:
        self._cache = cache
        self._refresher = refresher
        self._clock = clock or SystemClock()

    def execute(self, config: DashboardConfig, *, include_empty: bool = False) -> ViewModel:
        cutoff = cutoff_for(self._clock.now(), config.lookback_days)
        results = self._refresher.results

        views: list[RepoView] = []
        errors: list[str] = []
        for repo in config.repos:
            result = results.get(repo)
            if isinstance(result, RefreshFailure):
                errors.append(result.reason)
                views.append(RepoView(repo=repo, error=result.reason))
                continue

            entry = self._cache.get(repo)
            in_window = [r for r in entry.releases if r.is_listable and r.published_at >= cutoff]
            releases = tuple(self._release_view(r, entry.rendered_html.get(r.id)) for r in self._ordered(in_window))
            if not releases and not include_empty:
                continue
            views.append(RepoView(repo=repo, releases=releases))

        views.sort(key=_sort_key)
        return ViewModel(
            repos=tuple(views),
            rate_limit_hit=self._refresher.rate_limit_hit(config.repos),
            rate_limit_reset=self._refresher.rate_limit_reset(config.repos),
            last_update_time=self._refresher.last_update_time,
            errors=tuple(errors),
        )

    @staticmethod
    def _ordered(releases: list[Release]) -> list[Release]:
        # Flagged first, newest first within each group.
        return sorted(releases, key=lambda r: (not is_flagged(r.body), -r.published_at.timestamp()))

    @staticmethod
    def _release_view(release: Release, html: str | None) -> ReleaseView:
        return ReleaseView(
            title=release.title,
            date=release.published_at.date().isoformat(),
            html=html if html is not None else fallback_html(release.body),
            flagged=is_flagged(release.body),
            url=release.html_url,
        )
