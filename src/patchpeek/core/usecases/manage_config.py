from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..domain.errors import DuplicateRepoError, InvalidLookbackError, InvalidRepoError, InvalidTokenError
from ..domain.models import DashboardConfig, RefreshReport
from ..ports.clock_port import ClockPort, SystemClock
from ..ports.config_port import ConfigStorePort
from ..ports.repo_validator_port import RepoValidatorPort
from ..services.release_cache import ReleaseCache
from .refresh_releases import RefreshReleasesUseCase
from ...config.tokens import GITHUB_TOKEN_PREFIXES, looks_like_github_token
from ...shared.utils import cutoff_for, is_valid_repo_slug, normalize_repo_slug

logger = logging.getLogger(__name__)


class ManageConfigUseCase:
    """User-facing config mutations.

    Every mutation is persisted before anything else happens. Changes that
    alter what a refresh would return (new repo, new window, new token) force
    a refresh that bypasses conditional requests.
    """

    def __init__(
        self,
        store: ConfigStorePort,
        cache: ReleaseCache,
        refresher: RefreshReleasesUseCase,
        validator: Optional[RepoValidatorPort] = None,
        clock: ClockPort | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._refresher = refresher
        self._validator = validator
        self._clock = clock or SystemClock()
        # Held from reading the config until the edit is persisted
        self._mutations = asyncio.Lock()

    @property
    def config(self) -> DashboardConfig:
        return self._store.get()

    async def refresh(self, *, force: bool = False) -> RefreshReport:
        config = self._store.get()
        return await self._refresher.execute(config.repos, config.lookback_days, config.github_token, force=force)

    async def add_repo(self, value: str) -> str:
        slug = normalize_repo_slug(value)
        if not is_valid_repo_slug(slug):
            raise InvalidRepoError(f'"{value.strip()}" is not a GitHub repository (expected owner/name or a github.com URL)')

        async with self._mutations:
            config = self._store.get()
            if config.has_repo(slug):
                raise DuplicateRepoError(slug)

            if self._validator is not None:
                await self._validator.ensure_exists(slug, token=config.github_token)

            # The store may have changed while validating
            config = self._store.get()
            if config.has_repo(slug):
                raise DuplicateRepoError(slug)
            config = self._store.update(repos=config.repos + (slug,))
        logger.info(f"Added {slug}")
        await self._refresher.execute(
            config.repos, config.lookback_days, config.github_token, force=True, targets=[slug]
        )
        return slug

    async def remove_repo(self, value: str) -> bool:
        slug = normalize_repo_slug(value)
        async with self._mutations:
            config = self._store.get()
            remaining = tuple(r for r in config.repos if r.lower() != slug.lower())
            removed = [r for r in config.repos if r.lower() == slug.lower()]
            if not removed:
                logger.debug(f"Remove ignored, {slug} is not configured")
                return False
            self._store.update(repos=remaining)

        for repo in removed:
            self._cache.remove(repo)
            self._refresher.forget(repo)
        logger.info(f"Removed {', '.join(removed)}")
        return True

    async def set_lookback_days(self, days: int) -> RefreshReport:
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            raise InvalidLookbackError(f"Lookback window must be a positive number of days, got {days!r}")

        async with self._mutations:
            config = self._store.update(lookback_days=days)
        self._cache.prune(config.repos, cutoff_for(self._clock.now(), days))
        logger.info(f"Lookback window set to {days} days")
        return await self._refresher.execute(config.repos, config.lookback_days, config.github_token, force=True)

    async def set_token(self, token: Optional[str]) -> RefreshReport:
        token = (token or "").strip() or None
        if token is not None and not looks_like_github_token(token):
            raise InvalidTokenError(
                "Invalid GitHub token format. It should start with one of: " + ", ".join(GITHUB_TOKEN_PREFIXES)
            )

        async with self._mutations:
            config = self._store.update(github_token=token)
        logger.info(f"GitHub token {'updated' if token else 'cleared'}")
        return await self._refresher.execute(config.repos, config.lookback_days, config.github_token, force=True)
