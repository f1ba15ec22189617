from __future__ import annotations

from pathlib import Path
from typing import Optional

import httpx
from dependency_injector import providers

from .container import Container
from ..config.settings import AppConfig
from ..core.domain.errors import PatchPeekError
from ..core.domain.models import DashboardConfig, RefreshReport, ViewModel
from ..core.services.scheduler import RefreshScheduler


class PatchPeekClient:
    """Async client for the release dashboard engine.

    Owns the release cache, the refresh orchestrator and the dashboard config
    for its lifetime. Methods are coroutines and must run on one event loop.

    Example:
        # Using default configuration (from environment variables)
        async with PatchPeekClient() as client:
            await client.add_repo("https://github.com/acme/widget")
            view = client.get_view_model()

        # Customize settings
        async with PatchPeekClient(config_path="/data/config.json", refresh_concurrency=3) as client:
            await client.refresh()

        # Keep the cache warm in the background
        async with PatchPeekClient() as client:
            await client.start_scheduler()
            ...
    """

    def __init__(
        self,
        *,
        config_path: str | Path | None = None,
        api_url: str | None = None,
        refresh_concurrency: int | None = None,
        refresh_interval_seconds: int | None = None,
        validate_on_add: bool | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            config_path: Dashboard config file. If None, uses PATCHPEEK_CONFIG_PATH
                         or the user config directory.
            api_url: GitHub API base URL. If None, uses PATCHPEEK_API_URL or api.github.com.
            refresh_concurrency: Repositories refreshed at once (default 5).
            refresh_interval_seconds: Delay between scheduled refreshes (default 3600).
            validate_on_add: Check repositories upstream before adding them (default True).
            transport: Optional httpx transport, mainly for tests.
        """
        self._container = Container()

        # Build config dict with only provided values
        config_dict: dict[str, object] = {}
        if config_path is not None:
            config_dict["config_path"] = Path(config_path)
        if api_url is not None:
            config_dict["api_url"] = api_url
        if refresh_concurrency is not None:
            config_dict["refresh_concurrency"] = refresh_concurrency
        if refresh_interval_seconds is not None:
            config_dict["refresh_interval_seconds"] = refresh_interval_seconds
        if validate_on_add is not None:
            config_dict["validate_on_add"] = validate_on_add

        # Re-read the environment on every client, not only at import time
        self._container.config.from_pydantic(AppConfig(**config_dict))
        if transport is not None:
            self._container.http_transport.override(providers.Object(transport))

        self._manage = self._container.manage_uc()
        self._refresher = self._container.refresh_uc()
        self._scheduler = RefreshScheduler(self.refresh, self._container.config.refresh_interval_seconds())

    @property
    def config(self) -> DashboardConfig:
        return self._manage.config

    @property
    def is_refreshing(self) -> bool:
        return self._refresher.is_running

    async def refresh(self, *, force: bool = False) -> RefreshReport:
        """Refresh every configured repository. Never raises for upstream failures."""
        return await self._manage.refresh(force=force)

    def get_view_model(self, *, include_empty: bool = False) -> ViewModel:
        """Return display data for the current config from the cache."""
        return self._container.view_uc().execute(self._manage.config, include_empty=include_empty)

    async def add_repo(self, value: str) -> str:
        """Add a repository given as ``owner/name`` or a github.com URL.

        Returns:
            The normalized ``owner/name`` slug.

        Raises:
            InvalidRepoError, DuplicateRepoError, RepoNotFoundError,
            RateLimitedError, UpstreamError
        """
        return await self._manage.add_repo(value)

    async def remove_repo(self, value: str) -> bool:
        """Remove a repository and its cached releases. Returns False if it was not configured."""
        return await self._manage.remove_repo(value)

    async def set_lookback_days(self, days: int) -> RefreshReport:
        """Change the lookback window and force a refresh. Raises InvalidLookbackError."""
        return await self._manage.set_lookback_days(days)

    async def set_token(self, token: str | None) -> RefreshReport:
        """Store (or clear, with None/blank) the GitHub token. Raises InvalidTokenError."""
        return await self._manage.set_token(token)

    def clear_cache(self) -> None:
        """Forget cached releases, refresh results and known rate limits.

        The next refresh rebuilds everything from upstream.

        Raises:
            PatchPeekError: if a refresh is running
        """
        if self.is_refreshing:
            raise PatchPeekError("Cannot clear the cache while a refresh is running")
        self._container.cache().reset()
        self._refresher.reset()
        self._container.rate_limits().clear()

    async def start_scheduler(self, *, warm_up: bool = True) -> None:
        """Refresh now (unless ``warm_up`` is False) and then on the configured interval."""
        await self._scheduler.start(warm_up=warm_up)

    async def stop_scheduler(self) -> None:
        await self._scheduler.stop()

    async def run_forever(self) -> None:
        """Warm up, then keep refreshing until cancelled."""
        await self.start_scheduler()
        await self._scheduler.wait()

    async def aclose(self) -> None:
        """Stop the scheduler and release network resources."""
        await self._scheduler.stop()
        await self._container.http_client().aclose()

    async def __aenter__(self) -> PatchPeekClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


__all__ = [
    "PatchPeekClient",
    "AppConfig",
]
