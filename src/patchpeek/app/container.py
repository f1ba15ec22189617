from __future__ import annotations

import logging
from typing import Optional

from dependency_injector import containers, providers

from .. import __version__
from ..config.settings import AppConfig
from ..core.ports.clock_port import SystemClock
from ..core.services.body_renderer import ReleaseBodyRenderer
from ..core.services.release_cache import ReleaseCache
from ..core.usecases.build_view_model import BuildViewModelUseCase
from ..core.usecases.manage_config import ManageConfigUseCase
from ..core.usecases.refresh_releases import RefreshReleasesUseCase
from ..infra.config_store import JsonConfigStore
from ..infra.github_markdown import GitHubMarkdownRenderer
from ..infra.github_releases import GitHubReleaseFetcher
from ..infra.github_repos import GitHubRepoValidator
from ..infra.http_client import AsyncHttpClient
from ..infra.rate_limiter import RateLimitTracker

logger = logging.getLogger(__name__)


def repo_validator(enabled, api_url, timeout_seconds) -> Optional[GitHubRepoValidator]:
	"""Repo existence check for ``add``; None disables it."""
	if not enabled:
		logger.info("Repository validation on add is disabled")
		return None
	return GitHubRepoValidator(api_url=api_url, timeout_seconds=timeout_seconds)


def config_store(config_path) -> JsonConfigStore:
	store = JsonConfigStore(config_path)
	logger.info(f"Using dashboard config at: {store.path}")
	return store


class Container(containers.DeclarativeContainer):
	config = providers.Configuration(pydantic_settings=[AppConfig()])

	clock = providers.Singleton(SystemClock)

	# Replaced in tests with an httpx.MockTransport
	http_transport = providers.Object(None)

	rate_limits = providers.Singleton(RateLimitTracker)

	http_client = providers.Singleton(
		AsyncHttpClient,
		base_headers=providers.Object({"User-Agent": f"patchpeek/{__version__}"}),
		timeout_seconds=config.timeout_seconds,
		rate_limit_tracker=rate_limits,
		transport=http_transport,
	)

	store = providers.Singleton(config_store, config_path=config.config_path)

	cache = providers.Singleton(ReleaseCache)

	fetcher = providers.Singleton(
		GitHubReleaseFetcher,
		http_client,
		api_url=config.api_url,
		per_page=config.per_page,
		max_pages=config.max_pages,
		clock=clock,
	)

	markdown = providers.Singleton(GitHubMarkdownRenderer, http_client, api_url=config.api_url)

	renderer = providers.Singleton(ReleaseBodyRenderer, backend=markdown)

	validator = providers.Singleton(
		repo_validator,
		enabled=config.validate_on_add,
		api_url=config.api_url,
		timeout_seconds=config.timeout_seconds,
	)

	refresh_uc = providers.Singleton(
		RefreshReleasesUseCase,
		fetcher=fetcher,
		renderer=renderer,
		cache=cache,
		concurrency=config.refresh_concurrency,
		clock=clock,
		store=store,
	)

	manage_uc = providers.Singleton(
		ManageConfigUseCase,
		store=store,
		cache=cache,
		refresher=refresh_uc,
		validator=validator,
		clock=clock,
	)

	view_uc = providers.Factory(BuildViewModelUseCase, cache=cache, refresher=refresh_uc, clock=clock)
