from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Process settings with automatic environment variable loading.

    All settings can be overridden via environment variables with the PATCHPEEK_ prefix.
    For example:
        - PATCHPEEK_CONFIG_PATH=/data/config.json
        - PATCHPEEK_REFRESH_INTERVAL_SECONDS=900
        - PATCHPEEK_REFRESH_CONCURRENCY=5

    The user-editable dashboard config (repos, lookback window, token) lives in
    the JSON file at ``config_path``, not here.

    Alternatively, settings can be provided programmatically when creating the client:
        client = PatchPeekClient(config_path="/tmp/config.json", validate_on_add=False)
    """

    model_config = SettingsConfigDict(
        env_prefix="PATCHPEEK_",
        case_sensitive=False,
        extra="forbid",
    )

    config_path: Optional[Path] = Field(
        default=None,
        description="Dashboard config file. If None, uses platformdirs.user_config_dir('patchpeek')/config.json",
    )

    api_url: str = Field(
        default="https://api.github.com",
        description="Base URL of the GitHub REST API",
    )

    timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Timeout for a single GitHub request",
    )

    refresh_concurrency: int = Field(
        default=5,
        ge=1,
        description="Maximum number of repositories refreshed at once",
    )

    refresh_interval_seconds: int = Field(
        default=3600,
        ge=1,
        description="Delay between scheduled refreshes",
    )

    per_page: int = Field(
        default=30,
        ge=1,
        le=100,
        description="Releases requested per page",
    )

    max_pages: int = Field(
        default=10,
        ge=1,
        description="Upper bound on pages walked per repository and refresh",
    )

    validate_on_add: bool = Field(
        default=True,
        description="Check that a repository exists upstream before adding it",
    )

    log_level: str = Field(default="INFO")

    log_format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
