from __future__ import annotations

from pathlib import Path

from platformdirs import user_config_dir

DEFAULT_API_URL = "https://api.github.com"


def get_releases_url(repo: str, api_url: str = DEFAULT_API_URL) -> str:
    return f"{api_url.rstrip('/')}/repos/{repo}/releases"


def get_markdown_url(api_url: str = DEFAULT_API_URL) -> str:
    return f"{api_url.rstrip('/')}/markdown"


def get_default_config_path() -> Path:
    return Path(user_config_dir("patchpeek")) / "config.json"
