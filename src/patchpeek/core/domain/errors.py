from __future__ import annotations

from datetime import datetime
from typing import Optional


class PatchPeekError(Exception):
    """Base class for every error surfaced to callers of patchpeek."""


class GitHubAPIError(PatchPeekError):
    def __init__(self, message: str, *, repo: Optional[str] = None, status_code: Optional[int] = None) -> None:
        self.message = message
        self.repo = repo
        self.status_code = status_code
        super().__init__(message)


class RepoNotFoundError(GitHubAPIError):
    def __init__(self, repo: str) -> None:
        super().__init__(f'Repository "{repo}" does not exist or is private.', repo=repo, status_code=404)


class RateLimitedError(GitHubAPIError):
    """Upstream quota is exhausted until ``reset_at`` (None when GitHub did not say)."""

    def __init__(self, *, repo: Optional[str] = None, reset_at: Optional[datetime] = None, status_code: int = 403) -> None:
        self.reset_at = reset_at
        when = reset_at.isoformat() if reset_at else "unknown"
        super().__init__(f"GitHub API rate limit exceeded (resets at {when})", repo=repo, status_code=status_code)


class UpstreamError(GitHubAPIError):
    pass


class RenderError(GitHubAPIError):
    pass


class ConfigError(PatchPeekError):
    pass


class InvalidRepoError(ConfigError):
    pass


class DuplicateRepoError(ConfigError):
    def __init__(self, repo: str) -> None:
        self.repo = repo
        super().__init__("Repository already added")


class InvalidLookbackError(ConfigError):
    pass


class InvalidTokenError(ConfigError):
    pass
