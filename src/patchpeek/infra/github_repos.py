from __future__ import annotations

import asyncio
import logging
from typing import Optional

from github import Auth, Github, GithubException, RateLimitExceededException, UnknownObjectException

from ..config.urls import DEFAULT_API_URL
from ..core.domain.errors import RateLimitedError, RepoNotFoundError, UpstreamError
from ..core.ports.repo_validator_port import RepoValidatorPort
from .rate_limiter import reset_time_from_headers

logger = logging.getLogger(__name__)


class GitHubRepoValidator(RepoValidatorPort):
    """Existence check for a repository before it is added to the dashboard.

    PyGithub is synchronous, so the lookup runs in a worker thread. A client is
    built per call because the token can change between calls.
    """

    def __init__(self, *, api_url: str = DEFAULT_API_URL, timeout_seconds: float = 20.0) -> None:
        self._api_url = api_url
        self._timeout = timeout_seconds

    def _client(self, token: Optional[str]) -> Github:
        if token:
            return Github(auth=Auth.Token(token), base_url=self._api_url, timeout=int(self._timeout))
        return Github(base_url=self._api_url, timeout=int(self._timeout))

    def _check(self, repo: str, token: Optional[str]) -> None:
        client = self._client(token)
        try:
            found = client.get_repo(repo)
            logger.debug(f"Validated {repo} (id={found.id})")
        finally:
            client.close()

    async def ensure_exists(self, repo: str, *, token: Optional[str] = None) -> None:
        try:
            await asyncio.to_thread(self._check, repo, token)

        except UnknownObjectException as e:
            raise RepoNotFoundError(repo) from e

        except RateLimitExceededException as e:
            logger.error(f"GitHub API rate limit exceeded while validating {repo}")
            raise RateLimitedError(repo=repo, reset_at=reset_time_from_headers(e.headers or {})) from e

        except GithubException as e:
            if e.status == 404:
                raise RepoNotFoundError(repo) from e
            raise UpstreamError(f"GitHub API error ({repo}): {e.status}", repo=repo, status_code=e.status) from e

        except OSError as e:
            raise UpstreamError(f"Failed to connect to GitHub API ({repo}): {type(e).__name__}", repo=repo) from e
