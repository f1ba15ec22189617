from __future__ import annotations

from typing import Optional, Protocol


class RepoValidatorPort(Protocol):
    async def ensure_exists(self, repo: str, *, token: Optional[str] = None) -> None:
        """Return when the repository is reachable, raise RepoNotFoundError otherwise."""
        ...
