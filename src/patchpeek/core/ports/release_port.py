from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..domain.models import FetchResult, Release


class ReleaseSourcePort(Protocol):
    async def fetch_releases(
        self,
        repo: str,
        *,
        token: Optional[str],
        cutoff: datetime,
        etag: Optional[str] = None,
        cached: Sequence[Release] = (),
        force: bool = False,
    ) -> FetchResult:
        """Return listable releases published at or after ``cutoff``, newest first.

        When ``etag`` is given and ``force`` is false, implementations may answer
        from ``cached`` if upstream reports the content unchanged.

        Raises RepoNotFoundError, RateLimitedError or UpstreamError.
        """
        ...
