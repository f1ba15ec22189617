from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Optional, Union


@dataclass(frozen=True)
class DashboardConfig:
    repos: tuple[str, ...] = ()
    lookback_days: int = 31
    github_token: Optional[str] = None

    def with_updates(self, **kwargs) -> "DashboardConfig":
        return replace(self, **kwargs)

    def has_repo(self, slug: str) -> bool:
        lowered = slug.lower()
        return any(r.lower() == lowered for r in self.repos)


@dataclass(frozen=True)
class Release:
    id: int
    title: str
    published_at: datetime
    body: str = ""
    tag_name: str = ""
    is_draft: bool = False
    is_prerelease: bool = False
    html_url: Optional[str] = None

    @property
    def is_listable(self) -> bool:
        return not (self.is_draft or self.is_prerelease)


@dataclass
class CacheEntry:
    etag: Optional[str] = None
    releases: tuple[Release, ...] = ()
    rendered_html: dict[int, str] = field(default_factory=dict)

    @property
    def release_ids(self) -> set[int]:
        return {r.id for r in self.releases}


@dataclass(frozen=True)
class FetchResult:
    releases: tuple[Release, ...]
    etag: Optional[str] = None
    not_modified: bool = False


@dataclass(frozen=True)
class RenderOutcome:
    html: str
    ok: bool = True
    rate_limited: bool = False


@dataclass(frozen=True)
class RefreshSuccess:
    releases: tuple[Release, ...]
    render_rate_limited: bool = False

    @property
    def rate_limited(self) -> bool:
        return self.render_rate_limited


@dataclass(frozen=True)
class RefreshRateLimited:
    reset_at: Optional[datetime] = None

    @property
    def rate_limited(self) -> bool:
        return True


@dataclass(frozen=True)
class RefreshFailure:
    reason: str

    @property
    def rate_limited(self) -> bool:
        return False


RefreshResult = Union[RefreshSuccess, RefreshRateLimited, RefreshFailure]


@dataclass(frozen=True)
class RefreshReport:
    results: dict[str, RefreshResult] = field(default_factory=dict)
    coalesced: tuple[str, ...] = ()
    rate_limit_hit: bool = False
    finished_at: Optional[datetime] = None

    @property
    def failures(self) -> dict[str, RefreshFailure]:
        return {repo: r for repo, r in self.results.items() if isinstance(r, RefreshFailure)}


@dataclass(frozen=True)
class ReleaseView:
    title: str
    date: str
    html: str
    flagged: bool
    url: Optional[str] = None


@dataclass(frozen=True)
class RepoView:
    repo: str
    releases: tuple[ReleaseView, ...] = ()
    error: Optional[str] = None

    @property
    def release_count(self) -> int:
        return len(self.releases)

    @property
    def breaking_count(self) -> int:
        return sum(1 for r in self.releases if r.flagged)

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def label(self) -> str:
        if self.failed:
            return f"Failed → {self.repo}"
        return self.repo

    @property
    def avatar_url(self) -> str:
        return f"https://github.com/{self.repo.split('/', 1)[0]}.png"


@dataclass(frozen=True)
class ViewModel:
    repos: tuple[RepoView, ...] = ()
    rate_limit_hit: bool = False
    rate_limit_reset: Optional[datetime] = None
    last_update_time: Optional[datetime] = None
    errors: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, object]:
        """JSON-friendly form including the derived per-repo counts."""
        return {
            "repos": [
                {
                    "repo": r.repo,
                    "label": r.label,
                    "avatar_url": r.avatar_url,
                    "release_count": r.release_count,
                    "breaking_count": r.breaking_count,
                    "error": r.error,
                    "releases": [asdict(rel) for rel in r.releases],
                }
                for r in self.repos
            ],
            "rate_limit_hit": self.rate_limit_hit,
            "rate_limit_reset": self.rate_limit_reset.isoformat() if self.rate_limit_reset else None,
            "last_update_time": self.last_update_time.isoformat() if self.last_update_time else None,
            "errors": list(self.errors),
        }
