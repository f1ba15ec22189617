"""tests/patchpeek/conftest.py

Common fixtures for the entire test suite.
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = NOW) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> None:
        self._now = self._now + timedelta(**kwargs)


def gh_release(
    id: int,
    *,
    days_ago: float,
    body: str = "",
    name: str | None = None,
    draft: bool = False,
    prerelease: bool = False,
    now: datetime = NOW,
) -> dict:
    """GitHub-shaped release JSON published ``days_ago`` before ``now``."""
    published = (now - timedelta(days=days_ago)).strftime("%Y-%m-%dT%H:%M:%SZ")
    return {
        "id": id,
        "tag_name": f"v{id}",
        "name": name if name is not None else f"Release {id}",
        "body": body,
        "draft": draft,
        "prerelease": prerelease,
        "published_at": None if draft else published,
        "html_url": f"https://github.com/acme/widget/releases/tag/v{id}",
    }


class FakeGitHub:
    """In-memory GitHub REST API served through ``httpx.MockTransport``.

    Release listings are paginated from the registered list; an etag can be
    attached per repo so conditional requests answer 304.
    """

    def __init__(self, per_page: int = 30) -> None:
        self.per_page = per_page
        self.releases: dict[str, list[dict]] = {}
        self.etags: dict[str, str] = {}
        self.failures: dict[str, httpx.Response] = {}
        self.markdown_failure: httpx.Response | None = None
        self.calls: list[httpx.Request] = []

    def add_repo(self, repo: str, releases: list[dict], etag: str | None = None) -> None:
        self.releases[repo] = releases
        if etag:
            self.etags[repo] = etag

    def fail(self, repo: str, status_code: int, headers: dict | None = None, message: str = "error") -> None:
        self.failures[repo] = httpx.Response(status_code, json={"message": message}, headers=headers or {})

    def rate_limit(self, repo: str, reset: int = 1_900_000_000) -> None:
        self.fail(
            repo,
            403,
            headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Limit": "60", "X-RateLimit-Reset": str(reset)},
            message="API rate limit exceeded",
        )

    def release_calls(self, repo: str) -> list[httpx.Request]:
        return [r for r in self.calls if r.url.path == f"/repos/{repo}/releases"]

    def markdown_calls(self) -> list[httpx.Request]:
        return [r for r in self.calls if r.url.path == "/markdown"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path
        if request.method == "POST" and path == "/markdown":
            if self.markdown_failure is not None:
                return self.markdown_failure
            payload = json.loads(request.content)
            return httpx.Response(200, text=f"<p>{payload['text']}</p>", headers={"Content-Type": "text/html"})

        if request.method == "GET" and path.startswith("/repos/") and path.endswith("/releases"):
            repo = path[len("/repos/"):-len("/releases")]
            if repo in self.failures:
                return self.failures[repo]
            if repo not in self.releases:
                return httpx.Response(404, json={"message": "Not Found"})
            etag = self.etags.get(repo)
            page = int(request.url.params.get("page", "1"))
            per_page = int(request.url.params.get("per_page", str(self.per_page)))
            if page == 1 and etag and request.headers.get("if-none-match") == etag:
                return httpx.Response(304, headers={"ETag": etag})
            start = (page - 1) * per_page
            items = self.releases[repo][start:start + per_page]
            headers = {"X-RateLimit-Remaining": "4999", "X-RateLimit-Limit": "5000", "X-RateLimit-Reset": "1900000000"}
            if etag:
                headers["ETag"] = etag
            return httpx.Response(200, json=items, headers=headers)

        return httpx.Response(404, json={"message": f"Mock URL not found: {request.method} {request.url}"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture(scope="session")
def runner() -> CliRunner:
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def config_path(tmp_path: Path, monkeypatch) -> Path:
    """Dashboard config file isolated per test."""
    path = tmp_path / "config" / "config.json"
    monkeypatch.setenv("PATCHPEEK_CONFIG_PATH", str(path))
    return path
