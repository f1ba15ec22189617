from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from conftest import NOW, FakeGitHub, FixedClock, gh_release
from patchpeek.core.domain.errors import RateLimitedError, RepoNotFoundError, UpstreamError
from patchpeek.infra.github_releases import GitHubReleaseFetcher
from patchpeek.infra.http_client import AsyncHttpClient
from patchpeek.infra.rate_limiter import RateLimitTracker

API = "https://api.github.test"
CUTOFF = NOW - timedelta(days=30)


def _fetcher(fake: FakeGitHub, *, per_page: int = 30, max_pages: int = 10, tracker: RateLimitTracker | None = None):
    http = AsyncHttpClient(transport=fake.transport, rate_limit_tracker=tracker)
    return GitHubReleaseFetcher(http, api_url=API, per_page=per_page, max_pages=max_pages, clock=FixedClock())


@pytest.mark.asyncio
async def test_fetch_filters_drafts_and_prereleases_and_stops_at_cutoff(fake_github):
    fake_github.add_repo(
        "acme/widget",
        [
            gh_release(5, days_ago=1, body="BREAKING CHANGE: x"),
            gh_release(4, days_ago=2, draft=True),
            gh_release(3, days_ago=3, prerelease=True),
            gh_release(2, days_ago=10),
            gh_release(1, days_ago=40),
        ],
    )

    result = await _fetcher(fake_github).fetch_releases("acme/widget", token=None, cutoff=CUTOFF)

    assert [r.id for r in result.releases] == [5, 2]
    assert result.releases[0].title == "Release 5"
    assert result.releases[0].body == "BREAKING CHANGE: x"
    assert result.releases[0].published_at.tzinfo is not None
    assert result.not_modified is False


@pytest.mark.asyncio
async def test_fetch_paginates_until_too_old_release(fake_github):
    releases = [gh_release(100 - i, days_ago=i) for i in range(0, 12)]
    fake_github.add_repo("acme/widget", releases)

    result = await _fetcher(fake_github, per_page=5).fetch_releases(
        "acme/widget", token=None, cutoff=NOW - timedelta(days=7, hours=12)
    )

    assert [r.id for r in result.releases] == [100 - i for i in range(0, 8)]
    # Page 2 ends at day 9, the first too-old release is on page 2: no page 3.
    pages = [int(r.url.params["page"]) for r in fake_github.release_calls("acme/widget")]
    assert pages == [1, 2]


@pytest.mark.asyncio
async def test_fetch_stops_on_empty_page(fake_github):
    fake_github.add_repo("acme/widget", [gh_release(i, days_ago=1) for i in range(4)])

    result = await _fetcher(fake_github, per_page=2).fetch_releases("acme/widget", token=None, cutoff=CUTOFF)

    assert len(result.releases) == 4
    pages = [int(r.url.params["page"]) for r in fake_github.release_calls("acme/widget")]
    assert pages == [1, 2, 3]


@pytest.mark.asyncio
async def test_fetch_respects_max_pages(fake_github):
    fake_github.add_repo("acme/widget", [gh_release(i, days_ago=0.1) for i in range(10)])

    result = await _fetcher(fake_github, per_page=2, max_pages=2).fetch_releases("acme/widget", token=None, cutoff=CUTOFF)

    assert len(result.releases) == 4
    assert len(fake_github.release_calls("acme/widget")) == 2


@pytest.mark.asyncio
async def test_fetch_sends_token_and_returns_etag(fake_github):
    fake_github.add_repo("acme/widget", [gh_release(1, days_ago=1)], etag='"abc"')

    result = await _fetcher(fake_github).fetch_releases("acme/widget", token="ghp_x", cutoff=CUTOFF)

    assert result.etag == '"abc"'
    request = fake_github.release_calls("acme/widget")[0]
    assert request.headers["authorization"] == "token ghp_x"
    assert "if-none-match" not in request.headers


@pytest.mark.asyncio
async def test_fetch_not_modified_returns_cached_list(fake_github):
    fake_github.add_repo("acme/widget", [gh_release(1, days_ago=1), gh_release(2, days_ago=2)], etag='"abc"')
    fetcher = _fetcher(fake_github)
    first = await fetcher.fetch_releases("acme/widget", token=None, cutoff=CUTOFF)

    # Upstream content changes but the etag does not: the cached list wins.
    fake_github.releases["acme/widget"] = [gh_release(9, days_ago=1)]
    second = await fetcher.fetch_releases(
        "acme/widget", token=None, cutoff=CUTOFF, etag=first.etag, cached=first.releases
    )

    assert second.not_modified is True
    assert second.releases == first.releases
    assert second.etag == '"abc"'
    assert fake_github.release_calls("acme/widget")[-1].headers["if-none-match"] == '"abc"'


@pytest.mark.asyncio
async def test_fetch_force_bypasses_etag(fake_github):
    fake_github.add_repo("acme/widget", [gh_release(9, days_ago=1)], etag='"abc"')

    result = await _fetcher(fake_github).fetch_releases(
        "acme/widget", token=None, cutoff=CUTOFF, etag='"abc"', cached=(), force=True
    )

    assert [r.id for r in result.releases] == [9]
    assert result.not_modified is False
    assert "if-none-match" not in fake_github.release_calls("acme/widget")[0].headers


@pytest.mark.asyncio
async def test_fetch_404_raises_not_found(fake_github):
    with pytest.raises(RepoNotFoundError) as exc:
        await _fetcher(fake_github).fetch_releases("acme/missing", token=None, cutoff=CUTOFF)
    assert exc.value.repo == "acme/missing"


@pytest.mark.asyncio
async def test_fetch_rate_limit_raises_with_reset_time(fake_github):
    fake_github.rate_limit("acme/widget", reset=1_900_000_000)

    with pytest.raises(RateLimitedError) as exc:
        await _fetcher(fake_github).fetch_releases("acme/widget", token=None, cutoff=CUTOFF)

    assert exc.value.reset_at == datetime.fromtimestamp(1_900_000_000, tz=timezone.utc)


@pytest.mark.asyncio
async def test_fetch_403_without_exhausted_quota_is_upstream_error(fake_github):
    fake_github.fail("acme/widget", 403, headers={"X-RateLimit-Remaining": "12"}, message="Resource not accessible")

    with pytest.raises(UpstreamError) as exc:
        await _fetcher(fake_github).fetch_releases("acme/widget", token=None, cutoff=CUTOFF)
    assert not isinstance(exc.value, RateLimitedError)
    assert "Resource not accessible" in str(exc.value)


@pytest.mark.asyncio
async def test_fetch_500_is_upstream_error(fake_github):
    fake_github.fail("acme/widget", 502)

    with pytest.raises(UpstreamError):
        await _fetcher(fake_github).fetch_releases("acme/widget", token=None, cutoff=CUTOFF)


@pytest.mark.asyncio
async def test_fetch_network_error_is_upstream_error():
    def boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    http = AsyncHttpClient(transport=httpx.MockTransport(boom))
    fetcher = GitHubReleaseFetcher(http, api_url=API)

    with pytest.raises(UpstreamError):
        await fetcher.fetch_releases("acme/widget", token=None, cutoff=CUTOFF)


@pytest.mark.asyncio
async def test_fetch_skips_request_while_quota_known_exhausted(fake_github):
    fake_github.add_repo("acme/widget", [gh_release(1, days_ago=1)])
    tracker = RateLimitTracker()
    tracker.mark_exhausted(token=None, reset_at=NOW + timedelta(minutes=10))

    with pytest.raises(RateLimitedError):
        await _fetcher(fake_github, tracker=tracker).fetch_releases("acme/widget", token=None, cutoff=CUTOFF)
    assert fake_github.release_calls("acme/widget") == []

    # A different token has its own quota.
    result = await _fetcher(fake_github, tracker=tracker).fetch_releases("acme/widget", token="ghp_other", cutoff=CUTOFF)
    assert len(result.releases) == 1
