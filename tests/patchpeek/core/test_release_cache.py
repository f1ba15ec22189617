from __future__ import annotations

from datetime import timedelta

from conftest import NOW
from patchpeek.core.domain.models import Release
from patchpeek.core.services.release_cache import ReleaseCache


def _release(id: int, days_ago: float) -> Release:
    return Release(id=id, title=f"v{id}", published_at=NOW - timedelta(days=days_ago), body=f"notes {id}")


def test_get_unknown_repo_returns_empty_entry():
    cache = ReleaseCache()
    entry = cache.get("acme/widget")
    assert entry.releases == ()
    assert entry.etag is None
    assert not cache.has("acme/widget")


def test_get_returns_copy():
    cache = ReleaseCache()
    cache.upsert("acme/widget", '"e1"', [_release(1, 1)])
    cache.get("acme/widget").rendered_html[1] = "<p>tampered</p>"
    assert cache.get("acme/widget").rendered_html == {}


def test_upsert_keeps_html_of_surviving_releases():
    cache = ReleaseCache()
    cache.upsert("acme/widget", '"e1"', [_release(1, 1), _release(2, 2)])
    cache.set_rendered("acme/widget", 1, "<p>1</p>")
    cache.set_rendered("acme/widget", 2, "<p>2</p>")

    entry = cache.upsert("acme/widget", '"e2"', [_release(3, 0), _release(1, 1)])

    assert entry.etag == '"e2"'
    assert entry.rendered_html == {1: "<p>1</p>"}


def test_set_rendered_ignores_unknown_release():
    cache = ReleaseCache()
    cache.upsert("acme/widget", None, [_release(1, 1)])
    cache.set_rendered("acme/widget", 99, "<p>x</p>")
    cache.set_rendered("acme/other", 1, "<p>x</p>")
    assert cache.get("acme/widget").rendered_html == {}
    assert not cache.has("acme/other")


def test_prune_drops_unknown_repos_and_old_releases():
    cache = ReleaseCache()
    cache.upsert("acme/widget", None, [_release(1, 1), _release(2, 20)])
    cache.set_rendered("acme/widget", 2, "<p>2</p>")
    cache.upsert("acme/gone", None, [_release(3, 1)])

    cache.prune(["acme/widget"], NOW - timedelta(days=7))

    assert cache.repos() == ["acme/widget"]
    entry = cache.get("acme/widget")
    assert [r.id for r in entry.releases] == [1]
    assert entry.rendered_html == {}


def test_prune_is_idempotent():
    cache = ReleaseCache()
    cache.upsert("acme/widget", '"e"', [_release(1, 1), _release(2, 20)])
    cutoff = NOW - timedelta(days=7)

    cache.prune(["acme/widget"], cutoff)
    once = cache.get("acme/widget")
    cache.prune(["acme/widget"], cutoff)

    assert cache.get("acme/widget") == once


def test_remove_keeps_lock():
    cache = ReleaseCache()
    cache.upsert("acme/widget", None, [_release(1, 1)])
    lock = cache.lock_for("acme/widget")

    assert cache.remove("acme/widget") is True
    assert cache.remove("acme/widget") is False
    assert cache.lock_for("acme/widget") is lock


def test_reset_clears_everything():
    cache = ReleaseCache()
    cache.upsert("acme/widget", None, [_release(1, 1)])
    lock = cache.lock_for("acme/widget")

    cache.reset()

    assert cache.repos() == []
    assert cache.lock_for("acme/widget") is not lock
