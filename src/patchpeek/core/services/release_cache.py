from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Optional, Sequence

from ..domain.models import CacheEntry, Release

logger = logging.getLogger(__name__)


class ReleaseCache:
    """Per-repository releases, their etag and rendered HTML.

    Lives for the whole process and is shared by the refresh orchestrator and
    the view-model builder. Writers hold ``lock_for(repo)`` so at most one
    refresh mutates an entry at a time.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, repo: str) -> CacheEntry:
        entry = self._entries.get(repo)
        if entry is None:
            return CacheEntry()
        return CacheEntry(etag=entry.etag, releases=entry.releases, rendered_html=dict(entry.rendered_html))

    def has(self, repo: str) -> bool:
        return repo in self._entries

    def repos(self) -> list[str]:
        return list(self._entries)

    def upsert(self, repo: str, etag: Optional[str], releases: Sequence[Release]) -> CacheEntry:
        """Replace releases and etag, keeping rendered HTML of ids still present."""
        previous = self._entries.get(repo)
        releases = tuple(releases)
        ids = {r.id for r in releases}
        rendered: dict[int, str] = {}
        if previous is not None:
            rendered = {rid: html for rid, html in previous.rendered_html.items() if rid in ids}
        entry = CacheEntry(etag=etag, releases=releases, rendered_html=rendered)
        self._entries[repo] = entry
        return entry

    def set_rendered(self, repo: str, release_id: int, html: str) -> None:
        entry = self._entries.get(repo)
        if entry is None or release_id not in entry.release_ids:
            logger.debug(f"Dropping rendered HTML for {repo}#{release_id}: release no longer cached")
            return
        entry.rendered_html[release_id] = html

    def remove(self, repo: str) -> bool:
        # Locks outlive entries: a refresh still holding one must keep excluding others.
        return self._entries.pop(repo, None) is not None

    def prune(self, known_repos: Iterable[str], cutoff: datetime) -> None:
        """Drop entries of unknown repos and releases published before ``cutoff``."""
        known = set(known_repos)
        for repo in list(self._entries):
            if repo not in known:
                logger.debug(f"Pruning cache entry for removed repo {repo}")
                self.remove(repo)
                continue
            entry = self._entries[repo]
            kept = tuple(r for r in entry.releases if r.published_at >= cutoff)
            if len(kept) == len(entry.releases):
                continue
            ids = {r.id for r in kept}
            entry.releases = kept
            entry.rendered_html = {rid: html for rid, html in entry.rendered_html.items() if rid in ids}

    def lock_for(self, repo: str) -> asyncio.Lock:
        lock = self._locks.get(repo)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[repo] = lock
        return lock

    def reset(self) -> None:
        self._entries.clear()
        self._locks.clear()
