from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional

from ..config.tokens import token_namespace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitSnapshot:
    resource: str
    limit: Optional[int]
    remaining: Optional[int]
    reset_at: Optional[datetime]

    @property
    def exhausted(self) -> bool:
        return self.remaining == 0


def _int_header(headers: Mapping[str, str], name: str) -> Optional[int]:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def reset_time_from_headers(headers: Mapping[str, str], now: Optional[datetime] = None) -> Optional[datetime]:
    """Reset time from ``X-RateLimit-Reset`` (epoch seconds) or ``Retry-After`` (seconds)."""
    reset = _int_header(headers, "x-ratelimit-reset")
    if reset is not None:
        return datetime.fromtimestamp(reset, tz=timezone.utc)
    retry_after = _int_header(headers, "retry-after")
    if retry_after is not None:
        return (now or datetime.now(timezone.utc)) + timedelta(seconds=retry_after)
    return None


class RateLimitTracker:
    """Remembers the last GitHub quota headers seen per token and resource.

    State is keyed by a hash of the token, never the token itself. GitHub
    reports a separate quota per resource (``core``, ``search``, ...) through
    the ``X-RateLimit-Resource`` header.

    Example:
        tracker = RateLimitTracker()
        tracker.observe(response.headers, token="ghp_xxx")
        reset_at = tracker.blocked_until(token="ghp_xxx", now=clock.now())
    """

    def __init__(self) -> None:
        self._snapshots: dict[tuple[str, str], RateLimitSnapshot] = {}

    def observe(self, headers: Mapping[str, str], *, token: Optional[str]) -> Optional[RateLimitSnapshot]:
        remaining = _int_header(headers, "x-ratelimit-remaining")
        if remaining is None:
            return None
        snapshot = RateLimitSnapshot(
            resource=headers.get("x-ratelimit-resource", "core"),
            limit=_int_header(headers, "x-ratelimit-limit"),
            remaining=remaining,
            reset_at=reset_time_from_headers(headers),
        )
        self._snapshots[(token_namespace(token), snapshot.resource)] = snapshot
        return snapshot

    def mark_exhausted(self, *, token: Optional[str], reset_at: Optional[datetime], resource: str = "core") -> None:
        self._snapshots[(token_namespace(token), resource)] = RateLimitSnapshot(
            resource=resource, limit=None, remaining=0, reset_at=reset_at
        )

    def snapshot(self, *, token: Optional[str], resource: str = "core") -> Optional[RateLimitSnapshot]:
        return self._snapshots.get((token_namespace(token), resource))

    def blocked_until(self, *, token: Optional[str], now: datetime, resource: str = "core") -> Optional[datetime]:
        """Return the reset time while the quota is known to be exhausted, else None."""
        snap = self.snapshot(token=token, resource=resource)
        if snap is None or not snap.exhausted or snap.reset_at is None:
            return None
        if snap.reset_at <= now:
            return None
        return snap.reset_at

    def clear(self) -> None:
        self._snapshots.clear()
