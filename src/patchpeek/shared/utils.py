from __future__ import annotations

import html
import re
from datetime import datetime, timedelta

GITHUB_REPO_URL_RE = re.compile(
    r"^(?:https?://)?(?:www\.)?github\.com/(?P<owner>[^/\s]+)/(?P<name>[^/\s]+)(?:/.*)?$",
    re.IGNORECASE,
)
REPO_SLUG_RE = re.compile(r"^(?P<owner>[A-Za-z0-9](?:[A-Za-z0-9-]{0,38}))/(?P<name>[A-Za-z0-9._-]{1,100})$")

BREAKING_KEYWORDS: tuple[str, ...] = (
    "breaking change",
    "breaking changes",
    "caution",
    "important",
)

def normalize_repo_slug(value: str) -> str:
    """Turn a bare ``owner/name`` or any github.com repository URL into ``owner/name``.

    Input that is not a GitHub URL is returned trimmed; callers validate the
    shape with :func:`is_valid_repo_slug`.

    Examples:
        >>> normalize_repo_slug("https://github.com/acme/widget/releases.atom")
        'acme/widget'
        >>> normalize_repo_slug(" acme/widget ")
        'acme/widget'
    """
    trimmed = value.strip()
    m = GITHUB_REPO_URL_RE.match(trimmed)
    if not m:
        return trimmed.strip("/")
    name = m.group("name")
    if name.lower().endswith(".git"):
        name = name[:-4]
    return f"{m.group('owner')}/{name}"

def is_valid_repo_slug(slug: str) -> bool:
    return REPO_SLUG_RE.match(slug) is not None

def is_flagged(text: str | None) -> bool:
    if not text:
        return False
    lowered = text.lower()
    return any(k in lowered for k in BREAKING_KEYWORDS)

def fallback_html(text: str) -> str:
    """Escaped raw text in a preformatted block, shown when rendering fails."""
    if not text:
        return ""
    return f"<pre>{html.escape(text)}</pre>"


def cutoff_for(now: datetime, lookback_days: int) -> datetime:
    return now - timedelta(days=lookback_days)
