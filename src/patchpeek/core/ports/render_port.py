from __future__ import annotations

from typing import Optional, Protocol


class MarkdownRendererPort(Protocol):
    async def render(self, text: str, *, repo: str, token: Optional[str] = None) -> str:
        """Return HTML for ``text``; ``repo`` resolves issue and commit references.

        Raises RateLimitedError when the rendering quota is exhausted and
        RenderError for any other failure.
        """
        ...
