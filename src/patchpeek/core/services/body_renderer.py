from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..domain.errors import RateLimitedError, RenderError
from ..domain.models import Release, RenderOutcome
from ..ports.render_port import MarkdownRendererPort
from ...shared.utils import fallback_html

logger = logging.getLogger(__name__)


class ReleaseBodyRenderer:
    """Turns release notes into HTML without ever failing a refresh.

    Concurrent requests for the same release of the same repo join a single
    in-flight render instead of calling the backend twice.
    """

    def __init__(self, backend: MarkdownRendererPort) -> None:
        self._backend = backend
        self._in_flight: dict[tuple[str, int], asyncio.Task[RenderOutcome]] = {}

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def render(self, repo: str, release: Release, token: Optional[str] = None) -> RenderOutcome:
        if not release.body:
            return RenderOutcome(html="")

        key = (repo, release.id)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._render(repo, release, token))
            self._in_flight[key] = task
            task.add_done_callback(lambda _t, key=key: self._in_flight.pop(key, None))
        else:
            logger.debug(f"Joining in-flight render of {repo}#{release.id}")
        # One caller being cancelled must not cancel the render the others wait on.
        return await asyncio.shield(task)

    async def _render(self, repo: str, release: Release, token: Optional[str]) -> RenderOutcome:
        try:
            html = await self._backend.render(release.body, repo=repo, token=token)
            return RenderOutcome(html=html)
        except RateLimitedError as e:
            logger.warning(f"Render of {repo} {release.tag_name or release.id} rate limited: {e}")
            return RenderOutcome(html=fallback_html(release.body), ok=False, rate_limited=True)
        except RenderError as e:
            logger.warning(f"Render of {repo} {release.tag_name or release.id} failed, using plain text: {e}")
            return RenderOutcome(html=fallback_html(release.body), ok=False)
        except Exception as e:
            logger.warning(f"Render of {repo} {release.tag_name or release.id} failed unexpectedly: {type(e).__name__}")
            return RenderOutcome(html=fallback_html(release.body), ok=False)
