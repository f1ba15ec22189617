"""patchpeek package: app/core/infra/shared.

GitHub releases dashboard engine: fetch, cache, render and flag releases
with breaking changes. Expose the library client at the package level.
"""

__version__ = "0.3.0"

from .app.api import AppConfig, PatchPeekClient

import logging

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = [
    "PatchPeekClient",
    "AppConfig",
    "__version__",
]
