from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..config.urls import get_default_config_path
from ..core.domain.errors import ConfigError
from ..core.domain.models import DashboardConfig
from ..core.ports.config_port import ConfigStorePort
from .schemas import ConfigDocument

logger = logging.getLogger(__name__)


def _to_domain(doc: ConfigDocument) -> DashboardConfig:
    return DashboardConfig(
        repos=tuple(doc.repos),
        lookback_days=doc.lookback_days,
        github_token=doc.github_token,
    )


def _to_document(config: DashboardConfig) -> ConfigDocument:
    return ConfigDocument(
        repos=list(config.repos),
        lookback_days=config.lookback_days,
        github_token=config.github_token,
    )


class JsonConfigStore(ConfigStorePort):
    """Dashboard config persisted as a flat JSON document.

    The file is created with defaults when absent and every save goes through a
    temporary file in the same directory followed by ``os.replace``.
    """

    def __init__(self, path: Optional[str | Path] = None) -> None:
        self._path = Path(path) if path else get_default_config_path()
        self._config: DashboardConfig | None = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> DashboardConfig:
        if not self._path.exists():
            logger.info(f"No config at {self._path}, creating one with defaults")
            return self.set(DashboardConfig())

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            doc = ConfigDocument.model_validate(raw)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ConfigError(f"Invalid config file {self._path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file {self._path}: {e}") from e

        self._config = _to_domain(doc)
        logger.debug(f"Loaded config from {self._path}: {len(self._config.repos)} repos, {self._config.lookback_days} days")
        return self._config

    def get(self) -> DashboardConfig:
        if self._config is None:
            return self.load()
        return self._config

    def set(self, config: DashboardConfig) -> DashboardConfig:
        doc = _to_document(config)
        payload = json.dumps(doc.model_dump(mode="json"), indent=2)
        self._write_atomic(payload)
        self._config = _to_domain(doc)
        return self._config

    def _write_atomic(self, payload: str) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=".config-", suffix=".json", dir=self._path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, self._path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise ConfigError(f"Cannot write config file {self._path}: {e}") from e
