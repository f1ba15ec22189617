from __future__ import annotations

from typing import Protocol

from ..domain.models import DashboardConfig


class ConfigStorePort(Protocol):
    def get(self) -> DashboardConfig:
        """Return the current dashboard config, loading it on first use."""
        ...

    def set(self, config: DashboardConfig) -> DashboardConfig:
        """Persist ``config`` and make it current."""
        ...

    def update(self, **changes) -> DashboardConfig:
        """Persist the current config with ``changes`` applied and return it."""
        return self.set(self.get().with_updates(**changes))
