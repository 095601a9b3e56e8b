"""
Source adapter class registry and factory.
"""

from __future__ import annotations

import importlib
from collections.abc import Mapping

from app.scraping.adapters import (
    DisclosuresAdapter,
    FilingsAdapter,
    HoldingsAdapter,
    SourceAdapter,
    StatisticsAdapter,
)
from app.scraping.config.models import SourceConfig
from app.scraping.errors import ConfigError


class AdapterRegistry:
    """
    Adapter registry supporting built-ins and dynamic import paths.
    """

    def __init__(self, registrations: Mapping[str, type[SourceAdapter]] | None = None) -> None:
        builtins: dict[str, type[SourceAdapter]] = {
            FilingsAdapter.source: FilingsAdapter,
            HoldingsAdapter.source: HoldingsAdapter,
            StatisticsAdapter.source: StatisticsAdapter,
            DisclosuresAdapter.source: DisclosuresAdapter,
        }
        if registrations:
            builtins.update(registrations)
        self._registrations = builtins

    def register(self, *, source: str, adapter_class: type[SourceAdapter]) -> None:
        self._registrations[source.strip().lower()] = adapter_class

    def sources(self) -> list[str]:
        return sorted(self._registrations)

    def create_adapter(self, config: SourceConfig) -> SourceAdapter:
        adapter_class = self._resolve_adapter_class(config)
        return adapter_class(config)

    def _resolve_adapter_class(self, config: SourceConfig) -> type[SourceAdapter]:
        if config.adapter_class:
            return self._load_dynamic_class(config.adapter_class)

        resolved = self._registrations.get(config.name)
        if resolved is None:
            allowed = ", ".join(sorted(self._registrations.keys()))
            raise ConfigError(f"No adapter registered for source='{config.name}'. Known sources: {allowed}.")
        return resolved

    @staticmethod
    def _load_dynamic_class(path: str) -> type[SourceAdapter]:
        if ":" not in path:
            raise ConfigError(f"Invalid adapter_class '{path}'. Use 'module.path:ClassName'.")

        module_path, class_name = path.split(":", 1)
        module = importlib.import_module(module_path)
        loaded = getattr(module, class_name, None)
        if loaded is None:
            raise ConfigError(f"Unable to resolve adapter class '{path}'.")
        if not isinstance(loaded, type) or not issubclass(loaded, SourceAdapter):
            raise ConfigError(f"Class '{path}' must inherit from SourceAdapter.")
        return loaded
