"""Configuration store boundary.

Persisting configurations belongs to the desktop application. The
service layer only needs to look them up, through ConfigStore.
"""

from collections.abc import Iterable
from typing import Protocol

from ..llm.base import ProviderConfig


class ConfigStore(Protocol):
    """Protocol for configuration lookup - enables dependency injection."""

    def get(self, config_id: str) -> ProviderConfig | None:
        """Get a configuration by id, or None if unknown."""
        ...

    def list_configs(self) -> list[ProviderConfig]:
        """Get all configurations."""
        ...


class InMemoryConfigStore:
    """Dict-backed ConfigStore, for tests and the CLI."""

    def __init__(self, configs: Iterable[ProviderConfig] = ()) -> None:
        self._configs: dict[str, ProviderConfig] = {config.id: config for config in configs}

    def get(self, config_id: str) -> ProviderConfig | None:
        return self._configs.get(config_id)

    def list_configs(self) -> list[ProviderConfig]:
        return list(self._configs.values())

    def save(self, config: ProviderConfig) -> None:
        self._configs[config.id] = config

    def delete(self, config_id: str) -> None:
        self._configs.pop(config_id, None)
