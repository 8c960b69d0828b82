"""Per-module comparator lookup."""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional, Union

from constants import Comparators
from engine.errors import ConfigError
from versioning.compare import DEFAULT_COMPARATOR, DebianComparator, VersionComparator
from versioning.strategies import Pep440Comparator, SemverComparator

logger = logging.getLogger(__name__)

_STRATEGIES = {
    Comparators.DEBIAN.value: DebianComparator,
    Comparators.SEMVER.value: SemverComparator,
    Comparators.PEP440.value: Pep440Comparator,
}


def get_strategy(name: str) -> VersionComparator:
    """Instantiate a named ordering strategy.

    Raises:
        ConfigError: If the name is unknown.
    """
    try:
        return _STRATEGIES[name.strip().lower()]()
    except KeyError:
        raise ConfigError(
            f"unknown version comparator '{name}' (choose from: {', '.join(sorted(_STRATEGIES))})"
        ) from None


class ComparatorRegistry:
    """Maps module paths to their comparator; unknown paths get the default."""

    def __init__(self, default: Optional[VersionComparator] = None):
        self._default = default or DEFAULT_COMPARATOR
        self._by_path: Dict[str, VersionComparator] = {}

    @classmethod
    def from_config(cls, default: str, overrides: Mapping[str, str]) -> "ComparatorRegistry":
        """Build a registry from strategy names, e.g. config file values."""
        registry = cls(get_strategy(default))
        for path, name in (overrides or {}).items():
            registry.register(path, name)
        return registry

    @property
    def default(self) -> VersionComparator:
        return self._default

    def register(self, path: str, comparator: Union[str, VersionComparator]) -> None:
        if isinstance(comparator, str):
            comparator = get_strategy(comparator)
        previous = self._by_path.get(path)
        if previous is not None and type(previous) is not type(comparator):
            logger.warning(
                "Comparator for %s replaced: %s -> %s", path, previous.name, comparator.name
            )
        self._by_path[path] = comparator

    def for_path(self, path: str) -> VersionComparator:
        return self._by_path.get(path, self._default)

    def __contains__(self, path: object) -> bool:
        return path in self._by_path
