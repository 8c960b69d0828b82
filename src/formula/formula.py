"""Formula declarations and the explicit formula registry."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

from versioning.compare import VersionComparator
from versioning.registry import ComparatorRegistry

logger = logging.getLogger(__name__)

# on_require(project, deps) declares dependencies; on_build(ctx, result) builds.
RequireHook = Callable[..., None]
BuildHook = Callable[..., None]


@dataclass
class Formula:
    """How to discover and build one module path from ``from_ver`` onward.

    Exactly one discovery handler and one build handler per formula; either
    may be None (no discovery means the static manifest is used, no build
    handler means the module cannot be built).
    """
    path: str
    from_ver: str
    on_require: Optional[RequireHook] = None
    on_build: Optional[BuildHook] = None
    comparator: Union[str, VersionComparator, None] = None

    def __str__(self) -> str:
        return f"{self.path} (from {self.from_ver})"


class FormulaRegistry:
    """Formulas by module path, passed explicitly to the resolver and scheduler."""

    def __init__(self, comparators: Optional[ComparatorRegistry] = None):
        self.comparators = comparators or ComparatorRegistry()
        self._by_path: Dict[str, List[Formula]] = {}

    def register(self, formula: Formula) -> Formula:
        """Add a formula; its comparator, if any, becomes the path's ordering."""
        if formula.comparator is not None:
            self.comparators.register(formula.path, formula.comparator)
        existing = self._by_path.setdefault(formula.path, [])
        for other in existing:
            if other.from_ver == formula.from_ver:
                logger.warning("Formula %s replaces an earlier one with the same from_ver", formula)
                existing.remove(other)
                break
        existing.append(formula)
        return formula

    def paths(self) -> List[str]:
        return sorted(self._by_path)

    def formulas_for(self, path: str) -> List[Formula]:
        return list(self._by_path.get(path, ()))

    def lookup(
        self, path: str, version: str, comparator: Optional[VersionComparator] = None
    ) -> Optional[Formula]:
        """Pick the formula with the greatest ``from_ver`` that ``version`` satisfies."""
        comparator = comparator or self.comparators.for_path(path)
        best: Optional[Formula] = None
        for formula in self._by_path.get(path, ()):
            if not comparator.satisfies(version, formula.from_ver):
                continue
            if best is None or comparator.compare(formula.from_ver, best.from_ver) > 0:
                best = formula
        return best

    def __contains__(self, path: object) -> bool:
        return path in self._by_path

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_path.values())
