"""Data models shared by the resolver, the result cache and the scheduler."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from engine.errors import BuildError, DependencyFailed

# Opaque platform/architecture identifier, e.g. "amd64-linux".
MatrixVariant = str


class DiscoverySource(Enum):
    """Where a node's dependency list came from."""
    DYNAMIC = "dynamic"
    STATIC_FALLBACK = "static_fallback"


@dataclass(frozen=True)
class ModuleRef:
    """A module path pinned to a version tag."""
    path: str  # e.g. "madler/zlib"
    version: str

    def __str__(self) -> str:
        return f"{self.path}@{self.version}"

    @classmethod
    def parse(cls, token: str, default_version: str = "") -> "ModuleRef":
        """Parse ``path@version``; the version part is optional."""
        token = token.strip()
        if "@" in token:
            path, version = token.rsplit("@", 1)
            return cls(path.strip(), version.strip())
        return cls(token, default_version)


@dataclass(frozen=True)
class VersionConstraint:
    """A declared dependency: ``path`` at ``from_ver`` or newer."""
    path: str
    from_ver: str

    def __str__(self) -> str:
        return f"{self.path}>={self.from_ver}"


@dataclass(frozen=True)
class ModuleNode:
    """A resolved module and the refs it depends on."""
    ref: ModuleRef
    deps: Tuple[ModuleRef, ...]
    discovery_source: DiscoverySource


@dataclass(frozen=True)
class CacheKey:
    """Identity of one build: a module ref for one matrix variant."""
    ref: ModuleRef
    variant: MatrixVariant

    def __str__(self) -> str:
        return f"{self.ref} [{self.variant}]"


class ResolvedGraph(Mapping):
    """Read-only mapping of ModuleRef to ModuleNode rooted at ``root``.

    Each entry implies an edge ``ref -> dep`` for every ``dep`` in
    ``node.deps``. Built once by the resolver and never mutated.
    """

    def __init__(self, root: ModuleRef, nodes: Dict[ModuleRef, ModuleNode]):
        self._root = root
        self._nodes = dict(nodes)
        self._dependents: Dict[ModuleRef, List[ModuleRef]] = {ref: [] for ref in self._nodes}
        for node in self._nodes.values():
            for dep in node.deps:
                self._dependents.setdefault(dep, []).append(node.ref)

    @property
    def root(self) -> ModuleRef:
        return self._root

    def __getitem__(self, ref: ModuleRef) -> ModuleNode:
        return self._nodes[ref]

    def __iter__(self) -> Iterator[ModuleRef]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"ResolvedGraph(root={self._root}, nodes={len(self._nodes)})"

    def find(self, path: str) -> Optional[ModuleNode]:
        """Return the node resolved for ``path``, if any."""
        for node in self._nodes.values():
            if node.ref.path == path:
                return node
        return None

    def dependents_of(self, ref: ModuleRef) -> Tuple[ModuleRef, ...]:
        """Refs that list ``ref`` as a direct dependency."""
        return tuple(self._dependents.get(ref, ()))

    def topological_order(self) -> List[ModuleRef]:
        """Dependencies strictly before dependents.

        Depth-first post-order over insertion order, so the result is stable
        for a given graph.
        """
        order: List[ModuleRef] = []
        seen = set()
        for start in self._nodes:
            if start in seen:
                continue
            seen.add(start)
            stack = [(start, iter(self._nodes[start].deps))]
            while stack:
                ref, deps = stack[-1]
                dep = next(deps, None)
                if dep is None:
                    stack.pop()
                    order.append(ref)
                elif dep not in seen:
                    seen.add(dep)
                    stack.append((dep, iter(self._nodes[dep].deps)))
        return order


def _error_to_dict(err: BuildError) -> Dict[str, Any]:
    entry: Dict[str, Any] = {"type": type(err).__name__, "message": str(err)}
    if isinstance(err, DependencyFailed):
        entry["failed"] = [str(k) for k in err.failed]
    return entry


def _error_from_dict(entry: Dict[str, Any]) -> BuildError:
    """Rebuild a persisted error; unknown types come back as BuildError."""
    if entry.get("type") == DependencyFailed.__name__:
        return DependencyFailed(entry.get("failed") or ())
    return BuildError(str(entry.get("message", "")))


@dataclass
class BuildResult:
    """Outcome of building one module for one matrix variant.

    ``metadata`` carries linker/compiler flags dependents need (e.g. ``-lz``).
    ``errs`` is non-empty iff the build failed.
    """
    output_dir: str = ""
    metadata: str = ""
    errs: List[BuildError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errs

    @property
    def dependency_failed(self) -> bool:
        return any(isinstance(e, DependencyFailed) for e in self.errs)

    def add_error(self, err: Any) -> None:
        """Record a failure; plain strings and foreign exceptions are wrapped."""
        if isinstance(err, BuildError):
            self.errs.append(err)
        elif isinstance(err, BaseException):
            self.errs.append(BuildError(f"{type(err).__name__}: {err}"))
        else:
            self.errs.append(BuildError(str(err)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output_dir": self.output_dir,
            "metadata": self.metadata,
            "errors": [_error_to_dict(e) for e in self.errs],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BuildResult":
        result = cls(
            output_dir=str(data.get("output_dir", "")),
            metadata=str(data.get("metadata", "")),
        )
        for err in data.get("errors") or []:
            result.errs.append(_error_from_dict(err))
        return result
