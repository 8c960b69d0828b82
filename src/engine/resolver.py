"""Module resolver: root ModuleRef -> cycle-free ResolvedGraph.

Dependencies come from the formula's discovery hook when it runs and
declares something, else from the static manifest. One version per module
path: the first requirement seen fixes the version, later requirements are
only checked against it.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Optional, Tuple

from common.logging_utils import extra_context, is_debug_enabled
from engine.errors import CycleError, MissingModuleError, VersionConflictError
from engine.models import (
    DiscoverySource,
    ModuleNode,
    ModuleRef,
    ResolvedGraph,
    VersionConstraint,
)
from formula.context import DependencyCollector, Project
from formula.formula import FormulaRegistry
from formula.manifest import StaticManifest
from formula.source import SourceTree
from versioning.registry import ComparatorRegistry

logger = logging.getLogger(__name__)

SourceFactory = Callable[[ModuleRef], SourceTree]


@dataclass
class _Frame:
    """A module being resolved: constraints still to visit, deps chosen so far."""
    ref: ModuleRef
    source: DiscoverySource
    pending: Deque[VersionConstraint]
    deps: List[ModuleRef] = field(default_factory=list)


class Resolver:
    """Resolves a root module into a ResolvedGraph.

    Args:
        formulas: Registry providing discovery hooks.
        manifest: Static fallback dependency lists.
        comparators: Per-path version ordering; defaults to the registry's.
        source_factory: Builds the source tree handed to discovery hooks.
    """

    def __init__(
        self,
        formulas: FormulaRegistry,
        manifest: Optional[StaticManifest] = None,
        comparators: Optional[ComparatorRegistry] = None,
        source_factory: Optional[SourceFactory] = None,
    ):
        self.formulas = formulas
        self.manifest = manifest or StaticManifest()
        self.comparators = comparators or formulas.comparators
        self.source_factory = source_factory

    def resolve(self, root: ModuleRef) -> ResolvedGraph:
        """Resolve ``root`` and everything it depends on.

        Depth-first over an explicit stack of frames, so arbitrarily deep
        chains resolve without hitting the interpreter's recursion limit.

        Raises:
            CycleError: A dependency cycle was found.
            VersionConflictError: A requirement is newer than the chosen version.
            MissingModuleError: A module has neither discovery nor a manifest entry.
        """
        chosen: Dict[str, ModuleRef] = {root.path: root}
        nodes: Dict[ModuleRef, ModuleNode] = {}
        frames: List[_Frame] = [self._enter(root)]
        active: Dict[str, int] = {root.path: 0}  # path -> index in frames

        while frames:
            frame = frames[-1]
            if not frame.pending:
                frames.pop()
                del active[frame.ref.path]
                self._record(frame, nodes)
                continue

            constraint = frame.pending.popleft()
            if constraint.path in active:
                cycle = [str(f.ref) for f in frames[active[constraint.path]:]]
                cycle.append(str(chosen[constraint.path]))
                raise CycleError(cycle)

            existing = chosen.get(constraint.path)
            if existing is not None:
                comparator = self.comparators.for_path(constraint.path)
                if not comparator.satisfies(existing.version, constraint.from_ver):
                    raise VersionConflictError(
                        constraint.path, existing.version, constraint.from_ver, str(frame.ref)
                    )
                if existing not in frame.deps:
                    frame.deps.append(existing)
                continue

            dep_ref = ModuleRef(constraint.path, constraint.from_ver)
            chosen[constraint.path] = dep_ref
            frame.deps.append(dep_ref)
            active[dep_ref.path] = len(frames)
            frames.append(self._enter(dep_ref))

        graph = ResolvedGraph(root, nodes)
        logger.info("Resolved %s: %d module(s)", root, len(graph))
        return graph

    def _enter(self, ref: ModuleRef) -> "_Frame":
        declared, source = self._discover(ref)
        return _Frame(ref, source, deque(declared))

    @staticmethod
    def _record(frame: "_Frame", nodes: Dict[ModuleRef, ModuleNode]) -> None:
        nodes[frame.ref] = ModuleNode(
            ref=frame.ref, deps=tuple(frame.deps), discovery_source=frame.source
        )
        if is_debug_enabled(logger):
            logger.debug(
                "Resolved module",
                extra=extra_context(
                    event="resolve",
                    component="resolver",
                    action="record_node",
                    target=str(frame.ref),
                    outcome=frame.source.value,
                    count=len(frame.deps),
                )
            )

    def _discover(self, ref: ModuleRef) -> Tuple[Tuple[VersionConstraint, ...], DiscoverySource]:
        """Dependencies of ``ref``: discovery first, static manifest second."""
        comparator = self.comparators.for_path(ref.path)
        formula = self.formulas.lookup(ref.path, ref.version, comparator)
        discovered: Optional[Tuple[VersionConstraint, ...]] = None
        reason = "no formula"

        if formula is not None and formula.on_require is not None:
            source = self.source_factory(ref) if self.source_factory else None
            collector = DependencyCollector()
            try:
                formula.on_require(Project(ref, source), collector)
                discovered = collector.declared
            except Exception as exc:  # pylint: disable=broad-exception-caught
                reason = f"discovery failed: {exc}"
                logger.warning("Discovery for %s failed, trying static manifest: %s", ref, exc)
        elif formula is not None:
            reason = "formula has no discovery hook"

        if discovered:
            return discovered, DiscoverySource.DYNAMIC

        static = self.manifest.lookup(ref.path, ref.version)
        if static is not None:
            if discovered is None:
                logger.info("Using static manifest for %s (%s)", ref, reason)
            return static, DiscoverySource.STATIC_FALLBACK

        if discovered is not None:
            # discovery ran and found no dependencies: a leaf
            return discovered, DiscoverySource.DYNAMIC
        raise MissingModuleError(ref, reason)
