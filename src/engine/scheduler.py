"""Build scheduler: runs build hooks over a ResolvedGraph per matrix variant.

The calling thread only coordinates (cache lookups, dependency bookkeeping,
submitting work); build hooks run on a bounded thread pool. A node is
submitted once every dependency for the same variant has a terminal result,
so dependencies always finish before dependents start. Independent nodes of
any variant run in parallel. Keys are reserved in the shared ResultCache
before their hook runs, so schedulers sharing a cache wait for each other
instead of building the same key twice.
"""

from __future__ import annotations

import logging
import os
import threading
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Deque, Dict, Iterable, List, Optional, Set

from constants import Constants
from common.logging_utils import Timer, extra_context, is_debug_enabled
from engine.cache import ResultCache
from engine.errors import BuildError, CacheConflictError, DependencyFailed
from engine.models import BuildResult, CacheKey, MatrixVariant, ResolvedGraph
from formula.context import BuildContext
from formula.formula import Formula, FormulaRegistry
from versioning.registry import ComparatorRegistry

logger = logging.getLogger(__name__)

_POLL_INTERVAL_SEC = 0.2


class BuildScheduler:
    """Executes build hooks in dependency order with at most one build per key.

    Args:
        formulas: Registry providing build hooks.
        cache: Result cache; a fresh in-memory one when omitted.
        workers: Size of the worker pool.
        workspace: Root under which per-key output directories are allocated.
        check_output_dir: Record a BuildError when a successful hook leaves no
            output directory behind.
        step_timeout: Seconds allowed per toolchain step, handed to hooks.
        source_root: Local checkouts laid out as <root>/<path>/<version>/.
        comparators: Per-path ordering used to pick the formula serving a
            version; pass the resolver's so both pick the same formula.
            Defaults to the registry's own.
    """

    def __init__(
        self,
        formulas: FormulaRegistry,
        cache: Optional[ResultCache] = None,
        workers: Optional[int] = None,
        workspace: Optional[str] = None,
        check_output_dir: bool = False,
        step_timeout: Optional[float] = None,
        source_root: Optional[str] = None,
        comparators: Optional[ComparatorRegistry] = None,
    ):
        self.formulas = formulas
        self.cache = cache if cache is not None else ResultCache()
        self.workers = max(1, workers or Constants.MAX_WORKERS)
        self.workspace = workspace or Constants.WORKSPACE
        self.check_output_dir = check_output_dir
        self.step_timeout = step_timeout
        self.source_root = source_root
        self.comparators = comparators or formulas.comparators
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Stop scheduling new nodes; running hooks are left to finish."""
        if not self._cancel.is_set():
            logger.warning("Cancellation requested; waiting for running builds to finish")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def output_dir_for(self, key: CacheKey) -> str:
        return os.path.join(self.workspace, *key.ref.path.split("/"), key.ref.version, key.variant)

    def source_dir_for(self, key: CacheKey) -> Optional[str]:
        if not self.source_root:
            return None
        return os.path.join(self.source_root, *key.ref.path.split("/"), key.ref.version)

    def build(
        self, graph: ResolvedGraph, variants: Iterable[MatrixVariant]
    ) -> Dict[CacheKey, BuildResult]:
        """Build every node of ``graph`` for every variant.

        Returns a mapping of each reached key to its result. Failures never
        abort the run; after cancellation, keys never scheduled are absent.
        """
        variant_list = sorted(set(variants))
        if not variant_list:
            logger.warning("No matrix variants requested; nothing to build")
            return {}

        order = graph.topological_order()
        waiting_on: Dict[CacheKey, Set[CacheKey]] = {}
        dependents: Dict[CacheKey, List[CacheKey]] = {}
        ready: Deque[CacheKey] = deque()
        for variant in variant_list:
            for ref in order:
                key = CacheKey(ref, variant)
                deps = {CacheKey(dep, variant) for dep in graph[ref].deps}
                waiting_on[key] = deps
                for dep_key in deps:
                    dependents.setdefault(dep_key, []).append(key)
                if not deps:
                    ready.append(key)

        results: Dict[CacheKey, BuildResult] = {}
        futures: Dict[Future, CacheKey] = {}
        deferred: List[CacheKey] = []

        def finish(key: CacheKey, result: BuildResult) -> None:
            results[key] = result
            for dependent in dependents.get(key, ()):
                pending = waiting_on[dependent]
                pending.discard(key)
                if not pending:
                    ready.append(dependent)

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="libforge-build") as pool:
            while futures or deferred or (ready and not self.cancelled):
                while ready and not self.cancelled:
                    key = ready.popleft()
                    settled = self._settle(key, graph, results)
                    if settled is not None:
                        finish(key, settled)
                        continue
                    if not self.cache.try_reserve(key):
                        logger.debug("%s is being built elsewhere; waiting for its result", key)
                        deferred.append(key)
                        continue
                    future = self._submit(pool, key, graph)
                    if future is None:
                        finish(key, self._store(key, self._missing_formula(key)))
                    else:
                        futures[future] = key

                for key in list(deferred):
                    existing = self.cache.get(key)
                    if existing is not None:
                        deferred.remove(key)
                        finish(key, existing)
                    elif not self.cache.is_reserved(key):
                        # the other builder gave the key up without a result
                        deferred.remove(key)
                        ready.append(key)
                if self.cancelled and not futures:
                    break

                if futures:
                    done, _ = wait(list(futures), timeout=_POLL_INTERVAL_SEC, return_when=FIRST_COMPLETED)
                    for future in done:
                        key = futures.pop(future)
                        result = future.result()
                        finish(key, self._store(key, result))
                elif deferred:
                    self._cancel.wait(_POLL_INTERVAL_SEC)

        if self.cancelled:
            skipped = len(waiting_on) - len(results)
            logger.warning("Build cancelled: %d build(s) not scheduled", skipped)
        self._log_summary(results)
        return results

    def _settle(
        self, key: CacheKey, graph: ResolvedGraph, results: Dict[CacheKey, BuildResult]
    ) -> Optional[BuildResult]:
        """Resolve ``key`` without running a hook when possible."""
        cached = self.cache.get(key)
        if cached is not None:
            if is_debug_enabled(logger):
                logger.debug(
                    "Reusing cached result",
                    extra=extra_context(
                        event="cache_hit", component="scheduler", action="settle", target=str(key)
                    )
                )
            return cached

        failed = [
            CacheKey(dep, key.variant)
            for dep in graph[key.ref].deps
            if not results[CacheKey(dep, key.variant)].ok
        ]
        if failed:
            logger.warning("Skipping %s: dependency failed (%s)", key, ", ".join(map(str, failed)))
            return self._store(key, BuildResult(errs=[DependencyFailed(failed)]))
        return None

    def _store(self, key: CacheKey, result: BuildResult) -> BuildResult:
        try:
            self.cache.put(key, result)
        except CacheConflictError:
            logger.error("Result for %s was stored concurrently; keeping the first one", key)
            existing = self.cache.get(key)
            if existing is not None:
                return existing
        return result

    def _missing_formula(self, key: CacheKey) -> BuildResult:
        logger.error("No build formula serves %s", key.ref)
        return BuildResult(errs=[BuildError(f"no build formula for {key.ref}")])

    def _submit(self, pool: ThreadPoolExecutor, key: CacheKey, graph: ResolvedGraph) -> Optional[Future]:
        formula = self.formulas.lookup(
            key.ref.path, key.ref.version, self.comparators.for_path(key.ref.path)
        )
        if formula is None or formula.on_build is None:
            return None

        deps = graph[key.ref].deps
        install_dirs = {}
        metadata = {}
        for dep in deps:
            dep_result = self.cache.get(CacheKey(dep, key.variant))
            if dep_result is not None:
                install_dirs[dep] = dep_result.output_dir
                metadata[dep] = dep_result.metadata

        output_dir = self.output_dir_for(key)
        ctx = BuildContext(
            ref=key.ref,
            variant=key.variant,
            output_dir=output_dir,
            deps=deps,
            install_dirs=install_dirs,
            metadata=metadata,
            step_timeout=self.step_timeout,
            cancelled=lambda: self.cancelled,
            source_dir=self.source_dir_for(key),
        )
        logger.info("Building %s", key)
        return pool.submit(self._run_hook, formula, ctx, BuildResult(output_dir=output_dir))

    def _run_hook(self, formula: Formula, ctx: BuildContext, result: BuildResult) -> BuildResult:
        """Worker-side hook invocation; never raises."""
        with Timer() as t:
            try:
                formula.on_build(ctx, result)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.error("Build hook for %s [%s] raised: %s", ctx.ref, ctx.variant, exc)
                result.add_error(exc)

        if result.ok and self.check_output_dir and not os.path.isdir(result.output_dir):
            result.add_error(BuildError(f"output directory missing: {result.output_dir}"))

        if result.ok:
            logger.info("Built %s [%s] in %d ms", ctx.ref, ctx.variant, t.duration_ms())
        else:
            logger.error(
                "Build of %s [%s] failed: %s", ctx.ref, ctx.variant, "; ".join(map(str, result.errs))
            )
        return result

    @staticmethod
    def _log_summary(results: Dict[CacheKey, BuildResult]) -> None:
        failed = sum(1 for r in results.values() if r.errs and not r.dependency_failed)
        skipped = sum(1 for r in results.values() if r.dependency_failed)
        logger.info(
            "Build finished: %d succeeded, %d failed, %d skipped",
            len(results) - failed - skipped, failed, skipped,
        )
