"""Shared fixtures: isolated Constants and small formula-graph builders."""

import threading

import pytest

from constants import Constants
from engine.models import ModuleRef
from formula.formula import Formula, FormulaRegistry


@pytest.fixture(autouse=True)
def restore_constants():
    """Config loading mutates Constants; undo it after each test."""
    saved = {
        name: value
        for name, value in vars(Constants).items()
        if name.isupper()
    }
    yield
    for name, value in saved.items():
        setattr(Constants, name, value)


class HookRecorder:
    """Build hook factory that counts invocations per (path, variant)."""

    def __init__(self, fail=None, raise_on=None, metadata=None):
        self.calls = []
        self.fail = set(fail or ())          # {(path, variant)}
        self.raise_on = set(raise_on or ())  # {(path, variant)}
        self.metadata = metadata or {}
        self.install_dirs_seen = {}
        self._lock = threading.Lock()

    def __call__(self, ctx, result):
        with self._lock:
            self.calls.append((ctx.ref.path, ctx.variant))
            self.install_dirs_seen[(ctx.ref.path, ctx.variant)] = {
                dep.path: ctx.install_dir_of(dep) for dep in ctx.deps
            }
        key = (ctx.ref.path, ctx.variant)
        if key in self.raise_on:
            raise RuntimeError(f"boom in {ctx.ref.path}")
        if key in self.fail:
            result.add_error(f"toolchain failed for {ctx.ref.path}")
            return
        result.metadata = self.metadata.get(ctx.ref.path, "")

    def count(self, path, variant=None):
        return sum(1 for p, v in self.calls if p == path and (variant is None or v == variant))


def make_registry(deps, build_hook=None, from_ver="0"):
    """Registry with one discovery-backed formula per path.

    ``deps`` maps path -> list of (dep_path, min_ver).
    """
    registry = FormulaRegistry()
    for path, declared in deps.items():
        def on_require(project, collector, _declared=declared):
            for dep_path, min_ver in _declared:
                collector.require(dep_path, min_ver)
        registry.register(Formula(path, from_ver, on_require=on_require, on_build=build_hook))
    return registry


@pytest.fixture
def recorder():
    return HookRecorder()


@pytest.fixture
def root_x():
    return ModuleRef("acme/x", "1.0")
