"""Error taxonomy for resolution and builds."""

from __future__ import annotations

from typing import Iterable, Sequence, Tuple


class LibforgeError(Exception):
    """Base class for every error raised by the engine."""


class ConfigError(LibforgeError):
    """Configuration, manifest or formula file could not be used."""


class SourceUnavailable(LibforgeError):
    """A module source tree cannot serve the requested file."""


class CacheConflictError(LibforgeError):
    """A second result was stored under an occupied cache key."""


class ResolutionError(LibforgeError):
    """Resolution failed; aborts the invocation before any build runs."""

    kind = "resolution"


class CycleError(ResolutionError):
    """A module depends on itself, directly or transitively."""

    kind = "cycle"

    def __init__(self, cycle: Sequence[str]):
        self.cycle: Tuple[str, ...] = tuple(cycle)
        super().__init__("dependency cycle: " + " -> ".join(self.cycle))


class VersionConflictError(ResolutionError):
    """A dependency requires a newer version than the one already chosen."""

    kind = "conflict"

    def __init__(self, path: str, chosen: str, required: str, required_by: str):
        self.path = path
        self.chosen = chosen
        self.required = required
        self.required_by = required_by
        super().__init__(
            f"version conflict on {path}: {required_by} requires >= {required}, "
            f"but {chosen} was already chosen"
        )


class MissingModuleError(ResolutionError):
    """Neither discovery nor the static manifest could describe a module."""

    kind = "missing"

    def __init__(self, ref: object, reason: str = ""):
        self.ref = ref
        message = f"cannot resolve {ref}: no discovery hook and no manifest entry"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class BuildError(LibforgeError):
    """Recorded into a BuildResult; never raised out of the scheduler."""


class DependencyFailed(BuildError):
    """Synthesized for a node whose dependency did not build."""

    def __init__(self, failed: Iterable[object]):
        self.failed = tuple(failed)
        names = ", ".join(str(k) for k in self.failed)
        super().__init__(f"dependency failed: {names}")
