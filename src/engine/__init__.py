"""Resolution and build orchestration engine.

- models.py: ModuleRef, ModuleNode, ResolvedGraph, CacheKey, BuildResult
- errors.py: resolution and build error taxonomy
- resolver.py: root module -> ResolvedGraph
- cache.py: at-most-once result store keyed by (module, variant)
- scheduler.py: dependency-ordered, parallel build execution

Only the data model and errors are re-exported here; import the resolver and
scheduler from their modules.
"""

from .errors import (
    BuildError,
    CacheConflictError,
    ConfigError,
    CycleError,
    DependencyFailed,
    LibforgeError,
    MissingModuleError,
    ResolutionError,
    SourceUnavailable,
    VersionConflictError,
)
from .models import (
    BuildResult,
    CacheKey,
    DiscoverySource,
    MatrixVariant,
    ModuleNode,
    ModuleRef,
    ResolvedGraph,
    VersionConstraint,
)

__all__ = [
    "BuildError",
    "CacheConflictError",
    "ConfigError",
    "CycleError",
    "DependencyFailed",
    "LibforgeError",
    "MissingModuleError",
    "ResolutionError",
    "SourceUnavailable",
    "VersionConflictError",
    "BuildResult",
    "CacheKey",
    "DiscoverySource",
    "MatrixVariant",
    "ModuleNode",
    "ModuleRef",
    "ResolvedGraph",
    "VersionConstraint",
]
