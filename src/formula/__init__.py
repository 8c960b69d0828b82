"""Formula declarations and the hook-facing objects.

Formula files import from here::

    from formula import Formula

    def on_require(project, deps):
        deps.require("madler/zlib", "v1.2.11")

    FORMULA = Formula("glennrp/libpng", "v1.6.0", on_require=on_require, on_build=...)
"""

from .context import BuildContext, DependencyCollector, Project
from .formula import Formula, FormulaRegistry
from .loader import load_formulas
from .manifest import StaticManifest, load_manifest
from .source import GitHubSourceTree, LocalSourceTree, SourceTree

__all__ = [
    "BuildContext",
    "DependencyCollector",
    "Project",
    "Formula",
    "FormulaRegistry",
    "load_formulas",
    "StaticManifest",
    "load_manifest",
    "GitHubSourceTree",
    "LocalSourceTree",
    "SourceTree",
]
