"""Objects handed to formula hooks."""

from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional, Tuple

from engine.errors import SourceUnavailable
from engine.models import MatrixVariant, ModuleRef, VersionConstraint
from formula.source import SourceTree


class Project:
    """What a discovery hook sees of the module being resolved."""

    def __init__(self, ref: ModuleRef, source: Optional[SourceTree] = None):
        self.ref = ref
        self._source = source

    @property
    def path(self) -> str:
        return self.ref.path

    @property
    def version(self) -> str:
        return self.ref.version

    def read_file(self, name: str) -> str:
        if self._source is None:
            raise SourceUnavailable(f"{self.ref}: no source tree configured")
        return self._source.read_file(name)


class DependencyCollector:
    """Collects ``(path, min_ver)`` declarations in declaration order."""

    def __init__(self) -> None:
        self._declared: List[VersionConstraint] = []

    def require(self, path: str, min_ver: str) -> None:
        constraint = VersionConstraint(path.strip(), min_ver.strip())
        if not constraint.path or not constraint.from_ver:
            raise ValueError(f"dependency needs a path and a version: {path!r} {min_ver!r}")
        if constraint not in self._declared:
            self._declared.append(constraint)

    @property
    def declared(self) -> Tuple[VersionConstraint, ...]:
        return tuple(self._declared)

    def __len__(self) -> int:
        return len(self._declared)


class BuildContext:
    """What a build hook sees for one (module, variant) build."""

    def __init__(
        self,
        ref: ModuleRef,
        variant: MatrixVariant,
        output_dir: str,
        deps: Tuple[ModuleRef, ...],
        install_dirs: Mapping[ModuleRef, str],
        metadata: Mapping[ModuleRef, str],
        step_timeout: Optional[float] = None,
        cancelled: Optional[Callable[[], bool]] = None,
        source_dir: Optional[str] = None,
    ):
        self.ref = ref
        self.variant = variant
        self.output_dir = output_dir
        self.source_dir = source_dir
        self.deps = deps
        self.step_timeout = step_timeout
        self._install_dirs: Dict[ModuleRef, str] = dict(install_dirs)
        self._metadata: Dict[ModuleRef, str] = dict(metadata)
        self._cancelled = cancelled or (lambda: False)

    def install_dir_of(self, ref: ModuleRef) -> str:
        """Install directory of an already-built dependency.

        Raises:
            KeyError: If ``ref`` is not a built dependency of this module.
        """
        try:
            return self._install_dirs[ref]
        except KeyError:
            raise KeyError(f"{ref} is not a built dependency of {self.ref}") from None

    def metadata_of(self, ref: ModuleRef) -> str:
        return self._metadata.get(ref, "")

    def dep(self, path: str) -> ModuleRef:
        """Look up a direct dependency by module path."""
        for ref in self.deps:
            if ref.path == path:
                return ref
        raise KeyError(f"{self.ref} has no dependency on {path}")

    @property
    def cancelled(self) -> bool:
        return self._cancelled()
