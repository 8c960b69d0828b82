"""File-backed static dependency manifest.

Format (YAML or JSON)::

    madler/zlib:
      v1.3.1: []
    glennrp/libpng:
      v1.6.43:
        - madler/zlib@v1.2.11
        - {path: other/lib, version: "2.0"}

Only consulted when dynamic discovery is unavailable.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from engine.errors import ConfigError
from engine.models import ModuleRef, VersionConstraint
from versioning.compare import DEFAULT_COMPARATOR, VersionComparator

logger = logging.getLogger(__name__)


def _version_text(value: Any, where: str) -> str:
    # a float such as 1.10 has already lost its trailing zero
    if not isinstance(value, str):
        raise ConfigError(f"{where}: version {value!r} must be a string; quote it")
    return value.strip()


def _parse_dep(entry: Any, where: str) -> VersionConstraint:
    if isinstance(entry, str):
        ref = ModuleRef.parse(entry)
        path, version = ref.path, ref.version
    elif isinstance(entry, Mapping):
        path = str(entry.get("path", "")).strip()
        version = _version_text(entry.get("version", entry.get("from_ver", "")), where)
    else:
        raise ConfigError(f"{where}: dependency must be 'path@version' or a mapping, got {entry!r}")
    if not path or not version:
        raise ConfigError(f"{where}: dependency needs a path and a version: {entry!r}")
    return VersionConstraint(path, version)


class StaticManifest:
    """Per path, a mapping from version to a fixed dependency list."""

    def __init__(self, entries: Optional[Mapping[str, Mapping[str, List[VersionConstraint]]]] = None):
        self._entries: Dict[str, Dict[str, Tuple[VersionConstraint, ...]]] = {}
        for path, versions in (entries or {}).items():
            for version, deps in versions.items():
                self.add(path, version, deps)

    def add(self, path: str, version: str, deps) -> None:
        self._entries.setdefault(path, {})[version] = tuple(deps)

    @classmethod
    def from_dict(cls, data: Any, source: str = "<manifest>") -> "StaticManifest":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigError(f"{source}: top level must be a mapping of module paths")
        manifest = cls()
        for path, versions in data.items():
            if not isinstance(versions, Mapping):
                raise ConfigError(f"{source}: {path} must map versions to dependency lists")
            for version, deps in versions.items():
                where = f"{source}: {path}@{version}"
                version = _version_text(version, where)
                if deps is None or deps == "":
                    deps = []
                if not isinstance(deps, list):
                    raise ConfigError(f"{where}: dependencies must be a list")
                manifest.add(str(path), str(version), [_parse_dep(d, where) for d in deps])
        return manifest

    def lookup(self, path: str, version: str) -> Optional[Tuple[VersionConstraint, ...]]:
        """Dependencies for exactly ``path@version``, or None if not listed."""
        return self._entries.get(path, {}).get(version)

    def versions(self, path: str) -> List[str]:
        return list(self._entries.get(path, {}))

    def latest(self, path: str, comparator: Optional[VersionComparator] = None) -> Optional[str]:
        return (comparator or DEFAULT_COMPARATOR).latest(self.versions(path))

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def load_manifest(file_name: str) -> StaticManifest:
    """Load a manifest from a YAML (``.yml``/``.yaml``) or JSON file.

    Raises:
        ConfigError: If the file is missing or malformed.
    """
    if not os.path.isfile(file_name):
        raise ConfigError(f"manifest not found: {file_name}")
    try:
        with open(file_name, encoding="utf-8") as fh:
            if file_name.lower().endswith(".json"):
                data = json.load(fh)
            else:
                # every scalar stays a string, so 1.10 is not read as 1.1
                data = yaml.load(fh, Loader=yaml.BaseLoader)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot load manifest {file_name}: {exc}") from exc
    manifest = StaticManifest.from_dict(data, source=file_name)
    logger.info("Loaded static manifest with %d module(s) from %s", len(manifest), file_name)
    return manifest
