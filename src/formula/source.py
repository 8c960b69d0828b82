"""Read-only access to a module's source tree at a tagged revision.

Discovery hooks use these handles to inspect the module's own build
configuration (e.g. a CMakeLists.txt or a dependency list file).
"""
from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import quote

from constants import Constants
from common.http_client import robust_get
from common.logging_utils import extra_context, is_debug_enabled
from engine.errors import SourceUnavailable
from engine.models import ModuleRef

logger = logging.getLogger(__name__)


def _check_relative(name: str) -> str:
    norm = os.path.normpath(name).replace(os.sep, "/")
    if os.path.isabs(name) or norm == ".." or norm.startswith("../"):
        raise SourceUnavailable(f"path escapes the source tree: {name}")
    return norm


class SourceTree(ABC):
    """Files of one module at one version."""

    def __init__(self, ref: ModuleRef):
        self.ref = ref

    @abstractmethod
    def read_file(self, name: str) -> str:
        """Return the text of ``name`` relative to the tree root.

        Raises:
            SourceUnavailable: If the file cannot be read.
        """


class LocalSourceTree(SourceTree):
    """A checkout laid out as ``<root>/<path>/<version>/``."""

    def __init__(self, ref: ModuleRef, root: str):
        super().__init__(ref)
        self.directory = os.path.join(root, *ref.path.split("/"), ref.version)

    def read_file(self, name: str) -> str:
        target = os.path.join(self.directory, _check_relative(name))
        try:
            with open(target, encoding="utf-8") as fh:
                return fh.read()
        except OSError as exc:
            raise SourceUnavailable(f"{self.ref}: cannot read {name}: {exc}") from exc


class GitHubSourceTree(SourceTree):
    """Raw file access for an ``owner/repo`` module at a tag."""

    def __init__(self, ref: ModuleRef, base_url: Optional[str] = None):
        super().__init__(ref)
        self.base_url = (base_url or Constants.GITHUB_RAW_BASE).rstrip("/")

    def url_for(self, name: str) -> str:
        rel = _check_relative(name)
        return f"{self.base_url}/{self.ref.path}/{quote(self.ref.version, safe='')}/{quote(rel)}"

    def read_file(self, name: str) -> str:
        url = self.url_for(name)
        status, _, text = robust_get(url)
        if is_debug_enabled(logger):
            logger.debug(
                "Source file fetch",
                extra=extra_context(
                    event="source_read",
                    component="source",
                    action="read_file",
                    target=str(self.ref),
                    status_code=status,
                )
            )
        if status != 200:
            raise SourceUnavailable(f"{self.ref}: cannot fetch {name} (status {status})")
        return text


def local_source_factory(root: str):
    """Return a ``ref -> SourceTree`` factory over a local directory."""
    def factory(ref: ModuleRef) -> SourceTree:
        return LocalSourceTree(ref, root)
    return factory


def github_source_factory(base_url: Optional[str] = None):
    """Return a ``ref -> SourceTree`` factory reading from GitHub."""
    def factory(ref: ModuleRef) -> SourceTree:
        return GitHubSourceTree(ref, base_url)
    return factory
