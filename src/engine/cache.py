"""Result cache keyed by (module ref, matrix variant).

First writer wins: a second ``put`` for a key raises CacheConflictError, which
keeps at most one build per key. Builders reserve a key before running its
hook, so schedulers sharing one cache never build the same key twice.
Writes and reservations of a key hold that key's lock only; the lock is
dropped once the key holds its final result, and reads take no lock since an
entry never changes after it is stored.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from typing import Any, Dict, Iterator, List, Optional, Set

from common.logging_utils import extra_context, is_debug_enabled
from engine.errors import CacheConflictError, ConfigError
from engine.models import BuildResult, CacheKey, ModuleRef

logger = logging.getLogger(__name__)

_FORMAT_VERSION = 1


class ResultCache:
    """Process-wide store of BuildResults for one build invocation.

    The engine keeps results in memory; ``save``/``load`` let the CLI carry
    successful results across invocations.
    """

    def __init__(self) -> None:
        self._entries: Dict[CacheKey, BuildResult] = {}
        self._reserved: Set[CacheKey] = set()
        self._locks: Dict[CacheKey, threading.Lock] = {}
        self._guard = threading.Lock()  # protects _locks only

    def _lock_for(self, key: CacheKey) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _drop_lock(self, key: CacheKey) -> None:
        # only once the entry is final; a late waiter on the old lock still
        # sees the entry and refuses to write
        with self._guard:
            self._locks.pop(key, None)

    def get(self, key: CacheKey) -> Optional[BuildResult]:
        """Return the stored result; a miss does not reserve the key."""
        return self._entries.get(key)

    def try_reserve(self, key: CacheKey) -> bool:
        """Claim ``key`` for building.

        Returns False when the key already has a result or another builder
        holds the reservation. A successful ``put`` ends the reservation.
        """
        if key in self._entries:
            return False
        with self._lock_for(key):
            if key in self._entries or key in self._reserved:
                return False
            self._reserved.add(key)
            return True

    def release(self, key: CacheKey) -> None:
        """Give up a reservation without storing a result."""
        if key in self._entries:
            return
        with self._lock_for(key):
            self._reserved.discard(key)

    def is_reserved(self, key: CacheKey) -> bool:
        return key in self._reserved

    def put(self, key: CacheKey, result: BuildResult) -> None:
        """Store the result for ``key``.

        Raises:
            CacheConflictError: If ``key`` already holds a result.
        """
        if key in self._entries:
            raise CacheConflictError(f"result for {key} already stored")
        with self._lock_for(key):
            if key in self._entries:
                raise CacheConflictError(f"result for {key} already stored")
            self._entries[key] = result
            self._reserved.discard(key)
        self._drop_lock(key)
        if is_debug_enabled(logger):
            logger.debug(
                "Cache put",
                extra=extra_context(
                    event="cache_put",
                    component="cache",
                    action="put",
                    target=str(key),
                    outcome="success" if result.ok else "failure",
                )
            )

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> List[CacheKey]:
        return list(self._entries.copy())

    def __iter__(self) -> Iterator[CacheKey]:
        return iter(self.keys())

    def save(self, file_name: str, successful_only: bool = True) -> int:
        """Write results to ``file_name`` as JSON; returns the entry count.

        Failed results are skipped by default so they are rebuilt next time.
        """
        entries: List[Dict[str, Any]] = []
        for key in self.keys():
            result = self.get(key)
            if result is None or (successful_only and not result.ok):
                continue
            entries.append({
                "path": key.ref.path,
                "version": key.ref.version,
                "variant": key.variant,
                "result": result.to_dict(),
            })
        directory = os.path.dirname(os.path.abspath(file_name))
        os.makedirs(directory, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump({"version": _FORMAT_VERSION, "entries": entries}, fh, indent=2)
            os.replace(tmp, file_name)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        logger.info("Saved %d cached result(s) to %s", len(entries), file_name)
        return len(entries)

    @classmethod
    def load(cls, file_name: str) -> "ResultCache":
        """Load a cache written by ``save``; a missing file gives an empty cache.

        Raises:
            ConfigError: If the file exists but cannot be parsed.
        """
        cache = cls()
        if not os.path.isfile(file_name):
            return cache
        try:
            with open(file_name, encoding="utf-8") as fh:
                data = json.load(fh)
            if data.get("version") != _FORMAT_VERSION:
                logger.warning("Ignoring cache file %s with unknown format", file_name)
                return cache
            for entry in data.get("entries", []):
                key = CacheKey(ModuleRef(entry["path"], entry["version"]), entry["variant"])
                cache.put(key, BuildResult.from_dict(entry["result"]))
        except (OSError, ValueError, KeyError, TypeError, AttributeError, CacheConflictError) as exc:
            raise ConfigError(f"cannot load cache file {file_name}: {exc}") from exc
        logger.info("Loaded %d cached result(s) from %s", len(cache), file_name)
        return cache
