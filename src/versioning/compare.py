"""Version ordering strategies.

The default ordering follows Debian package version comparison: an optional
numeric epoch, then alternating non-digit and digit runs. Non-digit runs are
compared character by character with ``~`` sorting before everything
(including the end of the string) and letters before other symbols; digit runs
are compared numerically, so ``1.02`` equals ``1.2``.
"""

from __future__ import annotations

import functools
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Tuple

_DIGITS = "0123456789"


def _strip_tag_prefix(version: str) -> str:
    """Drop a leading ``v``/``V`` from tags such as ``v1.2.3``."""
    version = version.strip()
    if len(version) > 1 and version[0] in "vV" and version[1] in _DIGITS:
        return version[1:]
    return version


def _split_epoch(version: str) -> Tuple[int, str]:
    head, sep, tail = version.partition(":")
    if sep and head.isdigit():
        return int(head), tail
    return 0, version


def _char_order(c: str) -> int:
    if c == "~":
        return -1
    if c in _DIGITS:
        return 0
    if c.isalpha():
        return ord(c)
    return ord(c) + 256


def _compare_runs(a: str, b: str) -> int:
    i = j = 0
    len_a, len_b = len(a), len(b)
    while i < len_a or j < len_b:
        first_diff = 0
        while (i < len_a and a[i] not in _DIGITS) or (j < len_b and b[j] not in _DIGITS):
            ac = _char_order(a[i]) if i < len_a else 0
            bc = _char_order(b[j]) if j < len_b else 0
            if ac != bc:
                return ac - bc
            i += 1
            j += 1
        while i < len_a and a[i] == "0":
            i += 1
        while j < len_b and b[j] == "0":
            j += 1
        while i < len_a and a[i] in _DIGITS and j < len_b and b[j] in _DIGITS:
            if not first_diff:
                first_diff = ord(a[i]) - ord(b[j])
            i += 1
            j += 1
        if i < len_a and a[i] in _DIGITS:
            return 1
        if j < len_b and b[j] in _DIGITS:
            return -1
        if first_diff:
            return first_diff
    return 0


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def debian_compare(a: str, b: str) -> int:
    """Compare two version strings, returning -1, 0 or 1."""
    epoch_a, rest_a = _split_epoch(_strip_tag_prefix(a))
    epoch_b, rest_b = _split_epoch(_strip_tag_prefix(b))
    if epoch_a != epoch_b:
        return _sign(epoch_a - epoch_b)
    return _sign(_compare_runs(_strip_tag_prefix(rest_a), _strip_tag_prefix(rest_b)))


class VersionComparator(ABC):
    """Total ordering over one module's version strings."""

    name = "abstract"

    @abstractmethod
    def compare(self, a: str, b: str) -> int:
        """Return -1, 0 or 1 as ``a`` sorts before, equal to, or after ``b``."""

    def satisfies(self, version: str, from_ver: str) -> bool:
        """True iff ``version`` is ``from_ver`` or newer."""
        return self.compare(version, from_ver) >= 0

    def sort(self, versions: Iterable[str], reverse: bool = False) -> List[str]:
        return sorted(versions, key=functools.cmp_to_key(self.compare), reverse=reverse)

    def latest(self, versions: Iterable[str]) -> Optional[str]:
        ordered = self.sort(versions)
        return ordered[-1] if ordered else None

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class DebianComparator(VersionComparator):
    """Default segment-wise ordering, robust to mixed numeric/alpha tags."""

    name = "debian"

    def compare(self, a: str, b: str) -> int:
        return debian_compare(a, b)


DEFAULT_COMPARATOR = DebianComparator()
