"""Alternate ordering strategies a module can opt into."""

from typing import Optional

import semantic_version
from packaging import version as pep440

from versioning.compare import VersionComparator, debian_compare, _strip_tag_prefix


class SemverComparator(VersionComparator):
    """Semantic-versioning precedence via ``semantic_version``.

    Partial tags such as ``1.2`` are coerced to ``1.2.0``. When either side
    cannot be coerced the pair falls back to the default ordering.
    """

    name = "semver"

    @staticmethod
    def _parse(raw: str) -> Optional[semantic_version.Version]:
        try:
            return semantic_version.Version.coerce(_strip_tag_prefix(raw))
        except ValueError:
            return None

    def compare(self, a: str, b: str) -> int:
        va, vb = self._parse(a), self._parse(b)
        if va is None or vb is None:
            return debian_compare(a, b)
        return (va > vb) - (va < vb)


class Pep440Comparator(VersionComparator):
    """PEP 440 ordering via ``packaging.version``."""

    name = "pep440"

    @staticmethod
    def _parse(raw: str) -> Optional[pep440.Version]:
        try:
            return pep440.Version(raw.strip())
        except pep440.InvalidVersion:
            return None

    def compare(self, a: str, b: str) -> int:
        va, vb = self._parse(a), self._parse(b)
        if va is None or vb is None:
            return debian_compare(a, b)
        return (va > vb) - (va < vb)
