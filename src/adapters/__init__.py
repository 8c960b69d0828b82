"""Build-tool adapters used by build hooks."""

from .base import Adapter
from .autotools import AutotoolsAdapter
from .cmake import CMakeAdapter

__all__ = ["Adapter", "AutotoolsAdapter", "CMakeAdapter"]
