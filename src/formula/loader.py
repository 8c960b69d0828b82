"""Load formula files from a directory.

Each ``*.py`` file (searched recursively, files starting with ``_`` skipped)
exposes either ``FORMULA`` or ``FORMULAS``.
"""
from __future__ import annotations

import importlib.util
import logging
import os
from typing import List

from engine.errors import ConfigError
from formula.formula import Formula, FormulaRegistry

logger = logging.getLogger(__name__)


def _formula_files(directory: str) -> List[str]:
    found = []
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith((".", "_")))
        for name in sorted(filenames):
            if name.endswith(".py") and not name.startswith("_"):
                found.append(os.path.join(dirpath, name))
    return found


def _import_file(path: str, index: int):
    module_name = f"_libforge_formula_{index}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ConfigError(f"cannot import formula file {path}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise ConfigError(f"formula file {path} failed to load: {exc}") from exc
    return module


def load_formulas(directory: str, registry: FormulaRegistry) -> int:
    """Register every formula found under ``directory``; returns the count.

    Raises:
        ConfigError: If the directory is missing or a file is invalid.
    """
    if not os.path.isdir(directory):
        raise ConfigError(f"formula directory not found: {directory}")
    count = 0
    for index, path in enumerate(_formula_files(directory)):
        module = _import_file(path, index)
        declared = getattr(module, "FORMULAS", None)
        if declared is None:
            single = getattr(module, "FORMULA", None)
            declared = [single] if single is not None else []
        if not declared:
            logger.warning("No FORMULA or FORMULAS in %s, skipping", path)
            continue
        for formula in declared:
            if not isinstance(formula, Formula):
                raise ConfigError(f"{path}: expected Formula objects, got {type(formula).__name__}")
            registry.register(formula)
            count += 1
    logger.info("Loaded %d formula(s) from %s", count, directory)
    return count
