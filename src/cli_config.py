"""Configuration loading and CLI overrides for runtime tunables.

Precedence: Constants defaults < YAML config file < CLI flags. The config
file comes from ``--config`` or the ``LIBFORGE_CONFIG`` environment variable.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, Optional

import yaml

from constants import Constants
from engine.errors import ConfigError

logger = logging.getLogger(__name__)


def _positive_int(value: Any) -> int:
    number = int(value)
    if number < 1:
        raise ValueError(f"must be >= 1, got {number}")
    return number


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    number = float(value)
    if number <= 0:
        raise ValueError(f"must be > 0, got {number}")
    return number


def _path(value: Any) -> str:
    return os.path.expanduser(str(value))


def _mapping(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        raise ValueError("must be a mapping of module path to comparator name")
    return {str(k): str(v) for k, v in value.items()}


# config key -> (Constants attribute, converter)
_CONFIG_KEYS: Dict[str, tuple] = {
    "workspace": ("WORKSPACE", _path),
    "workers": ("MAX_WORKERS", _positive_int),
    "cache_file": ("CACHE_FILE", _path),
    "check_output_dir": ("CHECK_OUTPUT_DIR", bool),
    "step_timeout": ("STEP_TIMEOUT_SEC", _optional_float),
    "default_comparator": ("DEFAULT_COMPARATOR", str),
    "comparators": ("COMPARATOR_OVERRIDES", _mapping),
    "manifest": ("MANIFEST_FILE", _path),
    "formulas": ("FORMULA_DIR", _path),
    "source_root": ("SOURCE_ROOT", _path),
    "github_raw_base": ("GITHUB_RAW_BASE", str),
    "request_timeout": ("REQUEST_TIMEOUT", _positive_int),
    "http_retry_max": ("HTTP_RETRY_MAX", _positive_int),
    "http_cache_ttl": ("HTTP_CACHE_TTL_SEC", int),
}


def load_config(config_path: Optional[str]) -> Dict[str, Any]:
    """Read a YAML config file into a dict; no path means no config.

    Raises:
        ConfigError: If the file is missing or is not a YAML mapping.
    """
    if not config_path:
        return {}
    if not os.path.isfile(config_path):
        raise ConfigError(f"config file not found: {config_path}")
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot load config {config_path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config {config_path} must be a mapping")
    logger.info("Loaded config from: %s", config_path)
    return data


def apply_config(data: Dict[str, Any]) -> None:
    """Apply config file values onto Constants.

    Raises:
        ConfigError: If a known key has an invalid value.
    """
    for key, value in data.items():
        spec = _CONFIG_KEYS.get(key)
        if spec is None:
            logger.warning("Ignoring unknown config key: %s", key)
            continue
        attr, convert = spec
        try:
            setattr(Constants, attr, convert(value) if value is not None else None)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"invalid value for '{key}': {exc}") from exc


_OVERRIDES: Dict[str, tuple] = {
    "WORKSPACE": ("WORKSPACE", _path),
    "WORKERS": ("MAX_WORKERS", _positive_int),
    "CACHE_FILE": ("CACHE_FILE", _path),
    "STEP_TIMEOUT": ("STEP_TIMEOUT_SEC", _optional_float),
    "MANIFEST": ("MANIFEST_FILE", _path),
    "FORMULA_DIR": ("FORMULA_DIR", _path),
    "SOURCE_ROOT": ("SOURCE_ROOT", _path),
    "COMPARATOR": ("DEFAULT_COMPARATOR", str),
}


def apply_cli_overrides(args: Any) -> None:
    """Apply CLI flags onto Constants; flags left unset keep config values."""
    for dest, (attr, convert) in _OVERRIDES.items():
        value = getattr(args, dest, None)
        if value is None:
            continue
        try:
            setattr(Constants, attr, convert(value))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"invalid value for {dest.lower()}: {exc}") from exc
    if getattr(args, "NO_OUTPUT_CHECK", False):
        Constants.CHECK_OUTPUT_DIR = False


def configure_from(args: Any, loader: Callable[[Optional[str]], Dict[str, Any]] = load_config) -> None:
    """Load the config file named by args or environment, then apply CLI flags."""
    config_path = getattr(args, "CONFIG", None) or os.environ.get(Constants.CONFIG_ENV)
    apply_config(loader(config_path))
    apply_cli_overrides(args)
