"""Constants used in the project."""

import os
from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FAILURE = 1
    CONFIG_ERROR = 2
    CANCELLED = 130


class Comparators(Enum):
    """Named version ordering strategies.

    Args:
        Enum (string): Strategy names accepted in config and formulas.
    """

    DEBIAN = "debian"
    SEMVER = "semver"
    PEP440 = "pep440"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL_ENV = "LIBFORGE_LOG_LEVEL"
    CONFIG_ENV = "LIBFORGE_CONFIG"

    WORKSPACE = os.path.join(os.path.expanduser("~"), ".libforge", "build")
    MAX_WORKERS = max(1, min(8, os.cpu_count() or 1))
    CACHE_FILE = None
    CHECK_OUTPUT_DIR = True
    STEP_TIMEOUT_SEC = None  # no timeout unless configured

    DEFAULT_COMPARATOR = Comparators.DEBIAN.value
    COMPARATOR_OVERRIDES = {}  # module path -> strategy name

    MANIFEST_FILE = None
    FORMULA_DIR = None
    SOURCE_ROOT = None
    GITHUB_RAW_BASE = "https://raw.githubusercontent.com"

    SUPPORTED_FORMATS = ["json", "csv"]

    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_CACHE_TTL_SEC = 300
