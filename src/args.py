"""Argument parsing functionality for libforge."""

import argparse

from constants import Constants


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="libforge",
        description=(
            "libforge - resolve and build native libraries from formulas"
        ),
        add_help=True,
    )

    parser.add_argument("module",
                        metavar="MODULE[@VERSION]",
                        help="Root module path, e.g. madler/zlib@v1.3.1. "
                             "Without a version the manifest's latest version is used.")

    parser.add_argument("-m", "--matrix",
                        dest="VARIANTS",
                        help="Target matrix variant, e.g. amd64-linux (repeatable; default: host)",
                        action="append", type=str,
                        default=[])

    parser.add_argument("--formulas",
                        dest="FORMULA_DIR",
                        help="Directory of formula files",
                        action="store", type=str)
    parser.add_argument("--manifest",
                        dest="MANIFEST",
                        help="Static dependency manifest (YAML or JSON)",
                        action="store", type=str)

    source_group = parser.add_mutually_exclusive_group()
    source_group.add_argument("--source-root",
                              dest="SOURCE_ROOT",
                              help="Local source trees laid out as <root>/<path>/<version>/",
                              action="store", type=str)
    source_group.add_argument("--github",
                              dest="GITHUB",
                              help="Read module sources from GitHub at the tagged version",
                              action="store_true")

    parser.add_argument("--workspace",
                        dest="WORKSPACE",
                        help="Directory for build outputs",
                        action="store", type=str)
    parser.add_argument("-j", "--jobs",
                        dest="WORKERS",
                        help="Maximum concurrent builds",
                        action="store", type=int)
    parser.add_argument("--cache-file",
                        dest="CACHE_FILE",
                        help="Persist successful results here and reuse them on later runs",
                        action="store", type=str)
    parser.add_argument("--step-timeout",
                        dest="STEP_TIMEOUT",
                        help="Seconds allowed per toolchain step",
                        action="store", type=float)
    parser.add_argument("--comparator",
                        dest="COMPARATOR",
                        help="Default version ordering (debian, semver, pep440)",
                        action="store", type=str.lower)
    parser.add_argument("--no-output-check",
                        dest="NO_OUTPUT_CHECK",
                        help="Do not require build hooks to leave an output directory",
                        action="store_true")

    parser.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="Path to output file (JSON or CSV)",
                        action="store",
                        type=str)
    parser.add_argument("-f", "--format",
                        dest="OUTPUT_FORMAT",
                        help="Output format (json or csv). If not specified, inferred from --output extension; defaults to json.",
                        action="store",
                        type=str.lower,
                        choices=Constants.SUPPORTED_FORMATS)

    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML)",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Do not print per-module results to the console.",
                        action="store_true")

    return parser.parse_args(argv)
