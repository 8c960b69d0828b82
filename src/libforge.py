"""libforge - resolve and build native libraries from formulas

    Resolves the root module's dependency graph, builds every module for each
    requested matrix variant, and reports per-module outcomes.

    Returns:
        int: Exit code
"""
import csv
import json
import logging
import os
import platform
import signal
import sys
import threading

from constants import ExitCodes, Constants
from common.logging_utils import add_file_handler, configure_logging, extra_context, is_debug_enabled
from args import parse_args
from cli_config import configure_from
from engine.cache import ResultCache
from engine.errors import ConfigError, ResolutionError
from engine.models import ModuleRef
from engine.resolver import Resolver
from engine.scheduler import BuildScheduler
from formula.formula import FormulaRegistry
from formula.loader import load_formulas
from formula.manifest import StaticManifest, load_manifest
from formula.source import github_source_factory, local_source_factory
from versioning.registry import ComparatorRegistry

logger = logging.getLogger(__name__)

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
}


def host_variant():
    """Matrix variant of the running machine, e.g. ``amd64-linux``."""
    machine = platform.machine().lower()
    arch = _ARCH_ALIASES.get(machine, machine or "unknown")
    system = platform.system().lower() or "unknown"
    return f"{arch}-{system}"


def build_registry():
    """Formula registry with comparators and formulas from the configuration."""
    comparators = ComparatorRegistry.from_config(
        Constants.DEFAULT_COMPARATOR, Constants.COMPARATOR_OVERRIDES
    )
    registry = FormulaRegistry(comparators)
    if Constants.FORMULA_DIR:
        load_formulas(Constants.FORMULA_DIR, registry)
    else:
        logger.warning("No formula directory configured; only the static manifest is available")
    return registry


def source_factory_for(args):
    """Source tree factory handed to discovery hooks, or None."""
    if getattr(args, "GITHUB", False):
        return github_source_factory(Constants.GITHUB_RAW_BASE)
    if Constants.SOURCE_ROOT:
        return local_source_factory(Constants.SOURCE_ROOT)
    return None


def root_ref(token, manifest, registry):
    """Parse ``path[@version]``, defaulting the version to the manifest's latest.

    Raises:
        ConfigError: If no version is given and none can be inferred.
    """
    ref = ModuleRef.parse(token)
    if not ref.path:
        raise ConfigError(f"invalid module: {token!r}")
    if ref.version:
        return ref
    latest = manifest.latest(ref.path, registry.comparators.for_path(ref.path))
    if latest is None:
        raise ConfigError(f"no version given for {ref.path} and the manifest lists none")
    logger.info("No version given; using %s@%s from the manifest", ref.path, latest)
    return ModuleRef(ref.path, latest)


def outcome_label(result):
    """Short outcome tag for a BuildResult."""
    if result.ok:
        return "OK"
    if result.dependency_failed:
        return "DEP-FAILED"
    return "FAILED"


def format_result(key, result):
    """One console line for a (module, variant) outcome."""
    label = outcome_label(result)
    if result.ok:
        line = f"[{label}] {key} -> {result.output_dir}"
        if result.metadata:
            line += f" ({result.metadata})"
        return line
    return f"[{label}] {key}: " + "; ".join(str(e).splitlines()[0] for e in result.errs if str(e))


def export_json(results, path, resolution_error=None):
    """Exports per-module outcomes to a JSON file.

    Args:
        results (dict): CacheKey -> BuildResult.
        path (str): File path to export the JSON.
        resolution_error (ResolutionError): Set when nothing was built.
    """
    payload = {
        "resolution_error": None,
        "results": [],
    }
    if resolution_error is not None:
        payload["resolution_error"] = {
            "kind": resolution_error.kind,
            "message": str(resolution_error),
        }
    for key, result in results.items():
        entry = {
            "path": key.ref.path,
            "version": key.ref.version,
            "variant": key.variant,
            "outcome": outcome_label(result),
        }
        entry.update(result.to_dict())
        payload["results"].append(entry)
    try:
        with open(path, 'w', encoding='utf-8') as file:
            json.dump(payload, file, indent=2)
        logging.info("JSON file has been successfully exported at: %s", path)
    except OSError as e:
        logging.error("JSON file couldn't be written to disk: %s", e)
        raise ConfigError(f"cannot write {path}: {e}") from e


def export_csv(results, path):
    """Exports per-module outcomes to a CSV file.

    Args:
        results (dict): CacheKey -> BuildResult.
        path (str): File path to export the CSV.
    """
    rows = [["Module", "Version", "Variant", "Outcome", "Output Dir", "Metadata", "Errors"]]
    for key, result in results.items():
        rows.append([
            key.ref.path,
            key.ref.version,
            key.variant,
            outcome_label(result),
            result.output_dir,
            result.metadata,
            " | ".join(str(e) for e in result.errs),
        ])
    try:
        with open(path, 'w', newline='', encoding='utf-8') as file:
            export = csv.writer(file)
            export.writerows(rows)
        logging.info("CSV file has been successfully exported at: %s", path)
    except (OSError, csv.Error) as e:
        logging.error("CSV file couldn't be written to disk: %s", e)
        raise ConfigError(f"cannot write {path}: {e}") from e


def _output_format(args):
    if getattr(args, "OUTPUT_FORMAT", None):
        return args.OUTPUT_FORMAT
    if args.OUTPUT.lower().endswith(".csv"):
        return "csv"
    return "json"


def _export(args, results, resolution_error=None):
    if not getattr(args, "OUTPUT", None):
        return
    if _output_format(args) == "csv":
        export_csv(results, args.OUTPUT)
    else:
        export_json(results, args.OUTPUT, resolution_error)


def _emit(args, line):
    if not getattr(args, "QUIET", False):
        sys.stdout.write(line + "\n")


class _CancelOnInterrupt:
    """Route SIGINT to ``scheduler.cancel`` while builds run."""

    def __init__(self, scheduler):
        self._scheduler = scheduler
        self._previous = None
        self._active = threading.current_thread() is threading.main_thread()

    def __enter__(self):
        if self._active:
            self._previous = signal.signal(signal.SIGINT, self._handle)
        return self

    def __exit__(self, *exc):
        if self._active:
            signal.signal(signal.SIGINT, self._previous)

    def _handle(self, signum, frame):  # pylint: disable=unused-argument
        self._scheduler.cancel()


def run(args):
    """Resolve and build per parsed arguments; returns an exit code."""
    configure_from(args)

    manifest = load_manifest(Constants.MANIFEST_FILE) if Constants.MANIFEST_FILE else StaticManifest()
    registry = build_registry()
    root = root_ref(args.module, manifest, registry)
    variants = args.VARIANTS or [host_variant()]

    resolver = Resolver(registry, manifest, registry.comparators, source_factory_for(args))
    try:
        graph = resolver.resolve(root)
    except ResolutionError as exc:
        logger.error("Resolution failed: %s", exc)
        _emit(args, f"[RESOLUTION] {exc.kind}: {exc}")
        _export(args, {}, exc)
        return ExitCodes.FAILURE.value

    if is_debug_enabled(logger):
        logger.debug(
            "Resolved graph",
            extra=extra_context(
                event="decision",
                component="cli",
                action="resolve",
                target=str(root),
                count=len(graph),
            )
        )

    cache = ResultCache.load(Constants.CACHE_FILE) if Constants.CACHE_FILE else ResultCache()
    scheduler = BuildScheduler(
        registry,
        cache,
        workers=Constants.MAX_WORKERS,
        workspace=Constants.WORKSPACE,
        check_output_dir=Constants.CHECK_OUTPUT_DIR,
        step_timeout=Constants.STEP_TIMEOUT_SEC,
        source_root=Constants.SOURCE_ROOT,
        comparators=resolver.comparators,
    )
    with _CancelOnInterrupt(scheduler):
        results = scheduler.build(graph, variants)

    for key in sorted(results, key=lambda k: (k.variant, k.ref.path)):
        _emit(args, format_result(key, results[key]))

    if Constants.CACHE_FILE:
        cache.save(Constants.CACHE_FILE)
    _export(args, results)

    if scheduler.cancelled:
        return ExitCodes.CANCELLED.value
    if any(not r.ok for r in results.values()):
        logging.warning("One or more builds failed.")
        return ExitCodes.FAILURE.value
    return ExitCodes.SUCCESS.value


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    # Honor CLI --loglevel by passing it to centralized logger via env
    if getattr(args, "LOG_LEVEL", None):
        os.environ[Constants.LOG_LEVEL_ENV] = str(args.LOG_LEVEL).upper()
    configure_logging()
    if getattr(args, "LOG_FILE", None):
        add_file_handler(args.LOG_FILE)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main")
        )

    try:
        code = run(args)
    except ConfigError as exc:
        logger.error("%s", exc)
        code = ExitCodes.CONFIG_ERROR.value
    sys.exit(code)


if __name__ == "__main__":
    main()
