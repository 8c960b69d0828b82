"""Common plumbing for build-tool adapters.

An adapter wraps one external toolchain for one module build. Steps return
True/False and record a BuildError on failure so a build hook can stop at
the first failing step and copy ``errors`` into its result.
"""
from __future__ import annotations

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Optional, Sequence

from common.logging_utils import Timer, extra_context, is_debug_enabled
from engine.errors import BuildError

logger = logging.getLogger(__name__)

_OUTPUT_TAIL_LINES = 20


def _tail(text: str) -> str:
    lines = (text or "").strip().splitlines()
    return "\n".join(lines[-_OUTPUT_TAIL_LINES:])


class Adapter(ABC):
    """configure/build/install around one toolchain.

    Args:
        source_dir: Unpacked module sources.
        build_dir: Scratch directory for the build.
        install_dir: Install prefix (the module's output directory).
        env: Extra environment variables layered over ``os.environ``.
        timeout: Seconds allowed per step; None waits indefinitely.
    """

    def __init__(
        self,
        source_dir: str,
        build_dir: str,
        install_dir: str,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ):
        self.source_dir = source_dir
        self.build_dir = build_dir
        self.install_dir = install_dir
        self.timeout = timeout
        self.env: Dict[str, str] = dict(os.environ)
        self.env.update(env or {})
        self.used: List[str] = []
        self.errors: List[BuildError] = []

    def use(self, install_dir: str) -> None:
        """Make a dependency's headers, libraries and pkg-config files visible."""
        if install_dir in self.used:
            return
        self.used.append(install_dir)
        include = os.path.join(install_dir, "include")
        lib = os.path.join(install_dir, "lib")
        self._append_flag("CPPFLAGS", f"-I{include}")
        self._append_flag("LDFLAGS", f"-L{lib}")
        self._prepend_path("PKG_CONFIG_PATH", os.path.join(lib, "pkgconfig"))

    def _append_flag(self, name: str, flag: str) -> None:
        current = self.env.get(name, "").strip()
        self.env[name] = f"{current} {flag}".strip()

    def _prepend_path(self, name: str, entry: str) -> None:
        current = self.env.get(name, "")
        self.env[name] = entry if not current else f"{entry}{os.pathsep}{current}"

    @abstractmethod
    def configure(self) -> bool:
        """Prepare the build tree."""

    @abstractmethod
    def build(self) -> bool:
        """Compile."""

    @abstractmethod
    def install(self) -> bool:
        """Install into ``install_dir``."""

    def run_all(self) -> bool:
        """configure, build and install, stopping at the first failure."""
        return self.configure() and self.build() and self.install()

    def run(self, step: str, command: Sequence[str], cwd: Optional[str] = None) -> bool:
        """Run one toolchain command; failures are recorded, never raised."""
        cwd = cwd or self.build_dir
        os.makedirs(cwd, exist_ok=True)
        with Timer() as t:
            try:
                proc = subprocess.run(
                    list(command),
                    cwd=cwd,
                    env=self.env,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                    check=False,
                )
            except FileNotFoundError:
                self.errors.append(BuildError(f"{step}: command not found: {command[0]}"))
                return False
            except subprocess.TimeoutExpired:
                self.errors.append(BuildError(f"{step}: timed out after {self.timeout} seconds"))
                return False
            except OSError as exc:
                self.errors.append(BuildError(f"{step}: {exc}"))
                return False

        if is_debug_enabled(logger):
            logger.debug(
                "Toolchain step finished",
                extra=extra_context(
                    event="toolchain_step",
                    component="adapter",
                    action=step,
                    status_code=proc.returncode,
                    duration_ms=t.duration_ms(),
                    target=cwd,
                )
            )
        if proc.returncode != 0:
            detail = _tail(proc.stderr) or _tail(proc.stdout)
            self.errors.append(
                BuildError(f"{step}: exit status {proc.returncode}" + (f"\n{detail}" if detail else ""))
            )
            return False
        return True
