"""configure/make style toolchain."""

import os
from typing import List, Optional, Sequence

from adapters.base import Adapter


class AutotoolsAdapter(Adapter):
    """``./configure --prefix``, ``make``, ``make install``."""

    def __init__(self, *args, configure_args: Optional[Sequence[str]] = None,
                 jobs: Optional[int] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.configure_args: List[str] = list(configure_args or [])
        self.jobs = jobs

    def _make(self, *targets: str) -> List[str]:
        cmd = ["make"]
        if self.jobs:
            cmd.append(f"-j{self.jobs}")
        cmd.extend(targets)
        return cmd

    def configure(self) -> bool:
        script = os.path.join(self.source_dir, "configure")
        return self.run(
            "configure",
            [script, f"--prefix={self.install_dir}", *self.configure_args],
        )

    def build(self) -> bool:
        return self.run("build", self._make())

    def install(self) -> bool:
        return self.run("install", self._make("install"))
