"""libpng: discovers its zlib requirement from CMakeLists.txt."""

import re

from adapters import CMakeAdapter
from formula import Formula

_ZLIB_MIN = re.compile(r"find_package\(\s*ZLIB\s+([0-9][0-9.]*)")


def on_require(project, deps):
    cmake = project.read_file("CMakeLists.txt")
    if "find_package(ZLIB" not in cmake:
        return
    match = _ZLIB_MIN.search(cmake)
    deps.require("madler/zlib", "v" + match.group(1) if match else "v1.2.0")


def on_build(ctx, result):
    if ctx.source_dir is None:
        result.add_error("libpng needs a local source checkout (--source-root)")
        return
    adapter = CMakeAdapter(
        ctx.source_dir,
        ctx.output_dir + ".build",
        ctx.output_dir,
        timeout=ctx.step_timeout,
        defines={"PNG_TESTS": "OFF", "PNG_SHARED": "OFF"},
    )
    for dep in ctx.deps:
        adapter.use(ctx.install_dir_of(dep))
    if not adapter.run_all():
        for err in adapter.errors:
            result.add_error(err)
        return
    result.metadata = " ".join(filter(None, ["-lpng16", *(ctx.metadata_of(d) for d in ctx.deps)]))


FORMULA = Formula("glennrp/libpng", "v1.6.0", on_require=on_require, on_build=on_build)
