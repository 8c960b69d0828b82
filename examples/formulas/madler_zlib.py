"""zlib: no dependencies, CMake build."""

from adapters import CMakeAdapter
from formula import Formula


def on_require(project, deps):
    # zlib depends on nothing; discovery succeeding with no declarations marks a leaf.
    project.read_file("zlib.h")


def on_build(ctx, result):
    if ctx.source_dir is None:
        result.add_error("zlib needs a local source checkout (--source-root)")
        return
    adapter = CMakeAdapter(
        ctx.source_dir,
        ctx.output_dir + ".build",
        ctx.output_dir,
        timeout=ctx.step_timeout,
        defines={"ZLIB_BUILD_EXAMPLES": "OFF"},
    )
    if not adapter.run_all():
        for err in adapter.errors:
            result.add_error(err)
        return
    result.metadata = "-lz"


FORMULA = Formula("madler/zlib", "v1.2.0", on_require=on_require, on_build=on_build)
