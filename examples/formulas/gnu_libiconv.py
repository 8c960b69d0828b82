"""libiconv: configure/make build, dependencies come from the static manifest."""

from adapters import AutotoolsAdapter
from formula import Formula


def on_build(ctx, result):
    if ctx.source_dir is None:
        result.add_error("libiconv needs a local source checkout (--source-root)")
        return
    adapter = AutotoolsAdapter(
        ctx.source_dir,
        ctx.source_dir,
        ctx.output_dir,
        timeout=ctx.step_timeout,
        configure_args=["--disable-shared"],
    )
    if adapter.run_all():
        result.metadata = "-liconv"
    else:
        for err in adapter.errors:
            result.add_error(err)


FORMULA = Formula("gnu/libiconv", "1.15", on_build=on_build, comparator="debian")
