"""``genforge verify JOB``: run one verification job against a stored artifact.

A job runs at most once per build.  If a result is already recorded, it
is shown instead and the exit status reflects it.
"""

from __future__ import annotations

import typer
from rich.markup import escape

from genforge.cli.context import (
    console,
    err_console,
    load_config,
    make_orchestrator,
    resolve_build_id,
)
from genforge.core.errors import ExitCode
from genforge.models.jobs import JobState
from genforge.monitor.renderer import ResultRenderer


def verify_cmd(
    ctx: typer.Context,
    job: str = typer.Argument(..., help="Name of the job to run."),
    build_id: str = typer.Option(
        ..., "--build-id", "-b", help="Build whose artifact to verify."
    ),
) -> None:
    """Run JOB against the artifact stored for the build."""
    config = load_config(ctx)
    build_id = resolve_build_id(build_id)
    try:
        config.get_job(job)
    except KeyError:
        known = ", ".join(spec.name for spec in config.jobs)
        err_console.print(
            f"[bold red]Unknown job:[/bold red] {escape(job)} (known: {escape(known)})"
        )
        raise typer.Exit(code=ExitCode.CONFIGURATION_ERROR) from None

    orchestrator = make_orchestrator(ctx, config)
    result = orchestrator.ledger.get(build_id, job)
    if result is not None:
        console.print(
            f"[yellow]{escape(job)} already ran for {build_id}; showing the recorded result.[/yellow]"
        )
    else:
        result = orchestrator.run_job(build_id, job)

    ResultRenderer(console=console).print_result(result)
    if result.status != JobState.PASSED:
        raise typer.Exit(code=ExitCode.JOB_FAILED)
