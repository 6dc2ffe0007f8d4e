"""``genforge run REVISION``: generate, package, verify and gate in one go."""

from __future__ import annotations

import typer

from genforge.cli.context import (
    console,
    fail,
    load_config,
    make_orchestrator,
    resolve_build_id,
)
from genforge.core.errors import ExitCode, GenerationError, PackagingError
from genforge.monitor.renderer import ResultRenderer


def run_cmd(
    ctx: typer.Context,
    revision: str = typer.Argument(..., help="Source revision to build."),
    attempt: int = typer.Option(
        1, "--attempt", help="Attempt number; retries get a fresh build id."
    ),
    build_id: str = typer.Option(
        None, "--build-id", "-b", help="Explicit build identifier."
    ),
) -> None:
    """Run the whole pipeline for REVISION and exit with the gate's verdict."""
    config = load_config(ctx)
    build_id = resolve_build_id(build_id, revision, attempt)
    orchestrator = make_orchestrator(ctx, config)
    renderer = ResultRenderer(console=console)

    try:
        run = orchestrator.run(revision, attempt=attempt, build_id=build_id)
    except (GenerationError, PackagingError) as exc:
        renderer.print_results(
            build_id, orchestrator.graph.specs, orchestrator.ledger.get_results(build_id)
        )
        raise fail(exc) from exc

    renderer.print_results(run.build_id, orchestrator.graph.specs, run.results)
    renderer.print_decision(run.decision)
    if not run.decision.passed:
        raise typer.Exit(code=ExitCode.GATE_FAILED)
