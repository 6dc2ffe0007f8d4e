"""``genforge gate BUILD_ID``: decide the release gate from recorded results."""

from __future__ import annotations

import typer

from genforge.cli.context import console, load_config, make_orchestrator, resolve_build_id
from genforge.core.errors import ExitCode
from genforge.monitor.renderer import ResultRenderer


def gate_cmd(
    ctx: typer.Context,
    build_id: str = typer.Argument(..., help="Build to gate."),
) -> None:
    """Pass only if every fatal job has a Passed result for BUILD_ID."""
    config = load_config(ctx)
    build_id = resolve_build_id(build_id)
    decision = make_orchestrator(ctx, config).gate(build_id)

    ResultRenderer(console=console).print_decision(decision)
    if not decision.passed:
        raise typer.Exit(code=ExitCode.GATE_FAILED)
