"""``genforge status [BUILD_ID]``: show recorded results.

Without a build id, lists every build that has results.
"""

from __future__ import annotations

import typer
from rich.table import Table

from genforge.cli.context import console, load_config, make_orchestrator, resolve_build_id
from genforge.core.gate import Gate
from genforge.monitor.renderer import ResultRenderer


def status_cmd(
    ctx: typer.Context,
    build_id: str = typer.Argument(None, help="Build to show; omit to list builds."),
) -> None:
    """Show the job results and gate outcome recorded for a build."""
    config = load_config(ctx)
    orchestrator = make_orchestrator(ctx, config)
    ledger = orchestrator.ledger

    if build_id is None:
        build_ids = ledger.get_all_build_ids()
        if not build_ids:
            console.print("[dim]No results recorded yet.[/dim]")
            return
        table = Table(title="Recorded Builds", header_style="bold cyan")
        table.add_column("Build", style="cyan")
        table.add_column("Results", justify="right")
        table.add_column("Artifact", justify="center")
        for bid in build_ids:
            stored = orchestrator.artifact_store.exists(bid)
            table.add_row(
                bid,
                str(len(ledger.get_results(bid))),
                "[green]stored[/green]" if stored else "[dim]none[/dim]",
            )
        console.print(table)
        return

    build_id = resolve_build_id(build_id)
    results = ledger.get_results(build_id)
    renderer = ResultRenderer(console=console)
    renderer.print_results(build_id, orchestrator.graph.specs, results)
    renderer.print_decision(Gate(build_id).decide(orchestrator.graph.specs, results))
