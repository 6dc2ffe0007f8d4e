"""``genforge package BUILD_ID``: pack the generated tree and store it."""

from __future__ import annotations

import typer
from rich.markup import escape
from rich.panel import Panel

from genforge.cli.context import (
    console,
    fail,
    load_config,
    make_orchestrator,
    resolve_build_id,
)
from genforge.core.errors import ExitCode, GenerationError, PackagingError


def package_cmd(
    ctx: typer.Context,
    build_id: str = typer.Argument(..., help="Build whose generated tree to package."),
    revision: str = typer.Option(
        "", "--revision", "-r", help="Source revision recorded with the artifact."
    ),
) -> None:
    """Pack the tree generated for BUILD_ID and publish it as the build's artifact."""
    config = load_config(ctx)
    build_id = resolve_build_id(build_id)
    orchestrator = make_orchestrator(ctx, config)

    try:
        artifact = orchestrator.package(build_id, revision=revision)
    except (GenerationError, PackagingError) as exc:
        raise fail(exc, ExitCode.PACKAGING_FAILED) from exc

    console.print(
        Panel(
            "\n".join([
                f"[bold]Build:[/bold]    {artifact.build_id}",
                f"[bold]Size:[/bold]     {artifact.size_bytes} bytes",
                f"[bold]SHA-256:[/bold]  {artifact.sha256}",
                f"[bold]Location:[/bold] {escape(orchestrator.artifact_store.location(build_id))}",
            ]),
            title="[bold green]Packaged[/bold green]",
            border_style="green",
        )
    )
