"""``genforge generate REVISION``: run the code generator for one revision.

The generated tree is kept under the work root, labelled with the build
id, where ``genforge package`` picks it up.
"""

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
from genforge.core.errors import GenerationError


def generate_cmd(
    ctx: typer.Context,
    revision: str = typer.Argument(..., help="Source revision to generate from."),
    build_id: str = typer.Option(
        None,
        "--build-id",
        "-b",
        help="Build identifier; derived from the revision when omitted.",
    ),
    attempt: int = typer.Option(
        1, "--attempt", help="Attempt number used when deriving the build id."
    ),
) -> None:
    """Generate the code tree for REVISION."""
    config = load_config(ctx)
    build_id = resolve_build_id(build_id, revision, attempt)
    orchestrator = make_orchestrator(ctx, config)

    try:
        tree = orchestrator.generate(revision, build_id)
    except GenerationError as exc:
        raise fail(exc) from exc

    console.print(
        Panel(
            "\n".join([
                f"[bold]Revision:[/bold] {escape(revision)}",
                f"[bold]Build:[/bold]    {build_id}",
                f"[bold]Files:[/bold]    {len(tree.files)}",
                f"[bold]Tree:[/bold]     {escape(str(tree.root))}",
            ]),
            title="[bold green]Generated[/bold green]",
            border_style="green",
        )
    )
