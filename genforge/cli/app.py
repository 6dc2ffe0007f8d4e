"""Main Typer application: imports and registers all CLI commands.

Entry point: ``genforge`` (configured via pyproject.toml console_scripts).

Commands: generate, package, verify, gate, diff, run, status.
"""

from __future__ import annotations

from pathlib import Path

import typer

from genforge.cli.commands.diff import diff_cmd
from genforge.cli.commands.gate import gate_cmd
from genforge.cli.commands.generate import generate_cmd
from genforge.cli.commands.package import package_cmd
from genforge.cli.commands.run import run_cmd
from genforge.cli.commands.status import status_cmd
from genforge.cli.commands.verify import verify_cmd
from genforge.cli.context import CliState, setup_logging
from genforge.config import config as settings

app = typer.Typer(
    name="genforge",
    help="genforge: generate, package, verify and diff generated code.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Project file (genforge.toml or pyproject.toml).",
    ),
    snapshots: Path = typer.Option(
        None,
        "--snapshots",
        help="Resolve revisions as subdirectories of this path instead of git.",
    ),
    log_level: str = typer.Option(
        None, "--log-level", help="Logging level; defaults to GENFORGE_LOG_LEVEL."
    ),
) -> None:
    setup_logging(log_level or settings.log_level)
    ctx.obj = CliState(config_path=config_path, snapshots=snapshots)


# Register subcommands
app.command(name="generate", help="Run the code generator for a revision.")(generate_cmd)
app.command(name="package", help="Pack a generated tree into the build's artifact.")(package_cmd)
app.command(name="verify", help="Run one verification job against a build.")(verify_cmd)
app.command(name="gate", help="Decide the release gate for a build.")(gate_cmd)
app.command(name="diff", help="Diff the generated code of two revisions.")(diff_cmd)
app.command(name="run", help="Generate, package, verify and gate a revision.")(run_cmd)
app.command(name="status", help="Show recorded job results.")(status_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
