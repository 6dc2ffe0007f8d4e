"""Shared CLI plumbing: logging setup, config loading, orchestrator wiring."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from genforge.capabilities.comments import LocalFileCommentPoster
from genforge.capabilities.generator import SubprocessCodeGenerator
from genforge.capabilities.protocols import RevisionResolver
from genforge.capabilities.source import DirectoryRevisionResolver, GitRevisionResolver
from genforge.capabilities.storage import LocalObjectStorage
from genforge.config import config as settings
from genforge.core.errors import ExitCode, GenforgeError
from genforge.core.job_graph import CyclicDependencyError, JobGraph, UnknownDependencyError
from genforge.core.orchestrator import Orchestrator
from genforge.diff.publisher import DiffPublisher
from genforge.models.artifacts import make_build_id, validate_build_id
from genforge.models.config import ConfigurationError, PipelineConfig, load_pipeline_config

console = Console()
err_console = Console(stderr=True)


@dataclass
class CliState:
    """Options given to the top-level ``genforge`` callback."""

    config_path: Path | None = None
    snapshots: Path | None = None


def setup_logging(level: str) -> None:
    """Route all library logging through a RichHandler on stderr."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise typer.BadParameter(f"Unknown log level: {level}")
    logging.basicConfig(
        level=numeric,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


def state_of(ctx: typer.Context) -> CliState:
    if isinstance(ctx.obj, CliState):
        return ctx.obj
    return CliState()


def load_config(ctx: typer.Context) -> PipelineConfig:
    """Build the PipelineConfig from the project file and GENFORGE_* settings.

    Exits with ``ExitCode.CONFIGURATION_ERROR`` if it cannot be loaded or
    its jobs do not form a valid dependency graph.
    """
    state = state_of(ctx)
    path = state.config_path or settings.config_path
    try:
        config = load_pipeline_config(path, **settings.pipeline_overrides())
        JobGraph(config.jobs)
    except (ConfigurationError, CyclicDependencyError, UnknownDependencyError) as exc:
        err_console.print(f"[bold red]Configuration error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=ExitCode.CONFIGURATION_ERROR) from exc
    return config


def make_resolver(ctx: typer.Context, config: PipelineConfig) -> RevisionResolver:
    """Directory snapshots when ``--snapshots`` is given, git worktrees otherwise."""
    state = state_of(ctx)
    if state.snapshots is not None:
        return DirectoryRevisionResolver(state.snapshots)
    return GitRevisionResolver(config.source_repo, Path(config.work_root) / "worktrees")


def make_orchestrator(ctx: typer.Context, config: PipelineConfig) -> Orchestrator:
    return Orchestrator(
        config,
        resolver=make_resolver(ctx, config),
        generator=SubprocessCodeGenerator(),
    )


def make_publisher(
    ctx: typer.Context, config: PipelineConfig, comments_dir: Path | None
) -> DiffPublisher:
    orchestrator = make_orchestrator(ctx, config)
    poster = LocalFileCommentPoster(comments_dir) if comments_dir is not None else None
    return DiffPublisher(
        orchestrator.adapter,
        LocalObjectStorage(config.storage_root),
        poster=poster,
        namespace=config.namespace,
    )


def fail(exc: GenforgeError, code: ExitCode | None = None) -> typer.Exit:
    """Print *exc* and return the ``typer.Exit`` to raise for it."""
    err_console.print(f"[bold red]{type(exc).__name__}:[/bold red] {escape(str(exc))}")
    log = getattr(exc, "log", "")
    if log:
        err_console.print(log.rstrip()[-2000:], style="dim", markup=False)
    return typer.Exit(code=int(code if code is not None else exc.exit_code))


def resolve_build_id(build_id: str | None, revision: str | None = None, attempt: int = 1) -> str:
    """Validate an explicit build id, or derive one from *revision*."""
    try:
        if build_id:
            return validate_build_id(build_id)
        if revision:
            return make_build_id(revision, attempt)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    raise typer.BadParameter("Either a build id or a revision is required")
