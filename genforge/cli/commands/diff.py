"""``genforge diff BASE HEAD``: diff the generated code of two revisions.

Both revisions are generated, their trees compared, and the report plus
a rendered patch stored under the revision pair.  With ``--thread`` the
summary is also posted as a review comment.
"""

from __future__ import annotations

from pathlib import Path

import typer

from genforge.cli.context import console, fail, load_config, make_publisher
from genforge.core.errors import ExitCode, GenerationError, PublishError, RenderError
from genforge.monitor.renderer import ResultRenderer


def diff_cmd(
    ctx: typer.Context,
    base: str = typer.Argument(..., help="Base revision."),
    head: str = typer.Argument(..., help="Head revision."),
    thread: str = typer.Option(
        None, "--thread", "-t", help="Review thread to post the summary to."
    ),
    comments_dir: Path = typer.Option(
        Path(".genforge/comments"),
        "--comments-dir",
        help="Directory where posted comments are written.",
    ),
) -> None:
    """Generate BASE and HEAD, diff the trees and publish the result."""
    config = load_config(ctx)
    publisher = make_publisher(ctx, config, comments_dir if thread else None)

    try:
        receipt = publisher.publish(base, head, config.generation, thread_id=thread)
    except GenerationError as exc:
        raise fail(exc, ExitCode.DIFF_GENERATION_FAILED) from exc
    except (RenderError, PublishError) as exc:
        raise fail(exc) from exc

    report = publisher.load_report(base, head)
    ResultRenderer(console=console).print_diff(report, receipt)
