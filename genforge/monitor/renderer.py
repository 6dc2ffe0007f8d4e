"""Rich terminal renderer for job results, gate decisions and diffs.

Color scheme
------------
- green     : PASSED
- red       : FAILED
- bold red  : ERRORED
- yellow    : RUNNING
- dim       : PENDING, SKIPPED
- magenta   : CANCELLED
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from genforge.models.jobs import JobResult, JobSpec, JobState
from genforge.models.reports import DiffReport, FileChange, GateDecision, PublishReceipt


# ---------------------------------------------------------------------------
# State -> Rich markup mapping
# ---------------------------------------------------------------------------

_STATE_LABELS: dict[JobState, str] = {
    JobState.PASSED: "[green]PASSED[/green]",
    JobState.FAILED: "[red]FAILED[/red]",
    JobState.ERRORED: "[bold red]ERRORED[/bold red]",
    JobState.RUNNING: "[yellow]RUNNING[/yellow]",
    JobState.PENDING: "[dim]PENDING[/dim]",
    JobState.SKIPPED: "[dim]SKIPPED[/dim]",
    JobState.CANCELLED: "[magenta]CANCELLED[/magenta]",
}

_CHANGE_LABELS: dict[FileChange, str] = {
    FileChange.ADDED: "[green]added[/green]",
    FileChange.REMOVED: "[red]removed[/red]",
    FileChange.MODIFIED: "[yellow]modified[/yellow]",
}


def state_label(state: JobState) -> str:
    return _STATE_LABELS.get(state, state.value)


class ResultRenderer:
    """Renders pipeline outcomes as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Job results
    # ------------------------------------------------------------------

    def render_results(
        self,
        build_id: str,
        specs: Iterable[JobSpec],
        results: Mapping[str, JobResult],
    ) -> Table:
        """Build a table with one row per JobSpec, recorded or not."""
        table = Table(
            title=f"Jobs for {escape(build_id)}",
            show_header=True,
            header_style="bold cyan",
            expand=True,
        )
        table.add_column("Job", min_width=20)
        table.add_column("Fatal", justify="center", width=7)
        table.add_column("State", min_width=12, justify="center")
        table.add_column("Reason", min_width=16)
        table.add_column("Exit", justify="right", width=6)
        table.add_column("Duration", justify="right", width=10)

        for spec in specs:
            fatal = "yes" if spec.fatal else "[dim]no[/dim]"
            result = results.get(spec.name)
            if result is None:
                table.add_row(escape(spec.name), fatal, "[dim]-[/dim]", "[dim]no result[/dim]", "", "")
                continue
            table.add_row(
                escape(spec.name),
                fatal,
                state_label(result.status),
                escape(result.reason) or "[dim]-[/dim]",
                "" if result.exit_code is None else str(result.exit_code),
                f"{result.duration_seconds:.2f}s",
            )
        return table

    def render_result(self, result: JobResult) -> Panel:
        """Render one job result with the tail of its output."""
        lines = [
            f"[bold]Build:[/bold] {escape(result.build_id)}",
            f"[bold]State:[/bold] {state_label(result.status)}",
        ]
        if result.reason:
            lines.append(f"[bold]Reason:[/bold] {escape(result.reason)}")
        if result.exit_code is not None:
            lines.append(f"[bold]Exit code:[/bold] {result.exit_code}")
        lines.append(f"[bold]Duration:[/bold] {result.duration_seconds:.2f}s")

        parts: list[Text] = [Text.from_markup("\n".join(lines))]
        for label, output in (("stdout", result.stdout), ("stderr", result.stderr)):
            if output.strip():
                parts.append(Text(""))
                parts.append(Text.from_markup(f"[bold]{label}[/bold]"))
                parts.append(Text(_last_lines(output)))

        border = "green" if result.status == JobState.PASSED else "red"
        return Panel(
            Group(*parts), title=f"[bold]{escape(result.job_name)}[/bold]", border_style=border
        )

    # ------------------------------------------------------------------
    # Gate
    # ------------------------------------------------------------------

    def render_decision(self, decision: GateDecision) -> Panel:
        """Render the gate report: one line per fatal job, then advisory ones."""
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Job", min_width=20)
        table.add_column("Fatal", justify="center", width=7)
        table.add_column("State", min_width=12, justify="center")
        table.add_column("Reason")

        ordered = sorted(decision.verdicts, key=lambda v: (not v.fatal, v.job_name))
        for verdict in ordered:
            table.add_row(
                escape(verdict.job_name),
                "yes" if verdict.fatal else "[dim]no[/dim]",
                state_label(verdict.status),
                escape(verdict.reason) or "[dim]-[/dim]",
            )

        if decision.passed:
            headline = f"[bold green]Gate PASSED[/bold green] for {escape(decision.build_id)}"
        else:
            headline = f"[bold red]Gate FAILED[/bold red] for {escape(decision.build_id)}"

        return Panel(
            Group(Text.from_markup(headline), Text(""), table),
            title="[bold]Release Gate[/bold]",
            subtitle=f"Decided: {decision.decided_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
            border_style="green" if decision.passed else "red",
            padding=(1, 2),
        )

    # ------------------------------------------------------------------
    # Diffs
    # ------------------------------------------------------------------

    def render_diff(self, report: DiffReport, receipt: PublishReceipt | None = None) -> Panel:
        """Render a diff summary, listing every changed path."""
        parts: list[object] = [Text(report.summary())]

        if not report.is_empty:
            table = Table(show_header=True, header_style="bold cyan", expand=True)
            table.add_column("Path", min_width=30)
            table.add_column("Change", justify="center", width=10)
            table.add_column("+", justify="right", width=7)
            table.add_column("-", justify="right", width=7)
            for entry in report.entries:
                table.add_row(
                    escape(entry.path),
                    _CHANGE_LABELS[entry.change],
                    "[dim]binary[/dim]" if entry.binary else str(entry.lines_added),
                    "" if entry.binary else str(entry.lines_removed),
                )
            parts.extend([Text(""), table])

        if receipt is not None:
            parts.append(Text(""))
            parts.append(Text.from_markup(f"[bold]Stored at:[/bold] {escape(receipt.location)}"))
            if receipt.comment_id:
                parts.append(Text.from_markup(f"[bold]Comment:[/bold] {escape(receipt.comment_id)}"))

        return Panel(
            Group(*parts),
            title=f"[bold]Diff {escape(report.base_revision)}..{escape(report.head_revision)}[/bold]",
            border_style="blue",
            padding=(1, 2),
        )

    # ------------------------------------------------------------------
    # Standalone print
    # ------------------------------------------------------------------

    def print_results(
        self, build_id: str, specs: Iterable[JobSpec], results: Mapping[str, JobResult]
    ) -> None:
        self.console.print(self.render_results(build_id, specs, results))

    def print_result(self, result: JobResult) -> None:
        self.console.print(self.render_result(result))

    def print_decision(self, decision: GateDecision) -> None:
        self.console.print(self.render_decision(decision))

    def print_diff(self, report: DiffReport, receipt: PublishReceipt | None = None) -> None:
        self.console.print(self.render_diff(report, receipt))


def _last_lines(text: str, count: int = 20) -> str:
    lines = text.rstrip().splitlines()
    if len(lines) <= count:
        return "\n".join(lines)
    return "\n".join(["...", *lines[-count:]])
