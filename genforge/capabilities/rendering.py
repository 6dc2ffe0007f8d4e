"""Default diff renderer: a plain patch document.

An HTML renderer (e.g. diff2html) plugs in through the ``DiffRenderer``
protocol; this one keeps the pipeline usable without it.
"""

from __future__ import annotations

from genforge.capabilities.protocols import RenderedDocument
from genforge.models.reports import DiffReport, FileChange


class UnifiedDiffRenderer:
    """Renders a DiffReport as a single unified-diff text document."""

    def render(self, report: DiffReport) -> RenderedDocument:
        lines: list[str] = [
            f"# {report.summary()}",
            "",
        ]
        for entry in report.entries:
            if entry.binary:
                lines.append(f"Binary file {entry.path} {entry.change.value}")
                continue
            if entry.change == FileChange.MODIFIED and not entry.unified_diff:
                lines.append(
                    f"Mode of {entry.path} changed "
                    f"{entry.old_mode:o} -> {entry.new_mode:o}"
                )
                continue
            lines.append(entry.unified_diff.rstrip("\n"))
        content = "\n".join(lines) + "\n"
        return RenderedDocument(
            content=content.encode("utf-8"),
            content_type="text/x-diff; charset=utf-8",
            filename="index.diff",
        )
