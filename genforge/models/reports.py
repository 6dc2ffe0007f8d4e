"""Report models: gate decisions, tree diffs, and publish receipts."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from genforge.models.jobs import JobState


class JobVerdict(BaseModel):
    """One line of the gate report."""

    model_config = ConfigDict(frozen=True)

    job_name: str
    fatal: bool
    status: JobState
    reason: str = ""
    missing: bool = False  # True when no result existed for the job


class GateDecision(BaseModel):
    """Derived release-gate outcome for one build.  Never stored."""

    model_config = ConfigDict(frozen=True)

    build_id: str
    passed: bool
    verdicts: list[JobVerdict] = []
    reasons: list[str] = []
    decided_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def status(self) -> str:
        return "passed" if self.passed else "failed"

    @property
    def fatal_verdicts(self) -> list[JobVerdict]:
        return [v for v in self.verdicts if v.fatal]


class FileChange(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class FileDiff(BaseModel):
    """Change record for one path of a tree diff."""

    model_config = ConfigDict(frozen=True)

    path: str
    change: FileChange
    binary: bool = False
    old_mode: int | None = None
    new_mode: int | None = None
    lines_added: int = 0
    lines_removed: int = 0
    unified_diff: str = ""


class DiffReport(BaseModel):
    """Structural comparison of two generated trees.

    Entries are sorted by path; unchanged paths are not listed.
    """

    model_config = ConfigDict(frozen=True)

    base_revision: str
    head_revision: str
    entries: list[FileDiff] = []
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def _paths(self, change: FileChange) -> list[str]:
        return [e.path for e in self.entries if e.change == change]

    @property
    def added(self) -> list[str]:
        return self._paths(FileChange.ADDED)

    @property
    def removed(self) -> list[str]:
        return self._paths(FileChange.REMOVED)

    @property
    def modified(self) -> list[str]:
        return self._paths(FileChange.MODIFIED)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def get(self, path: str) -> FileDiff | None:
        for entry in self.entries:
            if entry.path == path:
                return entry
        return None

    def summary(self) -> str:
        """One-line human-readable summary of the diff."""
        if self.is_empty:
            return (
                f"No generated code changes between {self.base_revision} "
                f"and {self.head_revision}."
            )
        lines_added = sum(e.lines_added for e in self.entries)
        lines_removed = sum(e.lines_removed for e in self.entries)
        return (
            f"Generated code diff {self.base_revision}..{self.head_revision}: "
            f"{len(self.added)} added, {len(self.removed)} removed, "
            f"{len(self.modified)} modified files "
            f"(+{lines_added}/-{lines_removed} lines)."
        )


class PublishReceipt(BaseModel):
    """Proof that a diff was persisted and (optionally) announced."""

    model_config = ConfigDict(frozen=True)

    base_revision: str
    head_revision: str
    report_key: str
    rendered_key: str
    location: str
    summary: str
    comment_id: str | None = None
    published_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
