"""Verification job models: specs, states, and results."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class JobState(str, Enum):
    """Lifecycle state of one verification job."""

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


# Valid state transitions: enforced structurally by JobTracker.
# Every state other than PENDING and RUNNING is terminal.
VALID_TRANSITIONS: dict[JobState, set[JobState]] = {
    JobState.PENDING: {JobState.RUNNING, JobState.SKIPPED, JobState.CANCELLED},
    JobState.RUNNING: {
        JobState.PASSED,
        JobState.FAILED,
        JobState.ERRORED,
        JobState.CANCELLED,
    },
    JobState.PASSED: set(),
    JobState.FAILED: set(),
    JobState.ERRORED: set(),
    JobState.SKIPPED: set(),
    JobState.CANCELLED: set(),
}

TERMINAL_STATES: frozenset[JobState] = frozenset(
    state for state, targets in VALID_TRANSITIONS.items() if not targets
)


class JobSpec(BaseModel):
    """Declarative description of one verification job.

    A job either runs ``command`` (an argv list, no shell) in the unpacked
    artifact, or invokes a registered in-process ``capability`` check.
    ``fatal`` jobs block the gate; advisory jobs are only reported.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    command: list[str] = []
    capability: str = ""
    env: dict[str, str] = {}
    working_directory: str = "."
    fatal: bool = True
    timeout_seconds: float | None = None  # None -> pipeline default
    required_tools: list[str] = []
    needs: list[str] = []

    @model_validator(mode="after")
    def _one_action(self) -> JobSpec:
        if bool(self.command) == bool(self.capability):
            raise ValueError(
                f"Job {self.name!r} must set exactly one of 'command' or 'capability'"
            )
        if not self.name or self.name.startswith("__"):
            raise ValueError(f"Invalid job name: {self.name!r}")
        return self


class JobResult(BaseModel):
    """Outcome of one JobSpec execution.  Created once, never mutated."""

    model_config = ConfigDict(frozen=True)

    build_id: str
    job_name: str
    status: JobState
    reason: str = ""
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    duration_seconds: float = 0.0
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    finished_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    artifact_sha256: str = ""  # sha256 of the artifact this job unpacked

    @model_validator(mode="after")
    def _terminal_only(self) -> JobResult:
        if self.status not in TERMINAL_STATES:
            raise ValueError(
                f"JobResult for {self.job_name!r} must carry a terminal status, "
                f"got {self.status.value}"
            )
        return self


# Environment shared by every cargo job of the SDK smoke-test matrix.
_CARGO_ENV: dict[str, str] = {
    "CARGO_INCREMENTAL": "0",
    "RUSTFLAGS": "-D warnings",
    # Each job has its own working directory, so its build cache stays private.
    "CARGO_TARGET_DIR": "target",
}

# The SDK smoke-test matrix.
DEFAULT_JOB_SPECS: list[JobSpec] = [
    JobSpec(
        name="unit-tests",
        command=["cargo", "test", "--all-features"],
        env=_CARGO_ENV,
        required_tools=["cargo"],
    ),
    JobSpec(
        name="docs",
        command=[
            "cargo", "doc", "--no-deps", "--document-private-items", "--all-features",
        ],
        env=_CARGO_ENV,
        required_tools=["cargo"],
    ),
    JobSpec(
        name="clippy",
        command=["cargo", "clippy", "--all-features"],
        env=_CARGO_ENV,
        required_tools=["cargo"],
    ),
    JobSpec(
        name="unused-dependencies",
        command=["cargo", "+nightly", "udeps"],
        env=_CARGO_ENV,
        required_tools=["cargo", "cargo-udeps"],
        fatal=False,
    ),
    JobSpec(
        name="per-crate-checks",
        command=["./tools/additional-per-crate-checks.sh", "./sdk/", "./tools/ci-cdk/"],
        env=_CARGO_ENV,
        required_tools=["cargo"],
    ),
]
