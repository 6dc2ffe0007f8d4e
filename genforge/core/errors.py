"""Error taxonomy for pipeline runs and their CLI exit codes.

Pipeline-level errors (generation, packaging) abort a run.  Job-level
failures never surface as exceptions past the job runner; they are
recorded as Errored/Failed results instead.
"""

from __future__ import annotations

from enum import IntEnum

from genforge.models.config import ConfigurationError


class ExitCode(IntEnum):
    """Process exit status per failure category."""

    OK = 0
    GENERATION_FAILED = 10
    PACKAGING_FAILED = 11
    JOB_FAILED = 12
    GATE_FAILED = 13
    DIFF_GENERATION_FAILED = 14
    PUBLISH_FAILED = 15
    CONFIGURATION_ERROR = 16


class GenforgeError(RuntimeError):
    """Base class for pipeline errors that map onto an exit code."""

    exit_code: ExitCode = ExitCode.GENERATION_FAILED


class GenerationError(GenforgeError):
    """The code generator failed or produced no output tree.

    Deterministic given the same inputs, so it is never retried here.
    """

    exit_code = ExitCode.GENERATION_FAILED

    def __init__(self, cause: str, *, revision: str = "", log: str = "") -> None:
        self.cause = cause
        self.revision = revision
        self.log = log
        prefix = f"Generation of {revision} failed" if revision else "Generation failed"
        super().__init__(f"{prefix}: {cause}")


class PackagingError(GenforgeError):
    """A tree could not be packed or an artifact could not be stored."""

    exit_code = ExitCode.PACKAGING_FAILED


class UnpackError(PackagingError):
    """An artifact is truncated, corrupt, or tries to escape its destination."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Cannot unpack artifact: {reason}")


class ArtifactExistsError(PackagingError):
    """A second write was attempted for a BuildIdentifier (write-once)."""


class ArtifactNotFoundError(PackagingError):
    """No artifact is stored for the requested BuildIdentifier."""


class ArtifactIntegrityError(PackagingError):
    """Stored artifact bytes no longer match their recorded digest."""


class JobTimeout(GenforgeError):
    """A job exceeded its wall-clock limit and was killed."""

    exit_code = ExitCode.JOB_FAILED


class JobCrash(GenforgeError):
    """A job could not be launched, was killed by a signal, or raised."""

    exit_code = ExitCode.JOB_FAILED


class JobCancelled(GenforgeError):
    """A job was stopped because the run was cancelled."""

    exit_code = ExitCode.JOB_FAILED


class InvalidTransitionError(RuntimeError):
    """Raised when a requested job state transition is not valid."""


class GatePreconditionError(GenforgeError):
    """The gate was asked to decide while dispatched jobs were unfinished."""

    exit_code = ExitCode.GATE_FAILED


class RenderError(GenforgeError):
    """The diff renderer failed; the persisted DiffReport stays valid."""

    exit_code = ExitCode.PUBLISH_FAILED


class PublishError(GenforgeError):
    """Posting the diff summary failed; the persisted diff stays valid."""

    exit_code = ExitCode.PUBLISH_FAILED

    def __init__(self, message: str, *, report_key: str = "") -> None:
        self.report_key = report_key
        super().__init__(message)


__all__ = [
    "ArtifactExistsError",
    "ArtifactIntegrityError",
    "ArtifactNotFoundError",
    "ConfigurationError",
    "ExitCode",
    "GatePreconditionError",
    "GenerationError",
    "GenforgeError",
    "InvalidTransitionError",
    "JobCancelled",
    "JobCrash",
    "JobTimeout",
    "PackagingError",
    "PublishError",
    "RenderError",
    "UnpackError",
]
