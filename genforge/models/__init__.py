"""genforge data models: all Pydantic v2, all frozen (immutable)."""

from genforge.models.artifacts import (
    Artifact,
    DirectoryTree,
    TreeEntry,
    make_build_id,
    validate_build_id,
)
from genforge.models.config import (
    GenerationConfig,
    PipelineConfig,
    load_pipeline_config,
)
from genforge.models.jobs import (
    DEFAULT_JOB_SPECS,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    JobResult,
    JobSpec,
    JobState,
)
from genforge.models.reports import (
    DiffReport,
    FileChange,
    FileDiff,
    GateDecision,
    JobVerdict,
    PublishReceipt,
)

__all__ = [
    # artifacts
    "Artifact",
    "DirectoryTree",
    "TreeEntry",
    "make_build_id",
    "validate_build_id",
    # config
    "GenerationConfig",
    "PipelineConfig",
    "load_pipeline_config",
    # jobs
    "DEFAULT_JOB_SPECS",
    "TERMINAL_STATES",
    "VALID_TRANSITIONS",
    "JobResult",
    "JobSpec",
    "JobState",
    # reports
    "DiffReport",
    "FileChange",
    "FileDiff",
    "GateDecision",
    "JobVerdict",
    "PublishReceipt",
]
