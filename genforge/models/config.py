"""Pipeline and generation configuration models.

The pipeline configuration is built once, before a run starts, and passed
to every component.  It is loaded from ``genforge.toml`` or from the
``[tool.genforge]`` table of ``pyproject.toml``.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from genforge.models.jobs import DEFAULT_JOB_SPECS, JobSpec


class ConfigurationError(ValueError):
    """Raised when the project configuration cannot be loaded or is invalid."""


class GenerationConfig(BaseModel):
    """Options passed to the external code generator.

    ``command`` is an argv template.  The placeholders ``{snapshot}``,
    ``{output}``, ``{modules}``, ``{full}`` and ``{revision}`` are
    substituted per run.
    """

    model_config = ConfigDict(frozen=True)

    command: list[str] = [
        "./gradlew",
        "-Paws.services={modules}",
        "-Paws.fullsdk={full}",
        ":aws:sdk:assemble",
    ]
    output_subdir: str = "aws/sdk/build/aws-sdk"
    modules: list[str] = []  # e.g. ["+sts", "+sso", "+dynamodb"]
    full: bool = False  # full SDK instead of the smoke-test subset
    feature_flags: dict[str, bool] = {}
    env: dict[str, str] = {}

    def template_values(self, *, snapshot: Path, output: Path, revision: str) -> dict[str, str]:
        """Values for the ``command`` placeholders."""
        return {
            "snapshot": str(snapshot),
            "output": str(output),
            "modules": ",".join(self.modules),
            "full": "true" if self.full else "false",
            "revision": revision,
        }


class PipelineConfig(BaseModel):
    """Project-level configuration for a genforge pipeline."""

    model_config = ConfigDict(frozen=True)

    project_name: str = "genforge"
    source_repo: Path = Path(".")
    storage_root: Path = Path(".genforge/storage")
    namespace: str = "genforge"
    work_root: Path = Path(".genforge/work")
    results_db_path: Path = Path(".genforge/results.db")
    generation: GenerationConfig = GenerationConfig()
    jobs: list[JobSpec] = Field(default_factory=lambda: list(DEFAULT_JOB_SPECS))
    default_job_timeout_seconds: float = 3600.0
    max_parallel_jobs: int = 4
    max_output_bytes: int = 64 * 1024

    @model_validator(mode="after")
    def _unique_job_names(self) -> PipelineConfig:
        names = [job.name for job in self.jobs]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate job names: {', '.join(duplicates)}")
        if self.max_parallel_jobs < 1:
            raise ValueError("max_parallel_jobs must be >= 1")
        return self

    def get_job(self, name: str) -> JobSpec:
        for job in self.jobs:
            if job.name == name:
                return job
        raise KeyError(name)

    def job_timeout(self, spec: JobSpec) -> float:
        if spec.timeout_seconds is not None:
            return spec.timeout_seconds
        return self.default_job_timeout_seconds


def load_pipeline_config(
    path: Path | None = None, **overrides: Any
) -> PipelineConfig:
    """Load a ``PipelineConfig`` from a TOML file.

    *path* may point at a ``genforge.toml`` (top-level keys) or a
    ``pyproject.toml`` (``[tool.genforge]``).  Without a path, the current
    directory is searched for either.  Keyword *overrides* win over file
    values; when no file is found, defaults plus overrides are used.
    Relative paths in the file are resolved against the file's directory.
    """
    data: dict[str, Any] = {}
    source: Path | None = None

    candidates = [Path(path)] if path else [Path("genforge.toml"), Path("pyproject.toml")]
    for candidate in candidates:
        if not candidate.is_file():
            if path:
                raise ConfigurationError(f"Configuration file not found: {candidate}")
            continue
        try:
            raw = tomllib.loads(candidate.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Invalid TOML in {candidate}: {exc}") from exc
        if candidate.name == "pyproject.toml":
            raw = raw.get("tool", {}).get("genforge")
            if raw is None:
                continue
        data = raw
        source = candidate
        break

    if source is not None:
        base = source.resolve().parent
        for key in ("source_repo", "storage_root", "work_root", "results_db_path"):
            if key in data and not Path(data[key]).is_absolute():
                data[key] = str(base / data[key])

    data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return PipelineConfig(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid pipeline configuration: {exc}") from exc
