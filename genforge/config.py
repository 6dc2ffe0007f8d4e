"""Process configuration: env-driven defaults for the CLI.

Centralized settings using pydantic-settings.  Values come from
GENFORGE_* environment variables or a .env file in the working
directory, and seed the ``PipelineConfig`` built by the CLI.  Explicit
command-line options and the project file win over these.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ProdConfig(BaseSettings):
    """Process-wide settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export GENFORGE_LOG_LEVEL=DEBUG
        export GENFORGE_STORAGE_ROOT=/data/genforge/storage
        export GENFORGE_MAX_PARALLEL_JOBS=8

    Or via .env file::

        GENFORGE_ENVIRONMENT=ci
        GENFORGE_CONFIG_PATH=ci/genforge.toml
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="GENFORGE_",
        env_file_encoding="utf-8",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"

    # Project file; genforge.toml or pyproject.toml when unset
    config_path: Path | None = None

    # Storage paths.  None defers to the project file.
    storage_root: Path | None = None
    work_root: Path | None = None
    results_db_path: Path | None = None

    # Job execution
    max_parallel_jobs: int | None = None
    job_timeout_seconds: float | None = None

    def pipeline_overrides(self) -> dict[str, object]:
        """Settings that override project-file values when set."""
        return {
            "storage_root": self.storage_root,
            "work_root": self.work_root,
            "results_db_path": self.results_db_path,
            "max_parallel_jobs": self.max_parallel_jobs,
            "default_job_timeout_seconds": self.job_timeout_seconds,
        }


# Module-level singleton: import as `from genforge.config import config`
config = ProdConfig()
