"""Shared test fixtures for genforge."""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from genforge.capabilities.protocols import GeneratorRun
from genforge.capabilities.source import DirectoryRevisionResolver
from genforge.capabilities.storage import MemoryObjectStorage
from genforge.core.artifact_store import ArtifactStore
from genforge.core.orchestrator import Orchestrator
from genforge.core.result_ledger import ResultLedger
from genforge.models.artifacts import DirectoryTree
from genforge.models.config import GenerationConfig, PipelineConfig
from genforge.models.jobs import JobSpec


def python_job(name: str, code: str, **overrides) -> JobSpec:
    """A JobSpec that runs a Python snippet with the current interpreter."""
    return JobSpec(name=name, command=[sys.executable, "-c", code], **overrides)


def write_tree(root: Path, files: dict[str, str | bytes]) -> Path:
    """Write *files* (relative path -> content) under *root*."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


# ---------------------------------------------------------------------------
# Fake code generator
# ---------------------------------------------------------------------------


class FakeGenerator:
    """CodeGenerator that writes a canned tree per revision.

    Revisions listed in ``failing`` exit non-zero; revisions missing from
    ``trees`` succeed without producing anything.
    """

    def __init__(
        self,
        trees: dict[str, dict[str, str | bytes]],
        failing: set[str] | None = None,
    ) -> None:
        self.trees = trees
        self.failing = failing or set()
        self.calls: list[str] = []

    def run(
        self,
        snapshot: Path,
        configuration: GenerationConfig,
        output_dir: Path,
        *,
        revision: str = "",
    ) -> GeneratorRun:
        self.calls.append(revision)
        if revision in self.failing:
            return GeneratorRun(exit_code=1, output_dir=output_dir, log="generator blew up")
        write_tree(output_dir, self.trees.get(revision, {}))
        return GeneratorRun(exit_code=0, output_dir=output_dir, log="ok")


SAMPLE_TREES: dict[str, dict[str, str | bytes]] = {
    "abc123": {
        "Cargo.toml": "[workspace]\nmembers = [\"sdk/s3\"]\n",
        "sdk/s3/src/lib.rs": "pub fn client() {}\n",
        "sdk/s3/client.gen": "alpha\nbeta\ngamma\n",
    },
    "v1.0": {
        "client.gen": "line one\nline two\nline three\n",
        "README.md": "generated\n",
    },
    "v1.1": {
        "client.gen": "line one\nline 2\nline 3\n",
        "README.md": "generated\n",
    },
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def snapshots(tmp_dir: Path) -> Path:
    """Checked-out source snapshots, one directory per known revision."""
    root = tmp_dir / "snapshots"
    for revision in [*SAMPLE_TREES, "broken", "empty"]:
        (root / revision).mkdir(parents=True)
    return root


@pytest.fixture
def resolver(snapshots: Path) -> DirectoryRevisionResolver:
    return DirectoryRevisionResolver(snapshots)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator(SAMPLE_TREES, failing={"broken"})


@pytest.fixture
def storage() -> MemoryObjectStorage:
    return MemoryObjectStorage()


@pytest.fixture
def artifact_store(storage: MemoryObjectStorage) -> ArtifactStore:
    """Provide a fresh ArtifactStore over in-memory object storage."""
    return ArtifactStore(storage, namespace="test")


@pytest.fixture
def ledger(tmp_dir: Path) -> ResultLedger:
    """Provide a fresh ResultLedger backed by a temp SQLite database."""
    return ResultLedger(tmp_dir / "results.db")


@pytest.fixture
def sample_tree(tmp_dir: Path) -> DirectoryTree:
    """A small generated tree with nested directories and an executable."""
    root = write_tree(tmp_dir / "tree", {
        "Cargo.toml": "[workspace]\n",
        "sdk/s3/src/lib.rs": "pub fn client() {}\n",
        "sdk/s3/README.md": "S3 client\n",
        "tools/check.sh": "#!/bin/sh\nexit 0\n",
    })
    (root / "tools" / "check.sh").chmod(0o755)
    return DirectoryTree.scan(root)


@pytest.fixture
def passing_jobs() -> list[JobSpec]:
    """Four fatal jobs that pass and one advisory job that fails."""
    return [
        python_job("unit-tests", "print('tests ok')"),
        python_job("docs", "import pathlib; assert pathlib.Path('Cargo.toml').is_file()"),
        python_job("clippy", "print('no warnings')"),
        python_job("per-crate-checks", "print('crates ok')"),
        python_job("unused-dependencies", "import sys; sys.exit(3)", fatal=False),
    ]


@pytest.fixture
def make_config(tmp_dir: Path) -> Callable[..., PipelineConfig]:
    """Factory fixture: a PipelineConfig rooted in the temp directory."""

    def _factory(jobs: list[JobSpec], **overrides) -> PipelineConfig:
        fields = {
            "project_name": "genforge-test",
            "storage_root": tmp_dir / "storage",
            "work_root": tmp_dir / "work",
            "results_db_path": tmp_dir / "results.db",
            "jobs": jobs,
            "default_job_timeout_seconds": 60.0,
            "max_parallel_jobs": 4,
        }
        fields.update(overrides)
        return PipelineConfig(**fields)

    return _factory


@pytest.fixture
def make_orchestrator(
    make_config: Callable[..., PipelineConfig],
    resolver: DirectoryRevisionResolver,
    generator: FakeGenerator,
    storage: MemoryObjectStorage,
) -> Callable[..., Orchestrator]:
    """Factory fixture: an Orchestrator wired to the fake generator."""

    def _factory(jobs: list[JobSpec], **overrides) -> Orchestrator:
        return Orchestrator(
            make_config(jobs, **overrides),
            resolver=resolver,
            generator=generator,
            storage=storage,
        )

    return _factory
