"""End-to-end integration tests: generate, package, verify, gate, diff.

These tests exercise the Orchestrator, GeneratorAdapter, ArtifactStore,
JobRunner, ResultLedger, Gate and DiffPublisher working together over
filesystem-backed storage.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import SAMPLE_TREES, FakeGenerator, python_job
from genforge.capabilities.comments import LocalFileCommentPoster
from genforge.capabilities.source import DirectoryRevisionResolver
from genforge.capabilities.storage import LocalObjectStorage
from genforge.core.errors import GenerationError
from genforge.core.orchestrator import Orchestrator
from genforge.core.packager import unpack
from genforge.diff.publisher import DiffPublisher
from genforge.models.config import GenerationConfig, PipelineConfig
from genforge.models.jobs import JobState
from genforge.models.reports import FileChange


@pytest.fixture
def local_storage(tmp_dir: Path) -> LocalObjectStorage:
    return LocalObjectStorage(tmp_dir / "storage")


@pytest.fixture
def orch(make_config, resolver, generator, local_storage, passing_jobs) -> Orchestrator:
    return Orchestrator(
        make_config(passing_jobs, namespace="it"),
        resolver=resolver,
        generator=generator,
        storage=local_storage,
    )


class TestFullPipeline:
    """A whole run from revision to gate decision."""

    def test_run_passes_gate(self, orch: Orchestrator):
        run = orch.run("abc123")
        assert run.build_id == "rev-abc123"
        assert run.decision.passed
        assert run.results["unit-tests"].status == JobState.PASSED
        assert run.results["unused-dependencies"].status == JobState.FAILED

    def test_artifact_lands_on_disk(self, orch: Orchestrator, tmp_dir: Path):
        orch.run("abc123")
        base = tmp_dir / "storage" / "it" / "artifacts" / "rev-abc123"
        assert (base / "artifact.tar").is_file()
        assert (base / "artifact.json").is_file()

    def test_artifact_round_trips_generated_tree(self, orch: Orchestrator, tmp_dir: Path):
        orch.run("abc123")
        tree = unpack(orch.artifact_store.get("rev-abc123"), tmp_dir / "restored")
        restored = tmp_dir / "restored" / "sdk" / "s3" / "client.gen"
        assert restored.read_text() == SAMPLE_TREES["abc123"]["sdk/s3/client.gen"]
        assert "Cargo.toml" in tree.files

    def test_results_survive_a_new_orchestrator(
        self, orch: Orchestrator, make_config, resolver, generator, local_storage, passing_jobs
    ):
        orch.run("abc123")
        fresh = Orchestrator(
            make_config(passing_jobs, namespace="it"),
            resolver=resolver,
            generator=generator,
            storage=local_storage,
        )
        assert fresh.artifact_store.exists("rev-abc123")
        assert fresh.gate("rev-abc123").passed

    def test_retry_attempt_gets_its_own_build(self, orch: Orchestrator):
        first = orch.run("abc123")
        second = orch.run("abc123", attempt=2)
        assert second.build_id == "rev-abc123-a2"
        assert first.artifact.sha256 == second.artifact.sha256

    def test_generation_failure_skips_every_job(self, orch: Orchestrator):
        with pytest.raises(GenerationError):
            orch.run("broken")
        results = orch.ledger.get_results("rev-broken")
        assert set(results) == {spec.name for spec in orch.config.jobs}
        assert all(r.status == JobState.SKIPPED for r in results.values())
        assert not orch.artifact_store.exists("rev-broken")

    def test_fatal_failure_fails_gate(
        self, make_config, resolver, generator, local_storage
    ):
        jobs = [
            python_job("unit-tests", "print('ok')"),
            python_job("clippy", "import sys; sys.exit(2)"),
            python_job("docs", "print('ok')", needs=["clippy"]),
        ]
        orch = Orchestrator(
            make_config(jobs), resolver=resolver, generator=generator, storage=local_storage
        )
        run = orch.run("abc123")
        assert not run.decision.passed
        assert run.results["clippy"].status == JobState.FAILED
        assert run.results["docs"].status == JobState.SKIPPED


class TestDiffPublishing:
    """Diff two generated revisions and announce the result."""

    @pytest.fixture
    def publisher(self, orch: Orchestrator, local_storage, tmp_dir: Path) -> DiffPublisher:
        return DiffPublisher(
            orch.adapter,
            local_storage,
            poster=LocalFileCommentPoster(tmp_dir / "comments"),
            namespace="it",
        )

    def test_publish_and_comment(self, publisher: DiffPublisher, tmp_dir: Path):
        receipt = publisher.publish("v1.0", "v1.1", GenerationConfig(), thread_id="pr-7")

        report = publisher.load_report("v1.0", "v1.1")
        assert report.modified == ["client.gen"]
        assert report.get("client.gen").change == FileChange.MODIFIED
        assert report.get("README.md") is None

        prefix = tmp_dir / "storage" / "it" / "codegen-diff" / "v1.0..v1.1"
        assert (prefix / "report.json").is_file()
        assert (prefix / "index.diff").is_file()

        comments = LocalFileCommentPoster(tmp_dir / "comments").list_comments("pr-7")
        assert len(comments) == 1
        assert comments[0]["comment_id"] == receipt.comment_id
        assert receipt.location in comments[0]["body"]

    def test_same_revision_pair_is_empty(self, publisher: DiffPublisher):
        receipt = publisher.publish("v1.0", "v1.0", GenerationConfig())
        assert publisher.load_report("v1.0", "v1.0").is_empty
        assert receipt.comment_id is None

    def test_failed_generation_persists_nothing(
        self, publisher: DiffPublisher, tmp_dir: Path
    ):
        with pytest.raises(GenerationError):
            publisher.publish("v1.0", "broken", GenerationConfig(), thread_id="pr-7")
        assert not (tmp_dir / "storage" / "it" / "codegen-diff" / "v1.0..broken").exists()
        assert not (tmp_dir / "comments" / "pr-7").exists()

    def test_line_counts_for_single_line_change(self, tmp_dir: Path, local_storage):
        snapshots = tmp_dir / "real"
        for revision, text in (("a", "x\n"), ("b", "y\n")):
            (snapshots / revision).mkdir(parents=True)
            (snapshots / revision / "gen.txt").write_text(text)
        trees = {
            rev: {"gen.txt": (snapshots / rev / "gen.txt").read_text()} for rev in ("a", "b")
        }
        orch = Orchestrator(
            _config(tmp_dir),
            resolver=DirectoryRevisionResolver(snapshots),
            generator=FakeGenerator(trees),
            storage=local_storage,
        )
        publisher = DiffPublisher(orch.adapter, local_storage, namespace="it")
        publisher.publish("a", "b", GenerationConfig())
        entry = publisher.load_report("a", "b").get("gen.txt")
        assert (entry.lines_added, entry.lines_removed) == (1, 1)


def _config(tmp_dir: Path) -> PipelineConfig:
    return PipelineConfig(
        storage_root=tmp_dir / "storage",
        work_root=tmp_dir / "work",
        results_db_path=tmp_dir / "results.db",
    )
