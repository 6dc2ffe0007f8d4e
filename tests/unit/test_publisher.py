"""Tests for DiffPublisher: persistence, announcements, failure isolation."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from conftest import SAMPLE_TREES, FakeGenerator
from genforge.capabilities.comments import LocalFileCommentPoster
from genforge.capabilities.generator import SubprocessCodeGenerator
from genforge.capabilities.source import DirectoryRevisionResolver
from genforge.capabilities.storage import MemoryObjectStorage
from genforge.core.errors import GenerationError, PublishError, RenderError
from genforge.core.generator import GeneratorAdapter
from genforge.core.hasher import diff_key_segment
from genforge.diff.publisher import DiffPublisher
from genforge.models.config import GenerationConfig
from genforge.models.reports import DiffReport, FileChange

PREFIX = "test/codegen-diff/v1.0..v1.1"


class BrokenRenderer:
    def render(self, report: DiffReport):
        raise RuntimeError("renderer unavailable")


class BrokenPoster:
    def post_comment(self, thread_id: str, body: str) -> str:
        raise ConnectionError("review platform down")


@pytest.fixture
def adapter(
    resolver: DirectoryRevisionResolver, generator: FakeGenerator, tmp_dir: Path
) -> GeneratorAdapter:
    return GeneratorAdapter(resolver, generator, tmp_dir / "work")


@pytest.fixture
def poster(tmp_dir: Path) -> LocalFileCommentPoster:
    return LocalFileCommentPoster(tmp_dir / "comments")


class TestPublish:
    def test_receipt_references_stored_report(
        self, adapter: GeneratorAdapter, storage: MemoryObjectStorage
    ):
        publisher = DiffPublisher(adapter, storage, namespace="test")
        receipt = publisher.publish("v1.0", "v1.1", GenerationConfig())
        assert receipt.report_key == f"{PREFIX}/report.json"
        assert receipt.rendered_key == f"{PREFIX}/index.diff"
        assert storage.exists(receipt.report_key)
        assert receipt.location == storage.location(receipt.rendered_key)
        assert receipt.comment_id is None

        report = publisher.load_report("v1.0", "v1.1")
        assert [(e.path, e.change) for e in report.entries] == [
            ("client.gen", FileChange.MODIFIED)
        ]
        assert report.entries[0].lines_added == 2

    def test_rendered_document_is_a_patch(
        self, adapter: GeneratorAdapter, storage: MemoryObjectStorage
    ):
        publisher = DiffPublisher(adapter, storage, namespace="test")
        receipt = publisher.publish("v1.0", "v1.1", GenerationConfig())
        rendered = storage.get(receipt.rendered_key).decode("utf-8")
        assert "--- a/client.gen" in rendered
        assert "+line 2" in rendered

    def test_comment_posted_to_thread(
        self,
        adapter: GeneratorAdapter,
        storage: MemoryObjectStorage,
        poster: LocalFileCommentPoster,
    ):
        publisher = DiffPublisher(adapter, storage, poster=poster, namespace="test")
        receipt = publisher.publish("v1.0", "v1.1", GenerationConfig(), thread_id="pr-42")
        comments = poster.list_comments("pr-42")
        assert len(comments) == 1
        assert comments[0]["comment_id"] == receipt.comment_id
        assert receipt.location in comments[0]["body"]
        assert "1 modified" in comments[0]["body"]

    def test_no_thread_means_no_comment(
        self,
        adapter: GeneratorAdapter,
        storage: MemoryObjectStorage,
        poster: LocalFileCommentPoster,
    ):
        publisher = DiffPublisher(adapter, storage, poster=poster, namespace="test")
        publisher.publish("v1.0", "v1.1", GenerationConfig())
        assert poster.list_comments("pr-42") == []

    def test_same_revision_gives_empty_diff(
        self, adapter: GeneratorAdapter, storage: MemoryObjectStorage
    ):
        publisher = DiffPublisher(adapter, storage, namespace="test")
        receipt = publisher.publish("v1.0", "v1.0", GenerationConfig())
        assert publisher.load_report("v1.0", "v1.0").is_empty
        assert "No generated code changes" in receipt.summary

    def test_republishing_overwrites_same_keys(
        self, adapter: GeneratorAdapter, storage: MemoryObjectStorage
    ):
        publisher = DiffPublisher(adapter, storage, namespace="test")
        first = publisher.publish("v1.0", "v1.1", GenerationConfig())
        second = publisher.publish("v1.0", "v1.1", GenerationConfig())
        assert first.report_key == second.report_key
        assert storage.list_keys(PREFIX) == [f"{PREFIX}/index.diff", f"{PREFIX}/report.json"]


class TestPublishFailures:
    def test_generation_failure_persists_nothing(
        self, adapter: GeneratorAdapter, storage: MemoryObjectStorage
    ):
        publisher = DiffPublisher(adapter, storage, namespace="test")
        with pytest.raises(GenerationError):
            publisher.publish("v1.0", "broken", GenerationConfig())
        assert storage.list_keys() == []

    def test_unknown_revision_is_generation_failure(
        self, adapter: GeneratorAdapter, storage: MemoryObjectStorage
    ):
        publisher = DiffPublisher(adapter, storage, namespace="test")
        with pytest.raises(GenerationError):
            publisher.publish("v1.0", "v9.9", GenerationConfig())

    def test_render_failure_keeps_report(
        self, adapter: GeneratorAdapter, storage: MemoryObjectStorage
    ):
        publisher = DiffPublisher(adapter, storage, renderer=BrokenRenderer(), namespace="test")
        with pytest.raises(RenderError):
            publisher.publish("v1.0", "v1.1", GenerationConfig())
        assert storage.exists(f"{PREFIX}/report.json")

    def test_post_failure_keeps_diff_and_can_be_retried(
        self,
        adapter: GeneratorAdapter,
        storage: MemoryObjectStorage,
        generator: FakeGenerator,
        poster: LocalFileCommentPoster,
    ):
        failing = DiffPublisher(adapter, storage, poster=BrokenPoster(), namespace="test")
        with pytest.raises(PublishError) as excinfo:
            failing.publish("v1.0", "v1.1", GenerationConfig(), thread_id="pr-7")
        assert excinfo.value.report_key == f"{PREFIX}/report.json"
        assert storage.exists(f"{PREFIX}/index.diff")

        calls_before = list(generator.calls)
        retry = DiffPublisher(adapter, storage, poster=poster, namespace="test")
        receipt = retry.republish("v1.0", "v1.1", thread_id="pr-7")
        assert receipt.comment_id is not None
        assert generator.calls == calls_before

    def test_republish_without_report(
        self, adapter: GeneratorAdapter, storage: MemoryObjectStorage
    ):
        publisher = DiffPublisher(adapter, storage, namespace="test")
        with pytest.raises(KeyError):
            publisher.republish("v1.0", "v1.1")


class TestKeysPerRevisionPair:
    @pytest.fixture
    def lookalike_adapter(self, snapshots: Path, tmp_dir: Path) -> GeneratorAdapter:
        for ref in ("feature/x", "feature_x"):
            (snapshots / ref).mkdir(parents=True)
        trees = {
            "feature/x": {"client.gen": "from the slash branch\n"},
            "feature_x": {"client.gen": "from the underscore branch\n", "extra.gen": "x\n"},
            "v1.1": SAMPLE_TREES["v1.1"],
        }
        return GeneratorAdapter(
            DirectoryRevisionResolver(snapshots), FakeGenerator(trees), tmp_dir / "work"
        )

    def test_lookalike_refs_get_separate_keys(
        self, lookalike_adapter: GeneratorAdapter, storage: MemoryObjectStorage
    ):
        publisher = DiffPublisher(lookalike_adapter, storage, namespace="test")
        slash = publisher.publish("feature/x", "v1.1", GenerationConfig())
        underscore = publisher.publish("feature_x", "v1.1", GenerationConfig())

        assert slash.report_key != underscore.report_key
        assert publisher.load_report("feature/x", "v1.1").base_revision == "feature/x"
        assert publisher.load_report("feature_x", "v1.1").base_revision == "feature_x"
        assert publisher.republish("feature/x", "v1.1").summary == slash.summary

    def test_rewritten_refs_stay_single_key_segments(self):
        segment = diff_key_segment("feature/x")
        assert "/" not in segment
        assert segment.startswith("feature_x-")
        assert diff_key_segment("v1.0") == "v1.0"

    def test_report_for_another_pair_is_not_returned(
        self, adapter: GeneratorAdapter, storage: MemoryObjectStorage
    ):
        publisher = DiffPublisher(adapter, storage, namespace="test")
        stray = DiffReport(base_revision="v0.9", head_revision="v1.1")
        storage.put(publisher.report_key("v1.0", "v1.1"), stray.model_dump_json().encode("utf-8"))
        with pytest.raises(KeyError):
            publisher.load_report("v1.0", "v1.1")


class TestSharedSnapshot:
    # Clears out/, waits, then recreates it: two overlapping runs collide.
    SLOW_GENERATOR = (
        "import pathlib, shutil, time; out = pathlib.Path('out'); "
        "shutil.rmtree(out, ignore_errors=True); time.sleep(0.3); "
        "out.mkdir(); (out / 'client.gen').write_text('same')"
    )

    def test_same_revision_through_subprocess_generator(
        self, resolver: DirectoryRevisionResolver, storage: MemoryObjectStorage, tmp_dir: Path
    ):
        adapter = GeneratorAdapter(resolver, SubprocessCodeGenerator(), tmp_dir / "work")
        publisher = DiffPublisher(adapter, storage, namespace="test")
        configuration = GenerationConfig(
            command=[sys.executable, "-c", self.SLOW_GENERATOR], output_subdir="out"
        )
        receipt = publisher.publish("v1.0", "v1.0", configuration)
        assert publisher.load_report("v1.0", "v1.0").is_empty
        assert "No generated code changes" in receipt.summary
