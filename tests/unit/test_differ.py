"""Tests for compute_diff: change classification, binaries, symmetry."""

from __future__ import annotations

from pathlib import Path

from conftest import write_tree
from genforge.diff.differ import compute_diff
from genforge.models.artifacts import DirectoryTree
from genforge.models.reports import FileChange


def _tree(root: Path, files: dict[str, str | bytes]) -> DirectoryTree:
    root.mkdir(parents=True, exist_ok=True)
    return DirectoryTree.scan(write_tree(root, files))


class TestComputeDiff:
    def test_identical_trees_have_empty_diff(self, sample_tree: DirectoryTree):
        report = compute_diff(sample_tree, sample_tree)
        assert report.is_empty
        assert "No generated code changes" in report.summary()

    def test_two_changed_lines(self, tmp_dir: Path):
        base = _tree(tmp_dir / "v1.0", {"client.gen": "line one\nline two\nline three\n"})
        head = _tree(tmp_dir / "v1.1", {"client.gen": "line one\nline 2\nline 3\n"})
        report = compute_diff(base, head, base_revision="v1.0", head_revision="v1.1")
        assert len(report.entries) == 1
        entry = report.entries[0]
        assert entry.path == "client.gen"
        assert entry.change == FileChange.MODIFIED
        assert entry.lines_added == 2
        assert entry.lines_removed == 2
        assert "-line two" in entry.unified_diff
        assert "+line 2" in entry.unified_diff
        assert entry.unified_diff.startswith("--- a/client.gen\n+++ b/client.gen\n")

    def test_added_and_removed_are_symmetric(self, tmp_dir: Path):
        a = _tree(tmp_dir / "a", {"common.rs": "x\n", "only_a.rs": "a\n"})
        b = _tree(tmp_dir / "b", {"common.rs": "x\n", "only_b.rs": "b\n", "new/mod.rs": "m\n"})
        forward = compute_diff(a, b)
        backward = compute_diff(b, a)
        assert forward.added == backward.removed == ["new/mod.rs", "only_b.rs"]
        assert forward.removed == backward.added == ["only_a.rs"]

    def test_added_file_counts_lines(self, tmp_dir: Path):
        a = _tree(tmp_dir / "a", {"keep": "k\n"})
        b = _tree(tmp_dir / "b", {"keep": "k\n", "new.rs": "one\ntwo\nthree\n"})
        entry = compute_diff(a, b).get("new.rs")
        assert entry is not None
        assert entry.change == FileChange.ADDED
        assert entry.lines_added == 3
        assert entry.lines_removed == 0

    def test_rename_is_remove_plus_add(self, tmp_dir: Path):
        a = _tree(tmp_dir / "a", {"old_name.rs": "same\n"})
        b = _tree(tmp_dir / "b", {"new_name.rs": "same\n"})
        report = compute_diff(a, b)
        assert report.removed == ["old_name.rs"]
        assert report.added == ["new_name.rs"]

    def test_binary_change_has_no_line_diff(self, tmp_dir: Path):
        a = _tree(tmp_dir / "a", {"blob.bin": b"\x00\x01\x02"})
        b = _tree(tmp_dir / "b", {"blob.bin": b"\x00\x01\x03"})
        entry = compute_diff(a, b).get("blob.bin")
        assert entry is not None
        assert entry.binary is True
        assert entry.change == FileChange.MODIFIED
        assert entry.unified_diff == ""

    def test_invalid_utf8_is_binary(self, tmp_dir: Path):
        a = _tree(tmp_dir / "a", {"data": b"\xff\xfe text"})
        b = _tree(tmp_dir / "b", {"data": b"\xff\xfe other"})
        assert compute_diff(a, b).get("data").binary is True

    def test_mode_only_change(self, tmp_dir: Path):
        a = _tree(tmp_dir / "a", {"run.sh": "#!/bin/sh\n"})
        b = _tree(tmp_dir / "b", {"run.sh": "#!/bin/sh\n"})
        (b.root / "run.sh").chmod(0o755)
        (a.root / "run.sh").chmod(0o644)
        entry = compute_diff(DirectoryTree.scan(a.root), DirectoryTree.scan(b.root)).get("run.sh")
        assert entry is not None
        assert entry.change == FileChange.MODIFIED
        assert entry.unified_diff == ""
        assert (entry.old_mode, entry.new_mode) == (0o644, 0o755)

    def test_missing_trailing_newline_marker(self, tmp_dir: Path):
        a = _tree(tmp_dir / "a", {"f.txt": "one\ntwo"})
        b = _tree(tmp_dir / "b", {"f.txt": "one\nthree"})
        entry = compute_diff(a, b).get("f.txt")
        assert "\\ No newline at end of file" in entry.unified_diff

    def test_directories_alone_do_not_show(self, tmp_dir: Path):
        a = _tree(tmp_dir / "a", {"f": "x\n"})
        b = _tree(tmp_dir / "b", {"f": "x\n"})
        (b.root / "empty-dir").mkdir()
        assert compute_diff(a, DirectoryTree.scan(b.root)).is_empty

    def test_entries_sorted_by_path(self, tmp_dir: Path):
        a = _tree(tmp_dir / "a", {"z": "1\n", "a": "1\n"})
        b = _tree(tmp_dir / "b", {"z": "2\n", "a": "2\n", "m": "new\n"})
        assert [e.path for e in compute_diff(a, b).entries] == ["a", "m", "z"]

    def test_summary_counts(self, tmp_dir: Path):
        base = _tree(tmp_dir / "v1.0", {"client.gen": "line one\nline two\nline three\n"})
        head = _tree(tmp_dir / "v1.1", {"client.gen": "line one\nline 2\nline 3\n"})
        summary = compute_diff(base, head, base_revision="v1.0", head_revision="v1.1").summary()
        assert "v1.0..v1.1" in summary
        assert "1 modified" in summary
        assert "+2/-2" in summary
