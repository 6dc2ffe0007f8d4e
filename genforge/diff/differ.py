"""Structural diff of two generated trees.

Policy:
- A path only in the head tree is ADDED, only in the base tree REMOVED.
- A path in both with different content or mode is MODIFIED.
- Renames are not detected; they show up as REMOVED plus ADDED.
- Binary files (a NUL byte near the start, or not valid UTF-8) are
  MODIFIED with ``binary=True`` and no line diff.
- Directories only matter through the files they hold.
"""

from __future__ import annotations

import difflib

from genforge.models.artifacts import DirectoryTree
from genforge.models.reports import DiffReport, FileChange, FileDiff

# Bytes inspected for a NUL when sniffing binary content.
_BINARY_SNIFF_BYTES = 8192


def _decode_text(data: bytes) -> str | None:
    """Return *data* as text, or None if it looks binary."""
    if b"\x00" in data[:_BINARY_SNIFF_BYTES]:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _line_diff(path: str, old: str, new: str) -> tuple[str, int, int]:
    old_lines = old.splitlines(keepends=True)
    new_lines = new.splitlines(keepends=True)
    added = removed = 0
    chunks: list[str] = []
    for index, line in enumerate(difflib.unified_diff(
        old_lines, new_lines, fromfile=f"a/{path}", tofile=f"b/{path}"
    )):
        # The first two lines are the ---/+++ file headers.
        if index >= 2 and line.startswith("+"):
            added += 1
        elif index >= 2 and line.startswith("-"):
            removed += 1
        chunks.append(line if line.endswith("\n") else line + "\n\\ No newline at end of file\n")
    return "".join(chunks), added, removed


def _one_sided(tree: DirectoryTree, path: str, change: FileChange) -> FileDiff:
    entry = tree.entries[path]
    text = _decode_text(tree.read_bytes(path))
    if text is None:
        return FileDiff(
            path=path,
            change=change,
            binary=True,
            old_mode=entry.mode if change == FileChange.REMOVED else None,
            new_mode=entry.mode if change == FileChange.ADDED else None,
        )
    if change == FileChange.ADDED:
        diff, added, removed = _line_diff(path, "", text)
        return FileDiff(
            path=path, change=change, new_mode=entry.mode,
            lines_added=added, lines_removed=removed, unified_diff=diff,
        )
    diff, added, removed = _line_diff(path, text, "")
    return FileDiff(
        path=path, change=change, old_mode=entry.mode,
        lines_added=added, lines_removed=removed, unified_diff=diff,
    )


def compute_diff(
    base: DirectoryTree,
    head: DirectoryTree,
    *,
    base_revision: str = "base",
    head_revision: str = "head",
) -> DiffReport:
    """Compare two trees and return the DiffReport of their differences."""
    base_files = base.files
    head_files = head.files
    entries: list[FileDiff] = []

    for path in sorted(set(base_files) | set(head_files)):
        old = base_files.get(path)
        new = head_files.get(path)
        if old is None:
            entries.append(_one_sided(head, path, FileChange.ADDED))
            continue
        if new is None:
            entries.append(_one_sided(base, path, FileChange.REMOVED))
            continue
        if old.sha256 == new.sha256 and old.mode == new.mode:
            continue

        if old.sha256 == new.sha256:
            entries.append(FileDiff(
                path=path, change=FileChange.MODIFIED,
                old_mode=old.mode, new_mode=new.mode,
            ))
            continue

        old_text = _decode_text(base.read_bytes(path))
        new_text = _decode_text(head.read_bytes(path))
        if old_text is None or new_text is None:
            entries.append(FileDiff(
                path=path, change=FileChange.MODIFIED, binary=True,
                old_mode=old.mode, new_mode=new.mode,
            ))
            continue

        diff, added, removed = _line_diff(path, old_text, new_text)
        entries.append(FileDiff(
            path=path,
            change=FileChange.MODIFIED,
            old_mode=old.mode,
            new_mode=new.mode,
            lines_added=added,
            lines_removed=removed,
            unified_diff=diff,
        ))

    return DiffReport(
        base_revision=base_revision,
        head_revision=head_revision,
        entries=entries,
    )
