"""Revision resolvers: turn a revision reference into a source snapshot."""

from __future__ import annotations

import logging
import re
import subprocess
import threading
from pathlib import Path

logger = logging.getLogger(__name__)

_SAFE_REF = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._/~^@{}-]*$")


class DirectoryRevisionResolver:
    """Resolves revisions to pre-checked-out directories.

    Layout: ``{root}/{revision_ref}``.  Useful when a CI system has
    already materialized each revision on disk.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    def resolve(self, revision_ref: str) -> Path:
        if not _SAFE_REF.match(revision_ref) or ".." in revision_ref:
            raise LookupError(f"Invalid revision reference: {revision_ref!r}")
        snapshot = self._root / revision_ref
        if not snapshot.is_dir():
            raise LookupError(f"No snapshot for revision {revision_ref!r} under {self._root}")
        return snapshot


class GitRevisionResolver:
    """Resolves revisions with ``git worktree`` checkouts.

    Each resolved commit gets a detached worktree under
    ``{worktrees_root}/{sha}``; an existing worktree is reused.

    Parameters
    ----------
    repo:
        Path to the git repository.
    worktrees_root:
        Directory that holds the per-commit worktrees.
    """

    def __init__(self, repo: Path, worktrees_root: Path) -> None:
        self._repo = Path(repo)
        self._worktrees = Path(worktrees_root)
        self._lock = threading.Lock()

    def _git(self, *args: str) -> str:
        proc = subprocess.run(
            ["git", "-C", str(self._repo), *args],
            capture_output=True,
            text=True,
            check=False,
        )
        if proc.returncode != 0:
            raise LookupError(
                f"git {' '.join(args)} failed ({proc.returncode}): {proc.stderr.strip()}"
            )
        return proc.stdout.strip()

    def resolve(self, revision_ref: str) -> Path:
        if not _SAFE_REF.match(revision_ref):
            raise LookupError(f"Invalid revision reference: {revision_ref!r}")
        sha = self._git("rev-parse", "--verify", f"{revision_ref}^{{commit}}")
        target = self._worktrees / sha
        with self._lock:
            if target.is_dir():
                logger.debug("Reusing worktree for %s at %s", revision_ref, target)
                return target
            self._worktrees.mkdir(parents=True, exist_ok=True)
            self._git("worktree", "add", "--detach", str(target.resolve()), sha)
        logger.info("Checked out %s (%s) into %s", revision_ref, sha[:12], target)
        return target
