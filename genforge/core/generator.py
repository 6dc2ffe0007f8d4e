"""Generator adapter: runs the external code generator for one revision.

Generation is all-or-nothing: either a complete, non-empty tree is left
under ``{work_root}/generated/{label}``, or ``GenerationError`` is raised
and nothing is left behind.
"""

from __future__ import annotations

import logging
import re
import shutil
import threading
from pathlib import Path

from genforge.capabilities.protocols import CodeGenerator, RevisionResolver
from genforge.core.errors import GenerationError
from genforge.models.artifacts import DirectoryTree
from genforge.models.config import GenerationConfig

logger = logging.getLogger(__name__)

_SAFE_LABEL = re.compile(r"[^A-Za-z0-9._-]")


class GeneratorAdapter:
    """Drives a ``CodeGenerator`` against resolved revisions.

    Parameters
    ----------
    resolver:
        Resolves revision references to source snapshots.
    generator:
        The external code generator capability.
    work_root:
        Directory under which generated trees are kept.
    """

    def __init__(
        self,
        resolver: RevisionResolver,
        generator: CodeGenerator,
        work_root: Path,
    ) -> None:
        self._resolver = resolver
        self._generator = generator
        self._generated_root = Path(work_root) / "generated"
        self._snapshot_locks: dict[Path, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _snapshot_lock(self, snapshot: Path) -> threading.Lock:
        # One generation at a time per snapshot directory.
        key = Path(snapshot).resolve()
        with self._locks_guard:
            return self._snapshot_locks.setdefault(key, threading.Lock())

    def output_path(self, label: str) -> Path:
        """Where the tree generated under *label* is kept."""
        safe = _SAFE_LABEL.sub("_", label).strip(".") or "_"
        return self._generated_root / safe

    def generate(
        self,
        revision_ref: str,
        configuration: GenerationConfig,
        *,
        label: str | None = None,
    ) -> DirectoryTree:
        """Generate the tree for *revision_ref*.

        Parameters
        ----------
        revision_ref:
            The source revision to generate from.
        configuration:
            Generator options (module selection, feature flags, ...).
        label:
            Name of the output directory; defaults to the revision.

        Raises
        ------
        GenerationError
            If the revision cannot be resolved, the generator exits
            non-zero, or no output tree is produced.
        """
        destination = self.output_path(label or revision_ref)
        try:
            snapshot = self._resolver.resolve(revision_ref)
        except LookupError as exc:
            raise GenerationError(str(exc), revision=revision_ref) from exc

        scratch = destination.with_name(destination.name + ".partial")
        _remove(scratch)
        scratch.mkdir(parents=True)

        try:
            with self._snapshot_lock(snapshot):
                logger.info("Generating %s (snapshot %s)", revision_ref, snapshot)
                run = self._generator.run(
                    snapshot, configuration, scratch, revision=revision_ref
                )
                if run.exit_code != 0:
                    raise GenerationError(
                        f"generator exited with status {run.exit_code}",
                        revision=revision_ref,
                        log=run.log,
                    )

                produced = Path(run.output_dir)
                if not produced.is_dir() or not any(produced.iterdir()):
                    raise GenerationError(
                        f"generator produced no output tree at {produced}",
                        revision=revision_ref,
                        log=run.log,
                    )
                if produced.resolve() != scratch.resolve():
                    shutil.copytree(produced, scratch, dirs_exist_ok=True, symlinks=True)

            _remove(destination)
            scratch.rename(destination)
            tree = DirectoryTree.scan(destination)
        except GenerationError:
            _remove(scratch)
            raise
        except (OSError, ValueError) as exc:
            _remove(scratch)
            _remove(destination)
            raise GenerationError(str(exc), revision=revision_ref) from exc

        logger.info(
            "Generated %s: %d entries in %s", revision_ref, len(tree.entries), destination
        )
        return tree

    def load(self, label: str) -> DirectoryTree:
        """Return the tree previously generated under *label*."""
        path = self.output_path(label)
        if not path.is_dir():
            raise GenerationError(f"no generated tree found at {path}", revision=label)
        return DirectoryTree.scan(path)


def _remove(path: Path) -> None:
    if path.is_dir():
        shutil.rmtree(path)
    elif path.exists():
        path.unlink()
