"""Build identifiers, directory trees, and stored artifact metadata."""

from __future__ import annotations

import hashlib
import os
import re
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

BUILD_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")

# Permission bits kept for every tree entry (rwx for u/g/o plus suid/sgid/sticky).
MODE_MASK = 0o7777


def validate_build_id(build_id: str) -> str:
    """Return *build_id* unchanged, or raise ``ValueError`` if malformed."""
    if not BUILD_ID_PATTERN.match(build_id):
        raise ValueError(f"Invalid build identifier: {build_id!r}")
    return build_id


def make_build_id(revision: str, attempt: int = 1) -> str:
    """Derive a BuildIdentifier from a revision and an attempt number.

    The first attempt is ``rev-<revision[:12]>``; retries append
    ``-a<attempt>`` so a re-run never collides with a stored artifact.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    slug = re.sub(r"[^A-Za-z0-9._-]", "-", revision.strip())[:12].strip("-.")
    if not slug:
        raise ValueError(f"Cannot derive a build identifier from {revision!r}")
    build_id = f"rev-{slug}" if attempt == 1 else f"rev-{slug}-a{attempt}"
    return validate_build_id(build_id)


def _file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(1 << 16), b""):
            digest.update(chunk)
    return digest.hexdigest()


class TreeEntry(BaseModel):
    """One file or directory in a generated tree."""

    model_config = ConfigDict(frozen=True)

    mode: int  # permission bits only, masked with MODE_MASK
    is_dir: bool = False
    size: int = 0
    sha256: str = ""  # empty for directories


class DirectoryTree(BaseModel):
    """A directory tree on disk plus a manifest of its entries.

    ``entries`` is keyed by POSIX relative path.  The file contents stay on
    disk under ``root`` and are read on demand, so a tree for a large
    generated SDK is cheap to pass around.
    """

    model_config = ConfigDict(frozen=True)

    root: Path
    entries: dict[str, TreeEntry] = {}

    @classmethod
    def scan(cls, root: Path) -> DirectoryTree:
        """Build a tree manifest from the directory at *root*.

        Only regular files and directories are accepted; a symlink or any
        special file raises ``ValueError``.
        """
        root = Path(root)
        if not root.is_dir():
            raise ValueError(f"Not a directory: {root}")

        entries: dict[str, TreeEntry] = {}
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            base = Path(dirpath)
            for name in dirnames + sorted(filenames):
                path = base / name
                rel = path.relative_to(root).as_posix()
                st = path.lstat()
                if stat.S_ISDIR(st.st_mode):
                    entries[rel] = TreeEntry(mode=stat.S_IMODE(st.st_mode) & MODE_MASK, is_dir=True)
                elif stat.S_ISREG(st.st_mode):
                    entries[rel] = TreeEntry(
                        mode=stat.S_IMODE(st.st_mode) & MODE_MASK,
                        size=st.st_size,
                        sha256=_file_sha256(path),
                    )
                else:
                    raise ValueError(f"Unsupported file type in tree: {rel}")
        return cls(root=root, entries=dict(sorted(entries.items())))

    @property
    def files(self) -> dict[str, TreeEntry]:
        """Regular-file entries only."""
        return {p: e for p, e in self.entries.items() if not e.is_dir}

    def read_bytes(self, rel_path: str) -> bytes:
        """Return the content of the file at *rel_path*."""
        entry = self.entries.get(rel_path)
        if entry is None or entry.is_dir:
            raise FileNotFoundError(f"No file {rel_path!r} in tree at {self.root}")
        return (self.root / rel_path).read_bytes()

    def same_as(self, other: DirectoryTree) -> bool:
        """Whether both trees hold the same paths, modes, and contents."""
        return self.entries == other.entries

    @property
    def is_empty(self) -> bool:
        return not self.entries


class Artifact(BaseModel):
    """Metadata for a packed tree held by the artifact store.

    The bytes live in object storage under ``storage_key``; everything
    outside the store refers to an artifact by its ``build_id`` only.
    """

    model_config = ConfigDict(frozen=True)

    build_id: str
    size_bytes: int
    sha256: str
    source_revision: str = ""
    storage_key: str = ""
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    metadata: dict[str, Any] = {}
