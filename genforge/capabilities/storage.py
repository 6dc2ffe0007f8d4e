"""Object storage backends.

``LocalObjectStorage`` maps keys onto files under a root directory;
``MemoryObjectStorage`` keeps blobs in a dict.  Both satisfy the
``ObjectStorage`` protocol.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)


def normalize_key(key: str) -> str:
    """Validate an object key and return it in canonical form.

    Keys are relative POSIX paths.  Absolute keys, ``..`` segments, and
    empty keys are rejected with ``ValueError``.
    """
    if not key or key.startswith("/") or "\\" in key:
        raise ValueError(f"Invalid object key: {key!r}")
    if any(segment in ("..", ".") for segment in key.split("/")):
        raise ValueError(f"Invalid object key: {key!r}")
    return "/".join(PurePosixPath(key).parts)


class LocalObjectStorage:
    """Filesystem-backed object storage.

    Layout: ``{root}/{key}``.  Writes go through a temporary file and
    ``os.replace`` so a reader never sees a half-written object.

    Parameters
    ----------
    root:
        Root directory for stored objects.  Created if missing.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        return self._root / normalize_key(key)

    def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("LocalObjectStorage: wrote %d bytes to %s", len(data), path)

    def get(self, key: str) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise KeyError(key)
        return path.read_bytes()

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def location(self, key: str) -> str:
        return self._path(key).resolve().as_uri()

    def list_keys(self, prefix: str = "") -> list[str]:
        """Return every stored key under *prefix*, sorted."""
        base = self._root / normalize_key(prefix) if prefix else self._root
        if not base.exists():
            return []
        return sorted(
            p.relative_to(self._root).as_posix()
            for p in base.rglob("*")
            if p.is_file() and not p.name.startswith(".")
        )


class MemoryObjectStorage:
    """In-process object storage, mainly for tests and dry runs."""

    def __init__(self, uri_prefix: str = "memory://") -> None:
        self._objects: dict[str, bytes] = {}
        self._lock = threading.Lock()
        self._prefix = uri_prefix

    def put(self, key: str, data: bytes) -> None:
        with self._lock:
            self._objects[normalize_key(key)] = bytes(data)

    def get(self, key: str) -> bytes:
        with self._lock:
            return self._objects[normalize_key(key)]

    def exists(self, key: str) -> bool:
        with self._lock:
            return normalize_key(key) in self._objects

    def location(self, key: str) -> str:
        return f"{self._prefix}{normalize_key(key)}"

    def list_keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(k for k in self._objects if k.startswith(prefix))
