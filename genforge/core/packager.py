"""Packs a DirectoryTree into a single tar artifact and back.

Packing is deterministic: entries are sorted by path, timestamps are
zeroed, and ownership is cleared, so two packs of the same tree are
byte-identical.  Unpacking refuses anything that could escape the
destination or that it cannot reproduce faithfully.
"""

from __future__ import annotations

import io
import logging
import os
import tarfile
from pathlib import Path, PurePosixPath

from genforge.core.errors import PackagingError, UnpackError
from genforge.models.artifacts import MODE_MASK, DirectoryTree

logger = logging.getLogger(__name__)


def _tar_info(name: str, *, mode: int, is_dir: bool, size: int = 0) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.type = tarfile.DIRTYPE if is_dir else tarfile.REGTYPE
    info.mode = mode & MODE_MASK
    info.size = 0 if is_dir else size
    info.mtime = 0
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    return info


def pack(tree: DirectoryTree) -> bytes:
    """Serialize *tree* into uncompressed POSIX tar bytes.

    Raises ``PackagingError`` if a file changed on disk since the tree
    was scanned.
    """
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for rel_path, entry in sorted(tree.entries.items()):
            if entry.is_dir:
                tar.addfile(_tar_info(rel_path, mode=entry.mode, is_dir=True))
                continue
            data = (tree.root / rel_path).read_bytes()
            if len(data) != entry.size:
                raise PackagingError(
                    f"{rel_path} changed on disk after the tree was scanned"
                )
            info = _tar_info(rel_path, mode=entry.mode, is_dir=False, size=len(data))
            tar.addfile(info, io.BytesIO(data))
    packed = buffer.getvalue()
    logger.debug("Packed %d entries from %s (%d bytes)", len(tree.entries), tree.root, len(packed))
    return packed


def _safe_target(destination: Path, name: str) -> Path:
    """Resolve a member name under *destination*, rejecting traversal."""
    member = PurePosixPath(name)
    if member.is_absolute() or not member.parts:
        raise UnpackError(f"absolute or empty path {name!r}")
    if any(part == ".." for part in member.parts):
        raise UnpackError(f"path traversal in {name!r}")
    target = (destination / Path(*member.parts)).resolve()
    if target != destination and destination not in target.parents:
        raise UnpackError(f"{name!r} resolves outside the destination")
    return target


def unpack(data: bytes, destination: Path) -> DirectoryTree:
    """Extract artifact *data* into *destination* and return its tree.

    *destination* is created if missing.  Raises ``UnpackError`` on
    truncated or corrupt input, path traversal, links or special files,
    and mode bits that cannot be applied.
    """
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)
    destination = destination.resolve()

    dir_modes: list[tuple[Path, int]] = []
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as tar:
            for member in tar:
                target = _safe_target(destination, member.name)
                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                    dir_modes.append((target, member.mode & MODE_MASK))
                elif member.isreg():
                    target.parent.mkdir(parents=True, exist_ok=True)
                    source = tar.extractfile(member)
                    if source is None:
                        raise UnpackError(f"cannot read {member.name!r}")
                    content = source.read()
                    if len(content) != member.size:
                        raise UnpackError(f"truncated content for {member.name!r}")
                    target.write_bytes(content)
                    _chmod(target, member.mode & MODE_MASK, member.name)
                else:
                    raise UnpackError(
                        f"unsupported member type for {member.name!r} (links and "
                        f"special files are not allowed)"
                    )
    except (tarfile.TarError, EOFError) as exc:
        raise UnpackError(f"corrupt or truncated archive ({exc})") from exc
    except OSError as exc:
        raise UnpackError(f"cannot write into {destination}: {exc}") from exc

    # Directory modes last: a read-only directory would block its own contents.
    for target, mode in sorted(dir_modes, key=lambda item: len(item[0].parts), reverse=True):
        _chmod(target, mode, str(target.relative_to(destination)))

    return DirectoryTree.scan(destination)


def _chmod(path: Path, mode: int, name: str) -> None:
    try:
        os.chmod(path, mode)
    except OSError as exc:
        raise UnpackError(f"cannot apply mode {mode:o} to {name!r}: {exc}") from exc
