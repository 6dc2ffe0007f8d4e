"""Canonical hashing helpers for artifacts, reports, and storage keys."""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes: deterministic, sorted, compact.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def revision_slug(revision: str) -> str:
    """Make a revision reference safe for use as one storage key segment.

    Readable refs stay readable (``v1.0`` -> ``v1.0``); anything else is
    replaced so the segment can never contain ``/`` or ``..``.
    """
    slug = re.sub(r"[^A-Za-z0-9._-]", "_", revision.strip())
    slug = slug.replace("..", "__").strip(".")
    if not slug:
        raise ValueError(f"Cannot derive a key segment from {revision!r}")
    return slug


def diff_key_segment(revision: str) -> str:
    """Key segment for one side of a revision pair, distinct per reference.

    A reference that is already safe is used as-is.  Anything that had to
    be rewritten gets a short hash of the raw reference appended, so
    ``feature/x`` and ``feature_x`` never share a segment.
    """
    slug = revision_slug(revision)
    if slug == revision:
        return slug
    return f"{slug}-{sha256_hex(revision.encode('utf-8'))[:8]}"


def diff_key_prefix(namespace: str, base_revision: str, head_revision: str) -> str:
    """Storage prefix for the diff of a ``(base, head)`` revision pair.

    Same pair -> same prefix, so re-publishing overwrites instead of
    accumulating copies.
    """
    return (
        f"{namespace}/codegen-diff/"
        f"{diff_key_segment(base_revision)}..{diff_key_segment(head_revision)}"
    )
