"""Local file comment poster: writes review comments to JSON files.

Layout: {base_path}/{thread_id}/{comment_id}.json
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path

from genforge.core.hasher import canonical_json_bytes

logger = logging.getLogger(__name__)

_SAFE_THREAD = re.compile(r"^[A-Za-z0-9._-]+$")


class LocalFileCommentPoster:
    """Stores comments on disk instead of posting them to a review platform.

    Parameters
    ----------
    base_path:
        Root directory for comment files.  Defaults to ``.genforge/comments``.
    """

    def __init__(self, base_path: Path | str | None = None) -> None:
        self._base = Path(base_path) if base_path else Path(".genforge/comments")
        self._base.mkdir(parents=True, exist_ok=True)

    def post_comment(self, thread_id: str, body: str) -> str:
        if not _SAFE_THREAD.match(thread_id) or thread_id in (".", ".."):
            raise ValueError(f"Invalid thread id: {thread_id!r}")
        comment_id = uuid.uuid4().hex
        target_dir = self._base / thread_id
        target_dir.mkdir(parents=True, exist_ok=True)
        record = {
            "comment_id": comment_id,
            "thread_id": thread_id,
            "body": body,
            "posted_at": datetime.now(timezone.utc).isoformat(),
        }
        (target_dir / f"{comment_id}.json").write_bytes(canonical_json_bytes(record))
        logger.debug("LocalFileCommentPoster: wrote %s on thread %s", comment_id, thread_id)
        return comment_id

    def list_comments(self, thread_id: str) -> list[dict]:
        """Return every stored comment on *thread_id*, oldest first."""
        thread_dir = self._base / thread_id
        if not thread_dir.exists():
            return []
        comments = [json.loads(p.read_bytes()) for p in thread_dir.glob("*.json")]
        return sorted(comments, key=lambda c: c["posted_at"])
