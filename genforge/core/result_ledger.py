"""Write-once JobResult ledger backed by SQLite.

The ledger is the source of truth for the gate: ``genforge verify`` writes
one result per job, ``genforge gate`` reads them back, possibly from a
different process.

Design:
- Write-once: one row per (build_id, job_name); no update, no delete.
- WAL journal mode for concurrent readers.
- The full JobResult is kept as JSON next to the indexed key columns.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from genforge.models.jobs import JobResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_RESULTS = """
CREATE TABLE IF NOT EXISTS job_results (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    build_id         TEXT NOT NULL,
    job_name         TEXT NOT NULL,
    status           TEXT NOT NULL,
    finished_at      TEXT NOT NULL,
    result_json      TEXT NOT NULL,
    UNIQUE (build_id, job_name)
);
"""

_CREATE_IDX_BUILD = """
CREATE INDEX IF NOT EXISTS idx_build_id ON job_results(build_id, id);
"""


class ResultExistsError(RuntimeError):
    """Raised when a second result is recorded for the same build and job."""


class ResultLedger:
    """Write-once store of JobResults.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False, timeout=30)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(_CREATE_RESULTS)
            conn.execute(_CREATE_IDX_BUILD)
            conn.commit()

    # ------------------------------------------------------------------
    # Core: write-once
    # ------------------------------------------------------------------

    def record(self, result: JobResult) -> JobResult:
        """Persist *result*.  This is the ONLY write method.

        Raises ``ResultExistsError`` if the job already has a result for
        this build.
        """
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO job_results
                        (build_id, job_name, status, finished_at, result_json)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        result.build_id,
                        result.job_name,
                        result.status.value,
                        result.finished_at.isoformat(),
                        result.model_dump_json(),
                    ),
                )
                conn.commit()
        except sqlite3.IntegrityError as exc:
            raise ResultExistsError(
                f"Result for job {result.job_name!r} of build {result.build_id} "
                f"is already recorded"
            ) from exc

        logger.debug(
            "Recorded %s for %s/%s", result.status.value, result.build_id, result.job_name
        )
        return result

    # ------------------------------------------------------------------
    # Query methods (read-only)
    # ------------------------------------------------------------------

    def get(self, build_id: str, job_name: str) -> JobResult | None:
        """Return the result of one job, or None if it has none yet."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT result_json FROM job_results WHERE build_id = ? AND job_name = ?",
                (build_id, job_name),
            ).fetchone()
        return JobResult.model_validate_json(row[0]) if row else None

    def get_results(self, build_id: str) -> dict[str, JobResult]:
        """Return every recorded result for a build, keyed by job name."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT result_json FROM job_results WHERE build_id = ? ORDER BY id ASC",
                (build_id,),
            ).fetchall()
        results = [JobResult.model_validate_json(row[0]) for row in rows]
        return {r.job_name: r for r in results}

    def get_all_build_ids(self) -> list[str]:
        """Return all distinct build ids, most recent first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT build_id, MAX(id) AS last FROM job_results "
                "GROUP BY build_id ORDER BY last DESC"
            ).fetchall()
        return [row[0] for row in rows]
