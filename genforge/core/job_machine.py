"""Per-job state machine for one pipeline run.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- Terminal states are reached exactly once
- Every transition is kept in an ordered history for the run report

Job runners call into the tracker from worker threads, so every read and
write happens under a lock.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from genforge.core.errors import InvalidTransitionError
from genforge.models.jobs import TERMINAL_STATES, VALID_TRANSITIONS, JobState

logger = logging.getLogger(__name__)


class JobTransition(BaseModel):
    """Records a single state transition for the run history."""

    model_config = ConfigDict(frozen=True)

    job_name: str
    from_state: JobState
    to_state: JobState
    reason: str = ""
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class JobTracker:
    """Tracks the state of every job of one build.

    Parameters
    ----------
    build_id:
        The build these jobs verify.
    job_names:
        Every job of the run; all start PENDING.
    """

    def __init__(self, build_id: str, job_names: list[str]) -> None:
        self.build_id = build_id
        self._states: dict[str, JobState] = {name: JobState.PENDING for name in job_names}
        self._history: list[JobTransition] = []
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # State management
    # ------------------------------------------------------------------

    def state(self, job_name: str) -> JobState:
        with self._lock:
            return self._states[job_name]

    def snapshot(self) -> dict[str, JobState]:
        """Return a copy of all job states."""
        with self._lock:
            return dict(self._states)

    @property
    def history(self) -> list[JobTransition]:
        with self._lock:
            return list(self._history)

    def transition(self, job_name: str, target: JobState, *, reason: str = "") -> JobTransition:
        """Move *job_name* to *target*, validating against VALID_TRANSITIONS."""
        with self._lock:
            if job_name not in self._states:
                raise KeyError(f"Unknown job {job_name!r} for build {self.build_id}")
            current = self._states[job_name]
            allowed = VALID_TRANSITIONS.get(current, set())
            if target not in allowed:
                raise InvalidTransitionError(
                    f"Cannot transition {job_name} from {current.value} to {target.value}. "
                    f"Allowed: {sorted(s.value for s in allowed)}"
                )
            record = JobTransition(
                job_name=job_name, from_state=current, to_state=target, reason=reason
            )
            self._states[job_name] = target
            self._history.append(record)

        logger.debug(
            "%s/%s: %s -> %s %s",
            self.build_id,
            job_name,
            current.value,
            target.value,
            f"({reason})" if reason else "",
        )
        return record

    def try_transition(self, job_name: str, target: JobState, *, reason: str = "") -> bool:
        """Like ``transition`` but returns False instead of raising."""
        try:
            self.transition(job_name, target, reason=reason)
        except InvalidTransitionError:
            return False
        return True

    # ------------------------------------------------------------------
    # Convenience methods
    # ------------------------------------------------------------------

    def unfinished(self) -> list[str]:
        """Jobs not yet in a terminal state."""
        with self._lock:
            return [n for n, s in self._states.items() if s not in TERMINAL_STATES]

    def all_terminal(self) -> bool:
        return not self.unfinished()
