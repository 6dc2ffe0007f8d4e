"""Release gate: aggregates job results into one pass/fail decision.

A build passes only if every fatal job has a Passed result for that very
build.  A fatal job without a result is reported as Cancelled with a
"missing result" reason and fails the gate; it is never treated as
"did not fail".  Advisory jobs are reported but never change the outcome.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from genforge.core.errors import GatePreconditionError
from genforge.core.job_graph import JobGraph
from genforge.core.job_machine import JobTracker
from genforge.models.jobs import TERMINAL_STATES, JobResult, JobSpec, JobState
from genforge.models.reports import GateDecision, JobVerdict

logger = logging.getLogger(__name__)

MISSING_RESULT = "missing result"


class Gate:
    """Pure decision function over JobSpecs and JobResults for one build."""

    def __init__(self, build_id: str) -> None:
        self.build_id = build_id

    def decide(
        self,
        specs: Iterable[JobSpec],
        results: Mapping[str, JobResult],
    ) -> GateDecision:
        """Decide the gate for this build.

        Parameters
        ----------
        specs:
            Every JobSpec that belongs to the run.
        results:
            Results keyed by job name.  Results recorded for a different
            build are ignored, i.e. treated as missing.
        """
        verdicts: list[JobVerdict] = []
        reasons: list[str] = []

        for spec in specs:
            result = results.get(spec.name)
            if result is not None and result.build_id != self.build_id:
                logger.warning(
                    "Ignoring result of %s from build %s while gating %s",
                    spec.name,
                    result.build_id,
                    self.build_id,
                )
                result = None

            if result is None:
                verdict = JobVerdict(
                    job_name=spec.name,
                    fatal=spec.fatal,
                    status=JobState.CANCELLED,
                    reason=MISSING_RESULT,
                    missing=True,
                )
            else:
                verdict = JobVerdict(
                    job_name=spec.name,
                    fatal=spec.fatal,
                    status=result.status,
                    reason=result.reason,
                )
            verdicts.append(verdict)

            if spec.fatal and verdict.status != JobState.PASSED:
                detail = verdict.reason or verdict.status.value
                reasons.append(f"{spec.name}: {verdict.status.value} ({detail})")

        decision = GateDecision(
            build_id=self.build_id,
            passed=not reasons,
            verdicts=verdicts,
            reasons=reasons,
        )
        logger.info(
            "Gate for %s: %s%s",
            self.build_id,
            decision.status,
            f": {'; '.join(reasons)}" if reasons else "",
        )
        return decision

    @staticmethod
    def require_terminal(tracker: JobTracker, graph: JobGraph) -> None:
        """Raise ``GatePreconditionError`` unless the gate node is ready.

        The gate node depends on every fatal job; advisory jobs may still
        be in flight.
        """
        states = tracker.snapshot()
        if graph.gate_ready(states):
            return
        unfinished = [
            name for name in graph.gate_dependencies() if states.get(name) not in TERMINAL_STATES
        ]
        raise GatePreconditionError(
            f"Cannot evaluate gate for {tracker.build_id}: "
            f"{', '.join(sorted(unfinished))} not finished"
        )
