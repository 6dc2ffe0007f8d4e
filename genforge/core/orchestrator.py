"""Pipeline orchestrator: the central coordinator for genforge runs.

The Orchestrator wires together the GeneratorAdapter, Packager,
ArtifactStore, JobGraph, JobRunner, ResultLedger, and Gate into one
pipeline:

    generate -> pack -> store -> fan out verification jobs -> gate

Generation and packaging failures abort the run and mark every job
Skipped.  Job failures are isolated: they are recorded and the remaining
jobs keep running, but the gate will not pass.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict

from genforge.capabilities.protocols import (
    CodeGenerator,
    JobCapability,
    ObjectStorage,
    RevisionResolver,
)
from genforge.capabilities.storage import LocalObjectStorage
from genforge.core.artifact_store import ArtifactStore
from genforge.core.errors import GenforgeError, PackagingError
from genforge.core.gate import Gate
from genforge.core.generator import GeneratorAdapter
from genforge.core.job_graph import JobGraph
from genforge.core.job_machine import JobTracker, JobTransition
from genforge.core.job_runner import JobRunner
from genforge.core.packager import pack
from genforge.core.result_ledger import ResultExistsError, ResultLedger
from genforge.models.artifacts import Artifact, DirectoryTree, make_build_id, validate_build_id
from genforge.models.config import PipelineConfig
from genforge.models.jobs import JobResult, JobState
from genforge.models.reports import GateDecision

logger = logging.getLogger(__name__)


class PipelineRun(BaseModel):
    """Summary of one completed orchestrator run."""

    model_config = ConfigDict(frozen=True)

    build_id: str
    revision: str
    artifact: Artifact
    results: dict[str, JobResult]
    decision: GateDecision
    history: list[JobTransition] = []


class Orchestrator:
    """Central pipeline orchestrator.

    Parameters
    ----------
    config:
        Immutable pipeline configuration.
    resolver:
        Revision resolver capability for the generator adapter.
    generator:
        Code generator capability.
    storage:
        Object storage for artifacts.  Defaults to a LocalObjectStorage
        rooted at ``config.storage_root``.
    capabilities:
        In-process checks available to capability-based JobSpecs.
    ledger:
        Result ledger.  Defaults to one at ``config.results_db_path``.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        resolver: RevisionResolver,
        generator: CodeGenerator,
        storage: ObjectStorage | None = None,
        capabilities: dict[str, JobCapability] | None = None,
        ledger: ResultLedger | None = None,
    ) -> None:
        self.config = config
        self.storage = storage or LocalObjectStorage(config.storage_root)
        self.artifact_store = ArtifactStore(self.storage, config.namespace)
        self.ledger = ledger or ResultLedger(config.results_db_path)
        self.adapter = GeneratorAdapter(resolver, generator, config.work_root)
        self.graph = JobGraph(config.jobs)

        self._cancel = threading.Event()
        self.runner = JobRunner(
            self.artifact_store,
            config,
            capabilities=capabilities,
            cancel_event=self._cancel,
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def generate(self, revision: str, build_id: str) -> DirectoryTree:
        """Run the generator for *revision*, keeping the tree under *build_id*."""
        validate_build_id(build_id)
        return self.adapter.generate(revision, self.config.generation, label=build_id)

    def package(
        self, build_id: str, tree: DirectoryTree | None = None, *, revision: str = ""
    ) -> Artifact:
        """Pack the generated tree and publish it as the build's artifact.

        Without *tree*, the tree previously generated for *build_id* is used.
        """
        tree = tree or self.adapter.load(build_id)
        if tree.is_empty:
            raise PackagingError(f"Refusing to package an empty tree for {build_id}")
        try:
            data = pack(tree)
        except OSError as exc:
            raise PackagingError(f"Cannot pack {tree.root}: {exc}") from exc
        return self.artifact_store.put(
            build_id,
            data,
            source_revision=revision,
            metadata={
                "entries": len(tree.entries),
                "modules": list(self.config.generation.modules),
                "full": self.config.generation.full,
            },
        )

    def run_job(self, build_id: str, job_name: str) -> JobResult:
        """Run a single job against a stored artifact and record its result."""
        spec = self.graph.get_spec(job_name)
        tracker = JobTracker(build_id, [job_name])
        return self._record(self.runner.run(spec, build_id, tracker))

    def verify(self, build_id: str, tracker: JobTracker | None = None) -> dict[str, JobResult]:
        """Fan out every job against the stored artifact and wait for all.

        Jobs run concurrently on a thread pool, honouring ``needs``.  When a
        job does not pass, its pending dependents are Skipped.  Returns
        the result of every job, each also recorded in the ledger.
        """
        tracker = tracker or JobTracker(build_id, self.graph.job_names)
        results: dict[str, JobResult] = {}
        dispatched: set[str] = set()

        with ThreadPoolExecutor(
            max_workers=self.config.max_parallel_jobs,
            thread_name_prefix="genforge-job",
        ) as pool:
            running: dict[Future[JobResult], str] = {}

            def dispatch() -> None:
                if self._cancel.is_set():
                    return
                for name in self.graph.ready(tracker.snapshot()):
                    if name in dispatched:
                        continue
                    dispatched.add(name)
                    spec = self.graph.get_spec(name)
                    running[pool.submit(self.runner.run, spec, build_id, tracker)] = name
                    logger.debug("Dispatched %s for %s", name, build_id)

            dispatch()
            while running:
                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    name = running.pop(future)
                    result = self._collect(future, name, build_id, tracker)
                    results[name] = self._record(result)
                    if result.status != JobState.PASSED:
                        for dependent in self.graph.cascade_skip(name, tracker.snapshot()):
                            blockers = self.graph.blocking_reasons(dependent, tracker.snapshot())
                            results[dependent] = self._close(
                                tracker, build_id, dependent,
                                JobState.SKIPPED, f"upstream-failed: {', '.join(blockers)}",
                            )
                dispatch()

        # Anything still pending was never dispatched because of cancellation.
        for name in tracker.unfinished():
            results[name] = self._close(tracker, build_id, name, JobState.CANCELLED, "cancelled")
        return results

    def gate(self, build_id: str, tracker: JobTracker | None = None) -> GateDecision:
        """Decide the gate from the results recorded for *build_id*."""
        if tracker is not None:
            Gate.require_terminal(tracker, self.graph)
        return Gate(build_id).decide(self.graph.specs, self.ledger.get_results(build_id))

    # ------------------------------------------------------------------
    # Whole pipeline
    # ------------------------------------------------------------------

    def run(
        self, revision: str, *, attempt: int = 1, build_id: str | None = None
    ) -> PipelineRun:
        """Generate, package, verify and gate *revision*.

        Raises ``GenerationError`` or ``PackagingError`` after marking every
        job Skipped if the run cannot produce an artifact.
        """
        build_id = validate_build_id(build_id or make_build_id(revision, attempt))
        tracker = JobTracker(build_id, self.graph.job_names)
        logger.info("Pipeline run %s for revision %s started", build_id, revision)

        try:
            tree = self.generate(revision, build_id)
            artifact = self.package(build_id, tree, revision=revision)
        except GenforgeError as exc:
            logger.error("Pipeline run %s aborted: %s", build_id, exc)
            for name in tracker.unfinished():
                self._close(tracker, build_id, name, JobState.SKIPPED, "upstream-failed")
            raise

        results = self.verify(build_id, tracker)
        decision = self.gate(build_id, tracker)
        logger.info(
            "Pipeline run %s finished at %s: gate %s",
            build_id,
            datetime.now(timezone.utc).isoformat(),
            decision.status,
        )
        return PipelineRun(
            build_id=build_id,
            revision=revision,
            artifact=artifact,
            results=results,
            decision=decision,
            history=tracker.history,
        )

    def cancel(self) -> None:
        """Stop the run: pending jobs are Cancelled, running ones killed."""
        logger.warning("Cancellation requested")
        self._cancel.set()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _collect(
        self, future: Future[JobResult], name: str, build_id: str, tracker: JobTracker
    ) -> JobResult:
        """Return a finished job's result, turning runner bugs into Errored."""
        try:
            return future.result()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Job runner failed for %s", name)
            tracker.try_transition(name, JobState.RUNNING)
            tracker.try_transition(name, JobState.ERRORED, reason="crash")
            return JobResult(
                build_id=build_id,
                job_name=name,
                status=JobState.ERRORED,
                reason="crash",
                stderr=str(exc),
            )

    def _close(
        self, tracker: JobTracker, build_id: str, name: str, status: JobState, reason: str
    ) -> JobResult:
        """Move a never-run job to a terminal state and record it."""
        tracker.transition(name, status, reason=reason)
        return self._record(
            JobResult(build_id=build_id, job_name=name, status=status, reason=reason)
        )

    def _record(self, result: JobResult) -> JobResult:
        try:
            return self.ledger.record(result)
        except ResultExistsError:
            existing = self.ledger.get(result.build_id, result.job_name)
            logger.error(
                "Result for %s/%s already recorded as %s; keeping the existing one",
                result.build_id,
                result.job_name,
                existing.status.value if existing else "?",
            )
            return existing or result
