"""Verification job runner: one job against one stored artifact.

Lifecycle per job:

    preconditions -> RUNNING -> unpack into a private workdir -> execute
        -> PASSED | FAILED | ERRORED | CANCELLED -> remove workdir

Every job gets its own freshly created working directory; two jobs never
share one, even for the same artifact.  The directory is removed on every
exit path.  Failures of one job are captured in its JobResult and never
raised to the caller.
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import tempfile
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timezone
from pathlib import Path

from genforge.capabilities.protocols import JobCapability
from genforge.core.artifact_store import ArtifactStore
from genforge.core.errors import (
    ArtifactNotFoundError,
    JobCancelled,
    JobCrash,
    JobTimeout,
    PackagingError,
)
from genforge.core.hasher import sha256_hex
from genforge.core.job_machine import JobTracker
from genforge.core.packager import unpack
from genforge.models.config import PipelineConfig
from genforge.models.jobs import JobResult, JobSpec, JobState

logger = logging.getLogger(__name__)

# Seconds between checks for timeout and cancellation while a job runs.
_POLL_INTERVAL = 0.1


class _Outcome:
    """Mutable scratch record filled in while a job runs."""

    def __init__(self) -> None:
        self.status = JobState.ERRORED
        self.reason = ""
        self.exit_code: int | None = None
        self.stdout = ""
        self.stderr = ""
        self.artifact_sha256 = ""


class JobRunner:
    """Executes JobSpecs against artifacts held by an ArtifactStore.

    Parameters
    ----------
    store:
        Where the packed artifacts live.
    config:
        Pipeline configuration (work root, timeouts, output limits).
    capabilities:
        In-process checks, by name, for JobSpecs that set ``capability``.
    cancel_event:
        Set to stop pending and running jobs.
    which:
        Tool lookup used for ``required_tools``; ``shutil.which`` by default.
    """

    def __init__(
        self,
        store: ArtifactStore,
        config: PipelineConfig,
        *,
        capabilities: dict[str, JobCapability] | None = None,
        cancel_event: threading.Event | None = None,
        which: Callable[[str], str | None] = shutil.which,
    ) -> None:
        self._store = store
        self._config = config
        self._capabilities = dict(capabilities or {})
        self._cancel = cancel_event or threading.Event()
        self._which = which
        self._jobs_root = Path(config.work_root) / "jobs"

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel

    def register_capability(self, name: str, capability: JobCapability) -> None:
        """Register an in-process check under *name*."""
        self._capabilities[name] = capability

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(
        self, spec: JobSpec, build_id: str, tracker: JobTracker | None = None
    ) -> JobResult:
        """Run *spec* against the artifact of *build_id* and return its result."""
        tracker = tracker or JobTracker(build_id, [spec.name])
        started_at = datetime.now(timezone.utc)
        t0 = time.monotonic()

        def finish(outcome: _Outcome) -> JobResult:
            tracker.transition(spec.name, outcome.status, reason=outcome.reason)
            result = JobResult(
                build_id=build_id,
                job_name=spec.name,
                status=outcome.status,
                reason=outcome.reason,
                exit_code=outcome.exit_code,
                stdout=outcome.stdout,
                stderr=outcome.stderr,
                duration_seconds=round(time.monotonic() - t0, 3),
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
                artifact_sha256=outcome.artifact_sha256,
            )
            logger.info(
                "Job %s for %s: %s%s (%.2fs)",
                spec.name,
                build_id,
                result.status.value,
                f" [{result.reason}]" if result.reason else "",
                result.duration_seconds,
            )
            return result

        if self._cancel.is_set():
            outcome = _Outcome()
            outcome.status, outcome.reason = JobState.CANCELLED, "cancelled"
            return finish(outcome)

        skip_reason = self._unmet_precondition(spec, build_id)
        if skip_reason:
            outcome = _Outcome()
            outcome.status, outcome.reason = JobState.SKIPPED, skip_reason
            return finish(outcome)

        tracker.transition(spec.name, JobState.RUNNING)
        return finish(self._execute_isolated(spec, build_id))

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def _unmet_precondition(self, spec: JobSpec, build_id: str) -> str:
        missing = [tool for tool in spec.required_tools if self._which(tool) is None]
        if missing:
            return f"precondition: missing tool(s) {', '.join(missing)}"
        if spec.capability and spec.capability not in self._capabilities:
            return f"precondition: capability {spec.capability!r} is not available"
        if not self._store.exists(build_id):
            return f"precondition: no artifact stored for build {build_id}"
        return ""

    # ------------------------------------------------------------------
    # Isolated execution
    # ------------------------------------------------------------------

    def _execute_isolated(self, spec: JobSpec, build_id: str) -> _Outcome:
        outcome = _Outcome()
        workdir: Path | None = None
        logdir: Path | None = None

        try:
            try:
                self._jobs_root.mkdir(parents=True, exist_ok=True)
                workdir = Path(
                    tempfile.mkdtemp(prefix=f"{build_id}-{spec.name}-", dir=self._jobs_root)
                )
                logdir = Path(
                    tempfile.mkdtemp(prefix=f"{build_id}-{spec.name}-logs-", dir=self._jobs_root)
                )
            except OSError as exc:
                outcome.status, outcome.reason = JobState.ERRORED, "workdir"
                outcome.stderr = f"cannot create job directory: {exc}"
                return outcome
            logger.debug("Job %s workdir: %s", spec.name, workdir)

            try:
                data = self._store.get(build_id)
                outcome.artifact_sha256 = sha256_hex(data)
                unpack(data, workdir)
            except (PackagingError, ArtifactNotFoundError) as exc:
                outcome.status, outcome.reason = JobState.ERRORED, "unpack"
                outcome.stderr = str(exc)
                return outcome

            cwd = (workdir / spec.working_directory).resolve()
            if cwd != workdir.resolve() and workdir.resolve() not in cwd.parents:
                outcome.status, outcome.reason = JobState.ERRORED, "working-directory"
                outcome.stderr = f"{spec.working_directory!r} escapes the job directory"
                return outcome
            if not cwd.is_dir():
                outcome.status, outcome.reason = JobState.ERRORED, "working-directory"
                outcome.stderr = f"{spec.working_directory!r} does not exist in the artifact"
                return outcome

            try:
                if spec.capability:
                    self._run_capability(spec, cwd, outcome)
                else:
                    self._run_command(spec, cwd, logdir, outcome)
            except JobTimeout as exc:
                outcome.status, outcome.reason = JobState.ERRORED, "timeout"
                outcome.stderr = _append(outcome.stderr, str(exc))
            except JobCrash as exc:
                outcome.status, outcome.reason = JobState.ERRORED, "crash"
                outcome.stderr = _append(outcome.stderr, str(exc))
            except JobCancelled:
                outcome.status, outcome.reason = JobState.CANCELLED, "cancelled"
            return outcome
        finally:
            for path in (workdir, logdir):
                if path is not None:
                    _force_rmtree(path)

    def _run_capability(self, spec: JobSpec, cwd: Path, outcome: _Outcome) -> None:
        """Run an in-process check on a worker thread under the job's time limit.

        A check that overruns is abandoned, not interrupted; its thread
        finishes in the background and its result is discarded.
        """
        capability = self._capabilities[spec.capability]
        timeout = self._config.job_timeout(spec)
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"genforge-check-{spec.name}")
        try:
            future = pool.submit(capability.check, cwd, spec)
            deadline = time.monotonic() + timeout
            while True:
                done, _ = wait([future], timeout=_POLL_INTERVAL)
                if done:
                    break
                if self._cancel.is_set():
                    raise JobCancelled(spec.name)
                if time.monotonic() >= deadline:
                    raise JobTimeout(
                        f"{spec.name} exceeded its {timeout:g}s limit and was abandoned"
                    )
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        try:
            check = future.result()
        except Exception as exc:  # noqa: BLE001
            raise JobCrash(f"capability {spec.capability!r} raised: {exc}") from exc
        outcome.stdout = self._tail(check.output.encode("utf-8", errors="replace"))
        if check.passed:
            outcome.status, outcome.reason = JobState.PASSED, ""
        else:
            outcome.status, outcome.reason = JobState.FAILED, "check-failed"

    def _run_command(self, spec: JobSpec, cwd: Path, logdir: Path, outcome: _Outcome) -> None:
        timeout = self._config.job_timeout(spec)
        env = {**os.environ, **spec.env}
        stdout_path, stderr_path = logdir / "stdout.log", logdir / "stderr.log"

        try:
            with stdout_path.open("wb") as out, stderr_path.open("wb") as err:
                try:
                    proc = subprocess.Popen(
                        spec.command,
                        cwd=cwd,
                        env=env,
                        stdin=subprocess.DEVNULL,
                        stdout=out,
                        stderr=err,
                        start_new_session=True,
                    )
                except OSError as exc:
                    raise JobCrash(f"cannot launch {spec.command[0]!r}: {exc}") from exc

                deadline = time.monotonic() + timeout
                while True:
                    try:
                        returncode = proc.wait(timeout=_POLL_INTERVAL)
                        break
                    except subprocess.TimeoutExpired:
                        if self._cancel.is_set():
                            _kill(proc)
                            raise JobCancelled(spec.name) from None
                        if time.monotonic() >= deadline:
                            _kill(proc)
                            raise JobTimeout(
                                f"{spec.name} exceeded its {timeout:g}s limit and was killed"
                            ) from None
        finally:
            outcome.stdout = self._read_tail(stdout_path)
            outcome.stderr = self._read_tail(stderr_path)

        outcome.exit_code = returncode
        if returncode < 0:
            raise JobCrash(f"{spec.name} was killed by signal {-returncode}")
        if returncode == 0:
            outcome.status, outcome.reason = JobState.PASSED, ""
        else:
            outcome.status, outcome.reason = JobState.FAILED, "exit-code"

    # ------------------------------------------------------------------
    # Output capture helpers
    # ------------------------------------------------------------------

    def _tail(self, data: bytes) -> str:
        limit = self._config.max_output_bytes
        if len(data) > limit:
            data = data[-limit:]
        return data.decode("utf-8", errors="replace")

    def _read_tail(self, path: Path) -> str:
        if not path.exists():
            return ""
        limit = self._config.max_output_bytes
        with path.open("rb") as fh:
            fh.seek(0, os.SEEK_END)
            size = fh.tell()
            fh.seek(max(0, size - limit))
            return fh.read().decode("utf-8", errors="replace")


def _append(text: str, line: str) -> str:
    return f"{text.rstrip()}\n{line}".lstrip("\n")


def _kill(proc: subprocess.Popen) -> None:
    """Kill the job's whole process group and reap it."""
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        pass
    proc.wait()


def _force_rmtree(path: Path) -> None:
    """Remove *path* even if the unpacked tree contains read-only dirs."""
    if not path.exists():
        return
    for dirpath, dirnames, _ in os.walk(path):
        for name in dirnames:
            os.chmod(os.path.join(dirpath, name), 0o700)
    try:
        shutil.rmtree(path)
    except OSError as exc:
        logger.error("Failed to remove job directory %s: %s", path, exc)
