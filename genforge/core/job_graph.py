"""Dependency graph of verification jobs with a synthetic gate node.

The graph enforces:
- No job is dispatched until every job it ``needs`` has PASSED.
- When a job fails, every pending transitive dependent is SKIPPED.
- The gate node depends on every fatal job and is evaluated only once all
  of its dependencies are terminal.
"""

from __future__ import annotations

from collections import deque

from genforge.models.jobs import TERMINAL_STATES, JobSpec, JobState

GATE_NODE = "__gate__"


class CyclicDependencyError(ValueError):
    """Raised when the job graph contains a cycle."""


class UnknownDependencyError(ValueError):
    """Raised when a job needs a job that is not defined."""


class JobGraph:
    """Directed acyclic graph of JobSpecs.

    Built from ``JobSpec.needs`` before dispatch.  Jobs without ``needs``
    are independent and may all run at once.
    """

    def __init__(self, specs: list[JobSpec]) -> None:
        self._specs: dict[str, JobSpec] = {spec.name: spec for spec in specs}
        # Forward edges: job -> jobs it needs
        self._needs: dict[str, list[str]] = {
            spec.name: list(spec.needs) for spec in specs
        }
        # Reverse edges: job -> jobs that need it
        self._dependents: dict[str, list[str]] = {spec.name: [] for spec in specs}

        for spec in specs:
            for dep in spec.needs:
                if dep not in self._specs:
                    raise UnknownDependencyError(
                        f"Job {spec.name!r} needs unknown job {dep!r}"
                    )
                self._dependents[dep].append(spec.name)

        self._validate_no_cycles()

    def _validate_no_cycles(self) -> None:
        """Verify the graph is a DAG using Kahn's algorithm."""
        if len(self.topological_order()) != len(self._specs):
            raise CyclicDependencyError(
                "Job graph has a cycle among: "
                + ", ".join(sorted(self._specs))
            )

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    @property
    def specs(self) -> list[JobSpec]:
        return list(self._specs.values())

    @property
    def job_names(self) -> list[str]:
        return list(self._specs)

    def get_spec(self, name: str) -> JobSpec:
        return self._specs[name]

    def gate_dependencies(self) -> list[str]:
        """Jobs the synthetic gate node depends on: every fatal job."""
        return [name for name, spec in self._specs.items() if spec.fatal]

    def get_dependents(self, name: str) -> list[str]:
        """Return all transitive dependents of a job (BFS)."""
        result: list[str] = []
        queue = deque(self._dependents.get(name, []))
        visited: set[str] = set()
        while queue:
            node = queue.popleft()
            if node in visited:
                continue
            visited.add(node)
            result.append(node)
            queue.extend(self._dependents.get(node, []))
        return result

    def topological_order(self) -> list[str]:
        """Job names in dependency order (declaration order among peers)."""
        in_degree = {name: len(needs) for name, needs in self._needs.items()}
        queue = deque(name for name, deg in in_degree.items() if deg == 0)
        order: list[str] = []
        while queue:
            node = queue.popleft()
            order.append(node)
            for dep in self._dependents.get(node, []):
                in_degree[dep] -= 1
                if in_degree[dep] == 0:
                    queue.append(dep)
        return order

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def ready(self, states: dict[str, JobState]) -> list[str]:
        """Pending jobs whose dependencies have all PASSED."""
        return [
            name
            for name in self.topological_order()
            if states.get(name, JobState.PENDING) == JobState.PENDING
            and all(states.get(dep) == JobState.PASSED for dep in self._needs[name])
        ]

    def blocking_reasons(self, name: str, states: dict[str, JobState]) -> list[str]:
        """Human-readable reasons a job cannot be dispatched yet."""
        return [
            f"{dep} is {states.get(dep, JobState.PENDING).value}"
            for dep in self._needs.get(name, [])
            if states.get(dep) != JobState.PASSED
        ]

    def cascade_skip(self, failed: str, states: dict[str, JobState]) -> list[str]:
        """Pending transitive dependents of *failed* that can never run.

        Returns the names; the caller transitions them to SKIPPED.
        """
        return [
            name
            for name in self.get_dependents(failed)
            if states.get(name, JobState.PENDING) == JobState.PENDING
        ]

    def gate_ready(self, states: dict[str, JobState]) -> bool:
        """Whether every gate dependency has reached a terminal state."""
        return all(states.get(name) in TERMINAL_STATES for name in self.gate_dependencies())
