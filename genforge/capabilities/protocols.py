"""Capability protocols consumed by the pipeline core.

The orchestrator, generator adapter, and diff publisher only talk to these
interfaces.  Any object with the right methods satisfies them, so vendor
implementations (an S3 bucket, a review-platform client, a different code
generator) plug in without touching pipeline logic.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from genforge.models.config import GenerationConfig
    from genforge.models.jobs import JobSpec
    from genforge.models.reports import DiffReport


class GeneratorRun(BaseModel):
    """Outcome of one external generator invocation."""

    model_config = ConfigDict(frozen=True)

    exit_code: int
    output_dir: Path
    log: str = ""


class RenderedDocument(BaseModel):
    """A reviewable rendering of a DiffReport."""

    model_config = ConfigDict(frozen=True)

    content: bytes
    content_type: str = "text/plain"
    filename: str = "index.txt"


class CheckOutcome(BaseModel):
    """Result of an in-process verification capability."""

    model_config = ConfigDict(frozen=True)

    passed: bool
    output: str = ""


@runtime_checkable
class RevisionResolver(Protocol):
    """Resolves a revision reference to a source snapshot on disk."""

    def resolve(self, revision_ref: str) -> Path:
        """Return a directory holding the sources at *revision_ref*.

        Raises ``LookupError`` if the revision cannot be resolved.
        """
        ...


@runtime_checkable
class CodeGenerator(Protocol):
    """The external code generator process."""

    def run(
        self,
        snapshot: Path,
        configuration: GenerationConfig,
        output_dir: Path,
        *,
        revision: str = "",
    ) -> GeneratorRun:
        """Generate sources from *snapshot*.

        The generator may write into *output_dir* directly or report a
        different directory in ``GeneratorRun.output_dir``.  A non-zero
        ``exit_code`` signals failure.
        """
        ...


@runtime_checkable
class ObjectStorage(Protocol):
    """Key/value blob storage used for artifacts and diff reports."""

    def put(self, key: str, data: bytes) -> None:
        ...

    def get(self, key: str) -> bytes:
        """Return the bytes under *key*; raise ``KeyError`` if absent."""
        ...

    def exists(self, key: str) -> bool:
        ...

    def location(self, key: str) -> str:
        """A human-usable location (URI) for *key*."""
        ...


@runtime_checkable
class DiffRenderer(Protocol):
    """Turns a DiffReport into a reviewable document."""

    def render(self, report: DiffReport) -> RenderedDocument:
        ...


@runtime_checkable
class CommentPoster(Protocol):
    """Posts a comment on a review thread (e.g. a pull request)."""

    def post_comment(self, thread_id: str, body: str) -> str:
        """Post *body* on *thread_id* and return the new comment's id."""
        ...


@runtime_checkable
class JobCapability(Protocol):
    """An in-process verification check run against an unpacked artifact."""

    def check(self, workdir: Path, spec: JobSpec) -> CheckOutcome:
        ...
