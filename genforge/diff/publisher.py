"""Diff publisher: generate two revisions, diff them, persist, announce.

Storage layout (inside any ``ObjectStorage``):

    {namespace}/codegen-diff/{base}..{head}/report.json   the DiffReport
    {namespace}/codegen-diff/{base}..{head}/{filename}    rendered document

Keys depend only on the revision pair, so publishing the same pair again
overwrites the previous diff.  The persisted report is independent of the
announcement: a failed render or comment can be retried with
``republish()`` without regenerating anything.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from genforge.capabilities.protocols import (
    CommentPoster,
    DiffRenderer,
    ObjectStorage,
)
from genforge.capabilities.rendering import UnifiedDiffRenderer
from genforge.core.errors import PublishError, RenderError
from genforge.core.generator import GeneratorAdapter
from genforge.core.hasher import diff_key_prefix, diff_key_segment
from genforge.diff.differ import compute_diff
from genforge.models.config import GenerationConfig
from genforge.models.reports import DiffReport, PublishReceipt

logger = logging.getLogger(__name__)


class DiffPublisher:
    """Runs the diff-and-publish workflow for a revision pair.

    Parameters
    ----------
    adapter:
        Generator adapter used for both revisions.
    storage:
        Object storage receiving the report and its rendering.
    renderer:
        Diff renderer; a plain unified-diff renderer by default.
    poster:
        Review-comment capability.  Without one, nothing is posted.
    namespace:
        Key prefix in object storage.
    """

    def __init__(
        self,
        adapter: GeneratorAdapter,
        storage: ObjectStorage,
        *,
        renderer: DiffRenderer | None = None,
        poster: CommentPoster | None = None,
        namespace: str = "genforge",
    ) -> None:
        self._adapter = adapter
        self._storage = storage
        self._renderer = renderer or UnifiedDiffRenderer()
        self._poster = poster
        self._namespace = namespace.strip("/")

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    def publish(
        self,
        base_revision: str,
        head_revision: str,
        configuration: GenerationConfig,
        *,
        thread_id: str | None = None,
    ) -> PublishReceipt:
        """Generate, diff, persist, render, and announce.

        Raises
        ------
        GenerationError
            If either revision fails to generate.  Nothing is persisted.
        RenderError
            If rendering fails.  The report is already persisted.
        PublishError
            If posting the comment fails.  Report and rendering persist.
        """
        report = self.compute(base_revision, head_revision, configuration)
        self.persist(report)
        return self.republish(base_revision, head_revision, thread_id=thread_id)

    def compute(
        self,
        base_revision: str,
        head_revision: str,
        configuration: GenerationConfig,
    ) -> DiffReport:
        """Generate both revisions concurrently and diff their trees."""
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="genforge-diff") as pool:
            base_future = pool.submit(
                self._adapter.generate, base_revision, configuration,
                label=f"diff-base-{diff_key_segment(base_revision)}",
            )
            head_future = pool.submit(
                self._adapter.generate, head_revision, configuration,
                label=f"diff-head-{diff_key_segment(head_revision)}",
            )
            base_tree = base_future.result()
            head_tree = head_future.result()

        report = compute_diff(
            base_tree, head_tree,
            base_revision=base_revision, head_revision=head_revision,
        )
        logger.info("%s", report.summary())
        return report

    def persist(self, report: DiffReport) -> str:
        """Store the report under its revision-pair key and return the key."""
        key = self.report_key(report.base_revision, report.head_revision)
        self._storage.put(key, report.model_dump_json().encode("utf-8"))
        logger.info("Persisted diff report to %s", self._storage.location(key))
        return key

    def republish(
        self,
        base_revision: str,
        head_revision: str,
        *,
        thread_id: str | None = None,
    ) -> PublishReceipt:
        """Render and announce an already persisted report.

        Nothing is regenerated; the stored report is rendered again.
        """
        report = self.load_report(base_revision, head_revision)
        report_key = self.report_key(base_revision, head_revision)
        rendered_key = self._render(report)
        location = self._storage.location(rendered_key)
        summary = report.summary()

        comment_id: str | None = None
        if thread_id and self._poster is not None:
            body = f"A new generated diff is ready to view: {location}\n\n{summary}"
            try:
                comment_id = self._poster.post_comment(thread_id, body)
            except Exception as exc:  # noqa: BLE001
                logger.error("Posting diff summary to %s failed: %s", thread_id, exc)
                raise PublishError(
                    f"Could not post diff summary to {thread_id}: {exc}",
                    report_key=report_key,
                ) from exc
            logger.info("Posted diff summary to %s (comment %s)", thread_id, comment_id)
        elif thread_id:
            logger.warning("No comment poster configured; not posting to %s", thread_id)

        return PublishReceipt(
            base_revision=base_revision,
            head_revision=head_revision,
            report_key=report_key,
            rendered_key=rendered_key,
            location=location,
            summary=summary,
            comment_id=comment_id,
        )

    # ------------------------------------------------------------------
    # Stored report access
    # ------------------------------------------------------------------

    def report_key(self, base_revision: str, head_revision: str) -> str:
        return f"{diff_key_prefix(self._namespace, base_revision, head_revision)}/report.json"

    def load_report(self, base_revision: str, head_revision: str) -> DiffReport:
        """Return the persisted report for the pair, or raise ``KeyError``.

        A report stored under the pair's key for some other pair is
        treated as missing.
        """
        key = self.report_key(base_revision, head_revision)
        report = DiffReport.model_validate_json(self._storage.get(key))
        if (report.base_revision, report.head_revision) != (base_revision, head_revision):
            raise KeyError(
                f"{key} holds the diff {report.base_revision}..{report.head_revision}, "
                f"not {base_revision}..{head_revision}"
            )
        return report

    def _render(self, report: DiffReport) -> str:
        prefix = diff_key_prefix(self._namespace, report.base_revision, report.head_revision)
        try:
            document = self._renderer.render(report)
        except Exception as exc:  # noqa: BLE001
            logger.error("Rendering diff %s..%s failed: %s",
                         report.base_revision, report.head_revision, exc)
            raise RenderError(
                f"Could not render diff {report.base_revision}..{report.head_revision}: {exc}"
            ) from exc

        rendered_key = f"{prefix}/{document.filename}"
        self._storage.put(rendered_key, document.content)
        return rendered_key
