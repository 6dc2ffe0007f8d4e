"""Write-once artifact store keyed by BuildIdentifier.

Storage layout (inside any ``ObjectStorage``):

    {namespace}/artifacts/{build_id}/artifact.tar    packed tree bytes
    {namespace}/artifacts/{build_id}/artifact.json   Artifact metadata

The metadata record is written last and is what ``exists()`` checks, so a
reader never observes a half-published artifact.  There is no overwrite
and no delete: a second ``put`` for the same build is rejected.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from genforge.capabilities.protocols import ObjectStorage
from genforge.core.errors import (
    ArtifactExistsError,
    ArtifactIntegrityError,
    ArtifactNotFoundError,
)
from genforge.core.hasher import sha256_hex
from genforge.models.artifacts import Artifact, validate_build_id

logger = logging.getLogger(__name__)


class ArtifactStore:
    """Read-many / write-once store of packed build artifacts.

    Parameters
    ----------
    storage:
        The object storage capability holding blobs and metadata.
    namespace:
        Key prefix separating this project's objects from others.
    """

    def __init__(self, storage: ObjectStorage, namespace: str = "genforge") -> None:
        self._storage = storage
        self._namespace = namespace.strip("/")
        self._write_lock = threading.Lock()

    def _blob_key(self, build_id: str) -> str:
        return f"{self._namespace}/artifacts/{build_id}/artifact.tar"

    def _meta_key(self, build_id: str) -> str:
        return f"{self._namespace}/artifacts/{build_id}/artifact.json"

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def put(
        self,
        build_id: str,
        data: bytes,
        *,
        source_revision: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> Artifact:
        """Publish *data* as the artifact for *build_id*.

        Raises ``ArtifactExistsError`` if the build already has one.
        """
        validate_build_id(build_id)
        with self._write_lock:
            if self.exists(build_id):
                raise ArtifactExistsError(
                    f"Artifact for build {build_id} already exists; refusing to overwrite"
                )
            artifact = Artifact(
                build_id=build_id,
                size_bytes=len(data),
                sha256=sha256_hex(data),
                source_revision=source_revision,
                storage_key=self._blob_key(build_id),
                metadata=metadata or {},
            )
            self._storage.put(self._blob_key(build_id), data)
            self._storage.put(
                self._meta_key(build_id),
                artifact.model_dump_json().encode("utf-8"),
            )

        logger.info(
            "Stored artifact for %s (%d bytes, sha256=%s)",
            build_id,
            artifact.size_bytes,
            artifact.sha256[:12],
        )
        return artifact

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def exists(self, build_id: str) -> bool:
        """Whether a complete artifact is published for *build_id*."""
        return self._storage.exists(self._meta_key(validate_build_id(build_id)))

    def describe(self, build_id: str) -> Artifact:
        """Return the metadata of the artifact for *build_id*."""
        if not self.exists(build_id):
            raise ArtifactNotFoundError(f"No artifact stored for build {build_id}")
        return Artifact.model_validate_json(self._storage.get(self._meta_key(build_id)))

    def get(self, build_id: str) -> bytes:
        """Return the artifact bytes for *build_id*, verifying their digest."""
        artifact = self.describe(build_id)
        data = self._storage.get(artifact.storage_key)
        if sha256_hex(data) != artifact.sha256:
            raise ArtifactIntegrityError(
                f"Artifact for build {build_id} failed integrity check"
            )
        return data

    def location(self, build_id: str) -> str:
        return self._storage.location(self._blob_key(validate_build_id(build_id)))
