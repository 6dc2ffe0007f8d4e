"""Capability interfaces and their local default implementations.

Every external collaborator of the pipeline (source control, the code
generator, object storage, diff rendering, review comments, in-process
checks) is a ``typing.Protocol`` defined in ``protocols``.  The modules
alongside it provide dependency-free implementations.
"""

from genforge.capabilities.comments import LocalFileCommentPoster
from genforge.capabilities.generator import SubprocessCodeGenerator
from genforge.capabilities.protocols import (
    CheckOutcome,
    CodeGenerator,
    CommentPoster,
    DiffRenderer,
    GeneratorRun,
    JobCapability,
    ObjectStorage,
    RenderedDocument,
    RevisionResolver,
)
from genforge.capabilities.rendering import UnifiedDiffRenderer
from genforge.capabilities.source import DirectoryRevisionResolver, GitRevisionResolver
from genforge.capabilities.storage import LocalObjectStorage, MemoryObjectStorage

__all__ = [
    "CheckOutcome",
    "CodeGenerator",
    "CommentPoster",
    "DiffRenderer",
    "DirectoryRevisionResolver",
    "GeneratorRun",
    "GitRevisionResolver",
    "JobCapability",
    "LocalFileCommentPoster",
    "LocalObjectStorage",
    "MemoryObjectStorage",
    "ObjectStorage",
    "RenderedDocument",
    "RevisionResolver",
    "SubprocessCodeGenerator",
    "UnifiedDiffRenderer",
]
