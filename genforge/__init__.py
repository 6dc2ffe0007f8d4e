"""genforge: build-and-verification pipeline for generated code.

  - Generates a code tree from a source revision with an external generator
  - Packs the tree into a deterministic tar artifact, stored write-once
  - Fans out verification jobs, each in its own scratch directory
  - Gates the build on every fatal job passing
  - Diffs the generated code of two revisions and publishes the result
"""

__version__ = "0.1.0"
__description__ = "Build-and-verification pipeline for generated code"

from genforge.core.orchestrator import Orchestrator
from genforge.diff.publisher import DiffPublisher
from genforge.cli.app import app as cli

__all__ = ["DiffPublisher", "Orchestrator", "cli", "__version__"]
