"""Generated-code diffing and publication."""

from genforge.diff.differ import compute_diff
from genforge.diff.publisher import DiffPublisher

__all__ = ["DiffPublisher", "compute_diff"]
