"""Terminal rendering of job results, gate decisions and diffs."""

from genforge.monitor.renderer import ResultRenderer

__all__ = ["ResultRenderer"]
