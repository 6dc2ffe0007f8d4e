"""genforge CLI: Typer-based command-line interface.

Provides the ``genforge`` command with subcommands for generating,
packaging, verifying and gating builds, and for diffing generated code
between revisions.  Each failure category has its own exit status.

All output uses Rich for formatted terminal display.
"""
