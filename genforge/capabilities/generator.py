"""Subprocess-backed code generator capability."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from genforge.capabilities.protocols import GeneratorRun
from genforge.models.config import GenerationConfig

logger = logging.getLogger(__name__)

# Characters of generator output kept in GeneratorRun.log.
_LOG_TAIL_CHARS = 16_000


class SubprocessCodeGenerator:
    """Runs the generator command template inside the snapshot.

    The argv template comes from ``GenerationConfig.command``; once the
    process exits, its tree is expected at ``{snapshot}/{output_subdir}``,
    or directly in the ``{output}`` directory when ``output_subdir`` is empty.

    Parameters
    ----------
    timeout_seconds:
        Wall-clock limit for one generation.  ``None`` waits forever.
    """

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self._timeout = timeout_seconds

    def run(
        self,
        snapshot: Path,
        configuration: GenerationConfig,
        output_dir: Path,
        *,
        revision: str = "",
    ) -> GeneratorRun:
        values = configuration.template_values(
            snapshot=snapshot, output=output_dir, revision=revision
        )
        argv = [part.format(**values) for part in configuration.command]
        env = {**os.environ, **configuration.env}
        for flag, enabled in configuration.feature_flags.items():
            env[f"GENFORGE_FEATURE_{flag.upper()}"] = "1" if enabled else "0"

        logger.info("Running generator in %s: %s", snapshot, " ".join(argv))
        try:
            proc = subprocess.run(
                argv,
                cwd=snapshot,
                env=env,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            return GeneratorRun(exit_code=127, output_dir=output_dir, log=str(exc))
        except subprocess.TimeoutExpired as exc:
            return GeneratorRun(
                exit_code=124,
                output_dir=output_dir,
                log=f"generator timed out after {exc.timeout}s",
            )

        log = (proc.stdout + proc.stderr)[-_LOG_TAIL_CHARS:]
        produced = (
            snapshot / configuration.output_subdir if configuration.output_subdir else output_dir
        )
        return GeneratorRun(
            exit_code=proc.returncode,
            output_dir=produced,
            log=log,
        )
