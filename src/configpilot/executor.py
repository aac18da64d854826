"""Executor: write the deployment wrapper script and run it."""

from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Optional

from .errors import ExecutionError
from .process import CommandResult, Runner, run_command
from .workspace import SCRIPT_NAME

logger = logging.getLogger("configpilot.executor")

SHELL = "bash"


def render_script(root: Path, body: str) -> str:
    """Build the wrapper: shebang, cd into the staging root, then the body."""
    preamble = f"#!/bin/bash\ncd {shlex.quote(str(Path(root).resolve()))}"
    return f"{preamble}\n\n{body}"


class Executor:
    """Run the user's deployment script against the staging tree.

    Args:
        runner: Subprocess capability.
        timeout: Seconds before the script is killed (None = no limit).
        log: Logger to use instead of the module logger.
    """

    def __init__(
        self,
        runner: Runner = run_command,
        timeout: Optional[float] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._runner = runner
        self._timeout = timeout
        self._log = log or logger

    def write_script(self, root: Path, body: str) -> Path:
        """Write the wrapper to ``<root>/script.sh``, replacing any old one."""
        script_path = Path(root) / SCRIPT_NAME
        script_path.write_text(render_script(root, body), encoding="utf-8")
        script_path.chmod(0o644)
        return script_path

    def run(self, root: Path, body: str) -> CommandResult:
        """Write and execute the wrapper script.

        Args:
            root: Staging directory.
            body: User-supplied script body.

        Returns:
            CommandResult of the successful run.

        Raises:
            ExecutionError: The script could not be written or launched,
                exited non-zero, or timed out. Carries the captured output.
        """
        self._log.info("Starting execution script")
        self._log.debug("Script body:\n%s", body)

        try:
            script_path = self.write_script(root, body)
        except OSError as exc:
            raise ExecutionError(f"cannot write run script: {exc}") from exc

        result = self._runner([SHELL, str(script_path)], cwd=root, timeout=self._timeout)
        if result.timed_out:
            raise ExecutionError(f"script timed out after {self._timeout}s", output=result.output)
        if not result.ok:
            raise ExecutionError(
                f"script exited with status {result.returncode}", output=result.output,
            )

        self._log.info("Execution done, output:\n%s", result.output)
        return result
