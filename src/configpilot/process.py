"""Subprocess capability used for checkout, decryption and scripts.

Everything the pipeline shells out to goes through ``run_command`` so
that tests can swap in a fake runner with the same signature.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence, Union


@dataclass
class CommandResult:
    """Outcome of a finished (or failed-to-start) command.

    Attributes:
        args: The command that was run.
        returncode: Exit status, -1 when it never ran to completion.
        output: Combined stdout and stderr.
        timed_out: Whether the command was killed by the timeout.
    """

    args: list[str]
    returncode: int = -1
    output: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        """Whether the command exited with status zero."""
        return self.returncode == 0


Runner = Callable[..., CommandResult]


def run_command(
    cmd: Sequence[str],
    cwd: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
) -> CommandResult:
    """Run a command to completion and capture its combined output.

    Args:
        cmd: Command and arguments.
        cwd: Working directory for the command.
        env: Full environment for the child process. None inherits ours.
        timeout: Seconds before the command is killed. None waits forever.

    Returns:
        CommandResult. Launch failures and timeouts are reported through
        ``returncode == -1`` rather than raised.
    """
    args = [str(c) for c in cmd]
    try:
        proc = subprocess.run(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            cwd=str(cwd) if cwd is not None else None,
            env=dict(env) if env is not None else None,
            timeout=timeout,
            check=False,
        )
        return CommandResult(args=args, returncode=proc.returncode, output=proc.stdout or "")
    except subprocess.TimeoutExpired as exc:
        partial = exc.output or ""
        if isinstance(partial, bytes):
            partial = partial.decode("utf-8", errors="replace")
        return CommandResult(
            args=args,
            output=f"{partial}TIMEOUT after {timeout}s",
            timed_out=True,
        )
    except OSError as exc:
        return CommandResult(args=args, output=str(exc))
