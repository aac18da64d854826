"""
Workspace: the local directories a reconciliation works in.

Layout under the data directory::

    <data_dir>/<repo>/            fresh clone, removed after staging
    <data_dir>/files/             staging area (monitored subtree)
    <data_dir>/files/script.sh    generated run script
    <data_dir>/configpilot.pid    PID of the running monitor

Every reconciliation starts by deleting the clone and the staging area.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from .errors import CheckoutError, StagingError, WorkspaceError
from .models import ReconciliationContext
from .process import Runner, run_command

logger = logging.getLogger("configpilot.workspace")

STAGING_DIR = "files"
SCRIPT_NAME = "script.sh"
PID_FILE = "configpilot.pid"


def remove_path(path: Path) -> bool:
    """Delete a file or directory tree.

    Args:
        path: Target to remove.

    Returns:
        True if something was removed, False if it did not exist.

    Raises:
        OSError: Any failure other than the path being absent.
    """
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except FileNotFoundError:
        return False
    return True


class Workspace:
    """Clear, clone and stage the target repository on disk.

    Args:
        data_dir: Root directory for checkouts and staging.
        runner: Subprocess capability used for ``git clone``.
        checkout_timeout: Seconds before the clone is killed (None = no limit).
        log: Logger to use instead of the module logger.
    """

    def __init__(
        self,
        data_dir: Path,
        runner: Runner = run_command,
        checkout_timeout: Optional[float] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.data_dir = Path(data_dir)
        self._runner = runner
        self._checkout_timeout = checkout_timeout
        self._log = log or logger

    @property
    def staging_dir(self) -> Path:
        return self.data_dir / STAGING_DIR

    @property
    def script_path(self) -> Path:
        return self.staging_dir / SCRIPT_NAME

    def checkout_dir(self, ctx: ReconciliationContext) -> Path:
        """Directory the repository is cloned into."""
        return self.data_dir / ctx.repo

    def prepare(self, ctx: ReconciliationContext) -> None:
        """Ensure the data directory exists and wipe previous state.

        Removes the old checkout, the staging area and the run script.
        Missing paths are fine.

        Raises:
            WorkspaceError: A directory could not be created or removed.
        """
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WorkspaceError(f"cannot create {self.data_dir}: {exc}") from exc

        for target in (self.checkout_dir(ctx), self.staging_dir, self.script_path):
            try:
                if remove_path(target):
                    self._log.debug("Removed %s", target)
            except OSError as exc:
                raise WorkspaceError(f"cannot remove {target}: {exc}") from exc

    def checkout(self, ctx: ReconciliationContext) -> Path:
        """Clone the repository into ``checkout_dir``.

        Returns:
            Path of the fresh clone.

        Raises:
            CheckoutError: git exited non-zero, timed out or failed to start.
                The captured output (token redacted) is attached.
        """
        dest = self.checkout_dir(ctx)
        self._log.info("Cloning %s/%s", ctx.owner, ctx.repo)

        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        result = self._runner(
            ["git", "clone", ctx.clone_url, str(dest)],
            cwd=self.data_dir,
            env=env,
            timeout=self._checkout_timeout,
        )
        if not result.ok:
            output = ctx.redact(result.output)
            raise CheckoutError(
                f"git clone failed (exit {result.returncode})", output=output,
            )
        return dest

    def stage(self, ctx: ReconciliationContext) -> Path:
        """Move the monitored subpath of the clone into the staging area.

        With no monitored subpath the whole clone becomes the staging area.

        Returns:
            The staging directory.

        Raises:
            StagingError: The subpath escapes the clone, does not exist or
                cannot be moved.
        """
        checkout = self.checkout_dir(ctx)
        source = checkout / ctx.monitor_path if ctx.monitor_path else checkout

        resolved = source.resolve()
        if resolved != checkout.resolve() and checkout.resolve() not in resolved.parents:
            raise StagingError(f"monitored path escapes the checkout: {ctx.monitor_path}")

        if not source.is_dir():
            raise StagingError(f"monitored path not found in checkout: {ctx.monitor_path or '/'}")

        try:
            shutil.move(str(source), str(self.staging_dir))
        except OSError as exc:
            raise StagingError(f"cannot stage {source}: {exc}") from exc

        self._log.debug("Staged %s -> %s", source, self.staging_dir)
        return self.staging_dir

    def discard_checkout(self, ctx: ReconciliationContext) -> None:
        """Remove what is left of the clone after staging.

        Raises:
            WorkspaceError: The clone could not be removed.
        """
        try:
            remove_path(self.checkout_dir(ctx))
        except OSError as exc:
            raise WorkspaceError(f"cannot remove checkout: {exc}") from exc
