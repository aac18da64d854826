"""
ConfigPilot daemon: the long-running monitor process.

Wires the components from a PilotConfig, writes a PID file into the
data directory, turns SIGTERM/SIGINT into a clean stop between polls,
and runs the poll loop in the foreground. Supervise it with systemd or
a container runtime; it does not fork.
"""

from __future__ import annotations

import logging
import os
import signal
from pathlib import Path
from typing import Optional

from .decrypt import SecretResolver
from .errors import StartupError
from .executor import Executor
from .github import RevisionClient
from .models import PilotConfig
from .monitor import PollLoop
from .reconciler import Reconciler, reconcile_handler
from .workspace import PID_FILE, Workspace

logger = logging.getLogger("configpilot.daemon")


def build_reconciler(config: PilotConfig, log: Optional[logging.Logger] = None) -> Reconciler:
    """Assemble Workspace, SecretResolver and Executor for a config."""
    return Reconciler(
        workspace=Workspace(config.data_dir, checkout_timeout=config.checkout_timeout, log=log),
        resolver=SecretResolver(log=log),
        executor=Executor(timeout=config.script_timeout, log=log),
        settle_delay=config.settle_delay,
        log=log,
    )


def build_client(config: PilotConfig, log: Optional[logging.Logger] = None) -> RevisionClient:
    return RevisionClient(
        config.github_token, config.owner, config.repo, api_url=config.api_url, log=log,
    )


def build_loop(config: PilotConfig, log: Optional[logging.Logger] = None) -> PollLoop:
    """Wire a PollLoop whose handler reconciles the configured repository."""
    reconciler = build_reconciler(config, log=log)
    handler = reconcile_handler(reconciler, config.context(), log=log)
    return PollLoop(
        build_client(config, log=log),
        handler,
        interval=config.interval,
        path=config.monitor_path,
        log=log,
    )


class PilotDaemon:
    """Foreground monitor process.

    Args:
        config: Loaded configuration.
        loop: Pre-built poll loop; built from ``config`` when omitted.
    """

    def __init__(self, config: PilotConfig, loop: Optional[PollLoop] = None) -> None:
        self.config = config
        self.loop = loop or build_loop(config)

    @property
    def pid_path(self) -> Path:
        return self.config.data_dir / PID_FILE

    def start(self) -> None:
        """Write the PID file, install signal handlers, set the baseline.

        Raises:
            StartupError: The baseline revision could not be fetched. The
                PID file is removed before re-raising.
        """
        self._write_pid()
        self._setup_signals()

        if self.config.monitor_path:
            logger.info(
                "Monitoring path: %s (including subdirectories)", self.config.monitor_path,
            )
        else:
            logger.info("Monitoring entire repository")

        try:
            self.loop.start()
        except StartupError:
            self._remove_pid()
            raise

        logger.info(
            "ConfigPilot started for %s/%s (interval=%ds, PID %d)",
            self.config.owner, self.config.repo, self.config.interval, os.getpid(),
        )

    def run_forever(self) -> None:
        """Poll until a signal arrives, then clean up."""
        try:
            self.loop.run()
        except KeyboardInterrupt:
            pass
        finally:
            self._remove_pid()
            logger.info("ConfigPilot stopped.")

    def stop(self) -> None:
        self.loop.stop()

    def _setup_signals(self) -> None:
        """Register signal handlers for graceful shutdown."""
        for sig in (signal.SIGTERM, signal.SIGINT):
            signal.signal(sig, self._handle_signal)

    def _handle_signal(self, signum, frame):
        logger.info("Received signal %s, stopping after the current poll", signal.Signals(signum).name)
        self.stop()

    def _write_pid(self) -> None:
        self.pid_path.parent.mkdir(parents=True, exist_ok=True)
        self.pid_path.write_text(str(os.getpid()), encoding="utf-8")

    def _remove_pid(self) -> None:
        self.pid_path.unlink(missing_ok=True)


def read_pid(data_dir: Path) -> Optional[int]:
    """Read the monitor PID for a data directory.

    Stale PID files (dead process, garbage content) are removed.

    Args:
        data_dir: The configured data directory.

    Returns:
        PID as int, or None if no monitor is running.
    """
    pid_path = Path(data_dir) / PID_FILE
    if not pid_path.exists():
        return None
    try:
        pid = int(pid_path.read_text(encoding="utf-8").strip())
        os.kill(pid, 0)
        return pid
    except (ValueError, ProcessLookupError):
        pid_path.unlink(missing_ok=True)
        return None
    except PermissionError:
        # Alive but owned by another user.
        return pid


def is_running(data_dir: Path) -> bool:
    """Check whether a monitor is running for ``data_dir``."""
    return read_pid(data_dir) is not None
