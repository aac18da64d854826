"""
PollLoop: detect new revisions and fire the change handler.

State machine::

    INITIALIZING --baseline ok--> RUNNING --stop()--> STOPPED
         |
         +--baseline failed--> STOPPED (StartupError)

The loop owns ``last_known_revision``. It is moved to a new revision
*before* the handler runs, so a failing handler is never re-triggered
for the same revision. The handler runs on the loop's thread while an
in-flight lock is held; no second handler can start until it returns.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from .errors import ReconcileError, RevisionError, StartupError
from .github import RevisionClient
from .models import RevisionRecord

logger = logging.getLogger("configpilot.monitor")

ChangeHandler = Callable[[RevisionRecord], None]


class MonitorPhase(str, Enum):
    """Lifecycle of the poll loop."""

    INITIALIZING = "initializing"
    RUNNING = "running"
    STOPPED = "stopped"


class TickOutcome(str, Enum):
    """Result of a single poll."""

    QUERY_FAILED = "query_failed"
    UNCHANGED = "unchanged"
    RECONCILED = "reconciled"
    HANDLER_FAILED = "handler_failed"
    BUSY = "busy"


@dataclass
class MonitorState:
    """Memory-resident loop state. Reset on every process start.

    Attributes:
        last_known_revision: Revision of the baseline or of the most
            recently started reconciliation.
        last_checked_at: When the last poll finished.
        ticks: Polls attempted.
        poll_failures: Polls whose revision query failed.
        reconciliations_started: Handler invocations.
        reconciliations_failed: Handler invocations that raised.
    """

    last_known_revision: Optional[str] = None
    last_checked_at: Optional[datetime] = None
    ticks: int = 0
    poll_failures: int = 0
    reconciliations_started: int = 0
    reconciliations_failed: int = 0


class PollLoop:
    """Poll a RevisionClient on a fixed interval.

    Args:
        client: Source of the latest revision.
        handler: Called once per newly detected revision.
        interval: Seconds between polls.
        path: Monitored subpath ("" for the whole repository).
        log: Logger to use instead of the module logger.
    """

    def __init__(
        self,
        client: RevisionClient,
        handler: ChangeHandler,
        interval: float,
        path: str = "",
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._handler = handler
        self.interval = interval
        self.path = path
        self._log = log or logger
        self.state = MonitorState()
        self.phase = MonitorPhase.INITIALIZING
        self._inflight = threading.Lock()
        self._stop_event = threading.Event()

    @property
    def last_known_revision(self) -> Optional[str]:
        return self.state.last_known_revision

    @property
    def reconciling(self) -> bool:
        """Whether a handler is running right now."""
        return self._inflight.locked()

    def start(self) -> RevisionRecord:
        """Establish the baseline revision and enter RUNNING.

        The baseline never triggers the handler.

        Returns:
            The baseline revision.

        Raises:
            StartupError: The first revision query failed.
        """
        if self.phase is not MonitorPhase.INITIALIZING:
            raise StartupError(f"poll loop already {self.phase.value}")

        try:
            baseline = self._client.fetch_latest(self.path)
        except RevisionError as exc:
            self.phase = MonitorPhase.STOPPED
            self._log.error("Failed to get initial commit: %s", exc)
            raise StartupError(f"failed to get initial commit: {exc}") from exc

        self.state.last_known_revision = baseline.sha
        self.state.last_checked_at = datetime.now(timezone.utc)
        self.phase = MonitorPhase.RUNNING
        self._log.info("Monitoring started. Initial commit: %s", baseline.short_sha)
        if self.path:
            self._log.info("Monitoring path: %s", self.path)
        return baseline

    def tick(self) -> TickOutcome:
        """Poll once and reconcile if the revision changed.

        Query failures and handler failures are logged and absorbed.

        Returns:
            TickOutcome describing what happened.
        """
        if self.phase is not MonitorPhase.RUNNING:
            raise RuntimeError("tick() called before start()")

        if not self._inflight.acquire(blocking=False):
            self._log.warning("Reconciliation still in flight, skipping poll")
            return TickOutcome.BUSY

        try:
            self.state.ticks += 1
            try:
                latest = self._client.fetch_latest(self.path)
            except RevisionError as exc:
                self.state.poll_failures += 1
                self._log.info("Error checking for updates: %s", exc)
                return TickOutcome.QUERY_FAILED
            except Exception:
                self.state.poll_failures += 1
                self._log.exception("Revision query crashed")
                return TickOutcome.QUERY_FAILED
            finally:
                self.state.last_checked_at = datetime.now(timezone.utc)

            if latest.sha == self.state.last_known_revision:
                return TickOutcome.UNCHANGED

            self.state.last_known_revision = latest.sha
            self.state.reconciliations_started += 1
            try:
                self._handler(latest)
            except ReconcileError as exc:
                self.state.reconciliations_failed += 1
                self._log.warning("Reconciliation for %s aborted: %s", latest.short_sha, exc)
                return TickOutcome.HANDLER_FAILED
            except Exception:
                self.state.reconciliations_failed += 1
                self._log.exception("Change handler crashed for %s", latest.short_sha)
                return TickOutcome.HANDLER_FAILED
            return TickOutcome.RECONCILED
        finally:
            self._inflight.release()

    def run(self, max_iterations: int = 0) -> None:
        """Poll until stopped, waiting ``interval`` before each tick.

        Args:
            max_iterations: Stop after N ticks (0 = run until stop()).
        """
        if self.phase is MonitorPhase.INITIALIZING:
            self.start()

        iteration = 0
        try:
            while not self._stop_event.wait(timeout=self.interval):
                iteration += 1
                self.tick()
                if max_iterations and iteration >= max_iterations:
                    break
        finally:
            self.phase = MonitorPhase.STOPPED
            self._log.info("Monitor stopped after %d polls", iteration)

    def stop(self) -> None:
        """Signal the loop to exit after the current tick."""
        self._stop_event.set()
