"""
Reconciler: one full fetch, stage, decrypt, execute pass.

Steps run strictly in order and the first failure abandons the rest:

1. prepare     ensure the data dir, wipe checkout/staging/script
2. settle      fixed pause so a previous run can finish exiting
3. checkout    fresh ``git clone``
4. stage       move the monitored subpath into the staging area
5. discard     delete the rest of the clone
6. decrypt     best-effort SOPS decryption of the staged tree
7. execute     generate and run the deployment script
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from .decrypt import DecryptReport, SecretResolver
from .errors import ReconcileError
from .executor import Executor
from .models import ReconciliationContext, RevisionRecord
from .process import CommandResult
from .workspace import Workspace

logger = logging.getLogger("configpilot.reconciler")

DEFAULT_SETTLE_DELAY = 5.0


@dataclass
class ReconcileReport:
    """What a successful reconciliation did.

    Attributes:
        steps: Names of the steps that completed, in order.
        decrypt: Per-file decryption outcomes.
        execution: Result of the deployment script.
        duration_s: Wall time of the whole pass.
    """

    steps: list[str] = field(default_factory=list)
    decrypt: Optional[DecryptReport] = None
    execution: Optional[CommandResult] = None
    duration_s: float = 0.0


class Reconciler:
    """Drive Workspace, SecretResolver and Executor in sequence.

    Args:
        workspace: Local checkout and staging manager.
        resolver: Secret decryption pass.
        executor: Deployment script runner.
        settle_delay: Seconds to wait before cloning.
        sleep: Sleep function, replaceable in tests.
        log: Logger to use instead of the module logger.
    """

    def __init__(
        self,
        workspace: Workspace,
        resolver: SecretResolver,
        executor: Executor,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.workspace = workspace
        self.resolver = resolver
        self.executor = executor
        self.settle_delay = settle_delay
        self._sleep = sleep
        self._log = log or logger

    def reconcile(self, ctx: ReconciliationContext) -> ReconcileReport:
        """Run the full pipeline once.

        Args:
            ctx: Repository coordinates, subpath, key and script.

        Returns:
            ReconcileReport for the completed run.

        Raises:
            ReconcileError: The subclass names the step that failed.
        """
        report = ReconcileReport()
        start = time.monotonic()

        self.workspace.prepare(ctx)
        report.steps.append("prepare")

        if self.settle_delay > 0:
            self._sleep(self.settle_delay)

        self.workspace.checkout(ctx)
        report.steps.append("checkout")

        staging = self.workspace.stage(ctx)
        report.steps.append("stage")

        self.workspace.discard_checkout(ctx)
        report.steps.append("discard")

        report.decrypt = self.resolver.decrypt_all(staging, ctx.age_key)
        report.steps.append("decrypt")
        self._log.debug(
            "Decrypt pass: %d decrypted, %d skipped",
            len(report.decrypt.decrypted), len(report.decrypt.skipped),
        )

        report.execution = self.executor.run(staging, ctx.script)
        report.steps.append("execute")

        report.duration_s = time.monotonic() - start
        self._log.info("Reconciliation finished in %.1fs", report.duration_s)
        return report


def reconcile_handler(
    reconciler: Reconciler,
    ctx: ReconciliationContext,
    log: Optional[logging.Logger] = None,
) -> Callable[[RevisionRecord], None]:
    """Build the poll loop's change handler for one repository.

    The handler logs the new commit and reconciles. A ReconcileError is
    logged with its captured output and then re-raised so the loop can
    count the failure.
    """
    log = log or logger

    def handle(revision: RevisionRecord) -> None:
        log.info(
            "New commit detected sha=%s author=%s commit_msg=%r",
            revision.short_sha, revision.author_name, revision.message,
        )
        try:
            reconciler.reconcile(ctx)
        except ReconcileError as exc:
            log.error("Reconciliation of %s failed at %s: %s", revision.short_sha, exc.step, exc)
            if exc.output:
                log.error("Captured output:\n%s", exc.output)
            raise

    return handle
