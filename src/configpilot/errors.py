"""Exception hierarchy shared by every configpilot component."""

from __future__ import annotations


class PilotError(Exception):
    """Base class for all configpilot errors."""


class ConfigError(PilotError):
    """Raised when the configuration file is missing or invalid."""


class StartupError(PilotError):
    """Raised when the baseline revision cannot be established."""


class RevisionError(PilotError):
    """Raised when the latest revision cannot be determined."""


class TransientError(RevisionError):
    """A single revision query failed (network, auth, bad response)."""


class RevisionNotFoundError(RevisionError):
    """The query succeeded but no revision touches the path scope."""


class ReconcileError(PilotError):
    """A reconciliation step failed and the remaining steps were skipped.

    Attributes:
        output: Captured diagnostic output of the failed step, if any.
    """

    step = "reconcile"

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class WorkspaceError(ReconcileError):
    """The previous checkout or staging area could not be cleared."""

    step = "prepare"


class CheckoutError(ReconcileError):
    """Cloning the repository failed."""

    step = "checkout"


class StagingError(ReconcileError):
    """The monitored subpath could not be moved into the staging area."""

    step = "stage"


class DecryptError(ReconcileError):
    """The staging tree could not be traversed for decryption."""

    step = "decrypt"


class ExecutionError(ReconcileError):
    """The deployment script could not be launched or exited non-zero."""

    step = "execute"
