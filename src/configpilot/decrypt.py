"""
SecretResolver: best-effort in-place decryption of the staging tree.

Every regular file is handed to ``sops -d -i`` with the age key in
``SOPS_AGE_KEY``. A file sops refuses is taken to be plaintext and
left alone; only a failure to walk the tree itself is an error.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from .errors import DecryptError
from .process import Runner, run_command

logger = logging.getLogger("configpilot.decrypt")

SOPS_BINARY = "sops"
KEY_ENV_VAR = "SOPS_AGE_KEY"
EXCLUDE_DIRS = {".git"}


class DecryptOutcome(str, Enum):
    """What happened to one file."""

    DECRYPTED = "decrypted"
    SKIPPED = "skipped"


@dataclass
class DecryptReport:
    """Per-file outcomes of a decryption pass.

    Attributes:
        decrypted: Files rewritten in place (relative to the staging root).
        skipped: Files sops did not accept, assumed not encrypted.
    """

    decrypted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.decrypted) + len(self.skipped)

    def record(self, name: str, outcome: DecryptOutcome) -> None:
        if outcome is DecryptOutcome.DECRYPTED:
            self.decrypted.append(name)
        else:
            self.skipped.append(name)


def _raise(exc: OSError) -> None:
    raise exc


class SecretResolver:
    """Decrypt SOPS files found under a directory.

    Args:
        runner: Subprocess capability used to invoke sops.
        binary: sops executable name or path.
        log: Logger to use instead of the module logger.
    """

    def __init__(
        self,
        runner: Runner = run_command,
        binary: str = SOPS_BINARY,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._runner = runner
        self._binary = binary
        self._log = log or logger

    def decrypt_file(self, path: Path, key: str) -> DecryptOutcome:
        """Try to decrypt one file in place.

        Returns:
            DECRYPTED if sops rewrote it, SKIPPED otherwise.
        """
        env = os.environ.copy()
        env[KEY_ENV_VAR] = key
        result = self._runner([self._binary, "-d", "-i", str(path)], env=env)
        return DecryptOutcome.DECRYPTED if result.ok else DecryptOutcome.SKIPPED

    def decrypt_all(self, root: Path, key: str) -> DecryptReport:
        """Attempt decryption of every regular file below ``root``.

        Args:
            root: Staging directory.
            key: age secret key.

        Returns:
            DecryptReport with one entry per file visited.

        Raises:
            DecryptError: The tree could not be read.
        """
        root = Path(root)
        report = DecryptReport()

        if shutil.which(self._binary) is None and self._runner is run_command:
            self._log.warning("%s not found on PATH; no files will be decrypted", self._binary)

        try:
            for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
                dirnames[:] = sorted(d for d in dirnames if d not in EXCLUDE_DIRS)
                for fname in sorted(filenames):
                    path = Path(dirpath) / fname
                    if path.is_symlink() or not path.is_file():
                        continue
                    name = path.relative_to(root).as_posix()
                    outcome = self.decrypt_file(path, key)
                    report.record(name, outcome)
                    if outcome is DecryptOutcome.DECRYPTED:
                        self._log.info("File decrypted: %s", name)
        except OSError as exc:
            raise DecryptError(f"cannot read staging tree {root}: {exc}") from exc

        return report
