"""
Pydantic models for configpilot's configuration and data.

The configuration keeps the camelCase keys of the YAML file format
(``monitorPath``, ``ageSecret``...) as aliases; snake_case names are
accepted as well.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RevisionRecord(BaseModel):
    """A single commit as reported by the remote repository."""

    model_config = ConfigDict(frozen=True)

    sha: str
    author_name: str = ""
    author_email: str = ""
    timestamp: Optional[datetime] = None
    message: str = ""
    html_url: str = ""

    @property
    def short_sha(self) -> str:
        """Abbreviated identifier for log lines."""
        return self.sha[:7]

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "RevisionRecord":
        """Build a record from a GitHub commits API entry.

        Args:
            payload: One element of the ``/repos/{o}/{r}/commits`` list.

        Returns:
            RevisionRecord.
        """
        commit = payload.get("commit") or {}
        author = commit.get("author") or {}
        return cls(
            sha=payload["sha"],
            author_name=author.get("name") or "",
            author_email=author.get("email") or "",
            timestamp=author.get("date"),
            message=commit.get("message") or "",
            html_url=payload.get("html_url") or "",
        )


class LoggingConfig(BaseModel):
    """Where and how verbosely to log."""

    model_config = ConfigDict(populate_by_name=True)

    log_file_path: Optional[Path] = Field(default=None, alias="logFilePath")
    log_level: str = Field(default="info", alias="logLevel")
    log_to_file: bool = Field(default=False, alias="logToFile")


class ReconciliationContext(BaseModel):
    """Read-only snapshot of everything one reconciliation needs."""

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    monitor_path: str = ""
    age_key: str = Field(default="", repr=False)
    script: str = ""
    github_token: str = Field(default="", repr=False)
    clone_host: str = "github.com"

    @property
    def clone_url(self) -> str:
        """HTTPS clone URL with the access token embedded."""
        return f"https://git:{self.github_token}@{self.clone_host}/{self.owner}/{self.repo}.git"

    def redact(self, text: str) -> str:
        """Strip the access token out of captured output."""
        if self.github_token:
            return text.replace(self.github_token, "***")
        return text


class PilotConfig(BaseModel):
    """Top-level configuration loaded from config.yaml."""

    model_config = ConfigDict(populate_by_name=True)

    owner: str = ""
    repo: str = ""
    monitor_path: str = Field(default="", alias="monitorPath")
    script: str = ""
    age_key: str = Field(default="", alias="ageSecret", repr=False)
    github_token: str = Field(default="", alias="githubToken", repr=False)
    interval: int = 60
    data_dir: Path = Field(default=Path("data"), alias="dataDir")
    settle_delay: float = Field(default=5.0, alias="settleDelay")
    checkout_timeout: Optional[float] = Field(default=None, alias="checkoutTimeout")
    script_timeout: Optional[float] = Field(default=None, alias="scriptTimeout")
    api_url: str = Field(default="https://api.github.com", alias="apiUrl")
    clone_host: str = Field(default="github.com", alias="cloneHost")
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("monitor_path", "script", "age_key", "github_token", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("monitor_path")
    @classmethod
    def _strip_slashes(cls, value: str) -> str:
        return value.strip("/")

    @field_validator("interval")
    @classmethod
    def _positive_interval(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("interval must be a positive number of seconds")
        return value

    @field_validator("settle_delay")
    @classmethod
    def _non_negative_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("settleDelay cannot be negative")
        return value

    def context(self) -> ReconciliationContext:
        """Snapshot the fields the reconciliation pipeline reads."""
        return ReconciliationContext(
            owner=self.owner,
            repo=self.repo,
            monitor_path=self.monitor_path,
            age_key=self.age_key,
            script=self.script,
            github_token=self.github_token,
            clone_host=self.clone_host,
        )
