"""Shared test fixtures for configpilot."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from configpilot.models import ReconciliationContext, RevisionRecord


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Data directory that does not exist yet."""
    return tmp_path / "data"


@pytest.fixture
def ctx() -> ReconciliationContext:
    """Context for a repository monitored on its deploy/ subpath."""
    return ReconciliationContext(
        owner="acme",
        repo="infra",
        monitor_path="deploy",
        age_key="AGE-SECRET-KEY-TEST",
        script="echo hello",
        github_token="ghp_secret123",
    )


@pytest.fixture
def revision():
    """Factory for RevisionRecords with a given sha."""

    def make(sha: str, message: str = "update") -> RevisionRecord:
        return RevisionRecord(
            sha=sha,
            author_name="Dev",
            author_email="dev@example.com",
            message=message,
            html_url=f"https://github.com/acme/infra/commit/{sha}",
        )

    return make


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A complete config.yaml using the camelCase keys."""
    config = {
        "owner": "acme",
        "repo": "infra",
        "monitorPath": "deploy/",
        "script": "echo deployed",
        "ageSecret": "AGE-SECRET-KEY-TEST",
        "githubToken": "ghp_secret123",
        "interval": 30,
        "dataDir": str(tmp_path / "data"),
        "settleDelay": 0,
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump(config, default_flow_style=False))
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host environment overrides out of the tests."""
    for var in ("CONFIG_PATH", "GITHUB_TOKEN", "LOG_FILE_PATH", "LOG_LEVEL", "LOG_TO_FILE"):
        monkeypatch.delenv(var, raising=False)
