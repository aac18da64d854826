"""
RevisionClient: asks GitHub for the newest commit on a path.

Stateless: every call is a fresh query against the commits API. Only
the first (newest) entry of the response is used.
"""

from __future__ import annotations

import logging
from typing import Optional

import requests

from .errors import RevisionNotFoundError, TransientError
from .models import RevisionRecord

logger = logging.getLogger("configpilot.github")

DEFAULT_API_URL = "https://api.github.com"
REQUEST_TIMEOUT = 10


class RevisionClient:
    """Query the latest revision of one repository.

    Args:
        token: Personal access token sent with every request.
        owner: Repository owner.
        repo: Repository name.
        api_url: API base URL (GitHub Enterprise installs differ).
        session: Optional requests session, mostly for tests.
        log: Logger to use instead of the module logger.
    """

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        api_url: str = DEFAULT_API_URL,
        session: Optional[requests.Session] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._token = token
        self.owner = owner
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        self._http = session or requests
        self._log = log or logger

    @property
    def commits_url(self) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.repo}/commits"

    def fetch_latest(self, path: str = "") -> RevisionRecord:
        """Return the newest commit touching ``path``.

        Args:
            path: Subpath scope. Empty string means the whole repository.

        Returns:
            RevisionRecord for the newest matching commit.

        Raises:
            TransientError: Network failure, non-200 status, or a body
                that is not a commit list.
            RevisionNotFoundError: No commit touches the scope.
        """
        params = {"per_page": 1}
        if path:
            params["path"] = path
        headers = {
            "Authorization": f"token {self._token}",
            "Accept": "application/vnd.github.v3+json",
        }

        try:
            resp = self._http.get(
                self.commits_url, params=params, headers=headers, timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise TransientError(f"failed to send request: {exc}") from exc

        if resp.status_code != 200:
            raise TransientError(
                f"GitHub API returned status {resp.status_code}: {resp.text}"
            )

        try:
            commits = resp.json()
        except ValueError as exc:
            raise TransientError(f"failed to decode response: {exc}") from exc

        if not isinstance(commits, list):
            raise TransientError("unexpected response: expected a list of commits")
        if not commits:
            scope = path or "repository"
            raise RevisionNotFoundError(f"no commits found for {scope}")

        try:
            record = RevisionRecord.from_api(commits[0])
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise TransientError(f"malformed commit in response: {exc}") from exc

        self._log.debug("Latest revision for '%s': %s", path or "/", record.short_sha)
        return record
