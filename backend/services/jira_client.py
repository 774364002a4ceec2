"""Jira REST client: authentication, version issue search, issue retrieval."""

from typing import Optional
import logging
import threading
import requests

from services.exceptions import AuthenticationError, IssueTrackerError
from services.models import Issue, parse_worklog_entry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


def _jql_quote(value: str) -> str:
    """Quote a value for use in JQL."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class JiraClient:
    """Thin Jira REST API client used by the sprint sync."""

    SEARCH_PAGE_SIZE = 100
    WORKLOG_PAGE_SIZE = 1000

    def __init__(self, server: str, email: str, token: str, timeout: int = DEFAULT_TIMEOUT):
        self.server = server.rstrip("/")
        self.email = email
        self.token = token
        self.timeout = timeout
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        """Session of the calling thread; requests sessions are not thread-safe."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.auth = (self.email, self.token)
            session.headers.update({"Accept": "application/json"})
            self._local.session = session
        return session

    def _get(self, endpoint: str, params: Optional[dict] = None) -> requests.Response:
        """GET an endpoint; connection problems raise IssueTrackerError."""
        try:
            return self.session.get(
                f"{self.server}{endpoint}",
                params=params,
                timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            raise IssueTrackerError(f"Connection to Jira timed out: {e}", status_code=504) from e
        except requests.exceptions.RequestException as e:
            raise IssueTrackerError(f"Failed to connect to Jira: {e}") from e

    def _request(self, endpoint: str, params: Optional[dict] = None):
        """Make authenticated request to Jira API and return the JSON body."""
        response = self._get(endpoint, params)
        if response.status_code != 200:
            raise IssueTrackerError(
                f"Jira API error {response.status_code} for {endpoint}",
                status_code=response.status_code
            )
        return response.json()

    def authenticate(self) -> dict:
        """Check the credentials by fetching the current user.

        Raises:
            AuthenticationError: Jira rejected the credentials
            IssueTrackerError: Jira could not be reached
        """
        response = self._get("/rest/api/2/myself")

        if response.status_code in (401, 403):
            raise AuthenticationError(f"Jira rejected credentials for {self.email}")

        if response.status_code != 200:
            raise IssueTrackerError(
                f"Jira API error: {response.status_code}",
                status_code=response.status_code
            )

        return response.json()

    def find_issue_keys(self, project_key: str, version_name: str) -> list:
        """Keys of all issues in a project with the given fix version, ordered by key.

        Returns an empty list when nothing matches, including when the
        version does not exist (Jira answers 400 naming the fixVersion field).
        Any other 400, such as an unknown project, raises IssueTrackerError.
        """
        jql = f"project = {_jql_quote(project_key)} AND fixVersion = {_jql_quote(version_name)} ORDER BY key ASC"

        keys = []
        start_at = 0

        while True:
            response = self._get(
                "/rest/api/2/search",
                params={
                    "jql": jql,
                    "fields": "key",
                    "startAt": start_at,
                    "maxResults": self.SEARCH_PAGE_SIZE
                }
            )

            if response.status_code == 400:
                # Only an unknown fix version means "no issues"; a bad project or query must fail
                if "'fixVersion'" not in response.text:
                    raise IssueTrackerError(
                        f"Jira rejected search in {project_key}: {response.text[:200]}",
                        status_code=400
                    )
                logger.info(f"Jira rejected search for version '{version_name}' in {project_key}: "
                            f"{response.text[:200]}")
                return []

            if response.status_code != 200:
                raise IssueTrackerError(
                    f"Jira search failed with {response.status_code}",
                    status_code=response.status_code
                )

            data = response.json()
            issues = data.get("issues", [])
            keys.extend(issue["key"] for issue in issues)

            start_at += len(issues)
            if not issues or start_at >= data.get("total", 0):
                break

        return keys

    def fetch_issue(self, issue_key: str) -> Optional[Issue]:
        """Fetch a full issue, or None if Jira does not know it."""
        logger.info(f"Fetching issue {issue_key}")
        response = self._get(f"/rest/api/2/issue/{issue_key}", params={"fields": "*all"})

        if response.status_code == 404:
            return None

        if response.status_code != 200:
            raise IssueTrackerError(
                f"Failed to fetch issue {issue_key}: {response.status_code}",
                status_code=response.status_code
            )

        issue = Issue.from_jira(response.json())
        if issue.worklog_truncated:
            issue.worklogs = self._fetch_worklogs(issue_key)
            issue.worklog_truncated = False

        return issue

    def _fetch_worklogs(self, issue_key: str) -> list:
        """All worklog entries of an issue (the issue payload embeds only the first 20)."""
        entries = []
        start_at = 0

        while True:
            data = self._request(
                f"/rest/api/2/issue/{issue_key}/worklog",
                params={"startAt": start_at, "maxResults": self.WORKLOG_PAGE_SIZE}
            )

            worklogs = data.get("worklogs", [])
            for raw in worklogs:
                entry = parse_worklog_entry(issue_key, raw)
                if entry is not None:
                    entries.append(entry)

            start_at += len(worklogs)
            if not worklogs or start_at >= data.get("total", 0):
                break

        return entries
