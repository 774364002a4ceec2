"""Jira to sprint burndown synchronization.

A sync always recomputes the whole sprint: the planned goal is recalculated
from the version's issues, the day buckets are reset and every resolved
issue's effort is added to the bucket of the day it was resolved (or, for
unplanned issues, to the days work was logged).
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Optional
import logging

from services.effort import DayBucketMatcher, EffortValuator, UnplannedClassifier, WorklogAggregator
from services.exceptions import SyncFailure
from services.jira_client import JiraClient
from services.models import Issue, Sprint, TeamSyncConfig, calendar_day

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncEvent:
    """Something skipped during a sync that did not make it fail."""

    NO_ISSUES = "no_issues"
    MISSING_ISSUE = "missing_issue"
    UNRESOLVED = "unresolved"
    BUCKET_OUT_OF_RANGE = "bucket_out_of_range"

    kind: str
    message: str
    issue_key: Optional[str] = None
    day: Optional[date] = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "issueKey": self.issue_key,
            "date": self.day.isoformat() if self.day else None
        }


@dataclass
class SyncResult:
    """Outcome of a successful sync."""

    sprint: Sprint
    version: str
    issue_keys: list = field(default_factory=list)
    events: list = field(default_factory=list)

    def events_of(self, kind: str) -> list:
        return [event for event in self.events if event.kind == kind]

    def to_dict(self) -> dict:
        return {
            "sprint": self.sprint.to_dict(),
            "version": self.version,
            "issueKeys": list(self.issue_keys),
            "events": [event.to_dict() for event in self.events]
        }


class SprintSyncService:
    """Synchronizes Jira issue effort into a sprint's day buckets."""

    def __init__(self, client: JiraClient, max_workers: int = 1):
        self.client = client
        self.max_workers = max(1, max_workers)
        self.valuator = EffortValuator()
        self.classifier = UnplannedClassifier()
        self.worklogs = WorklogAggregator()
        self.matcher = DayBucketMatcher()

    def sync_sprint(self, config: TeamSyncConfig, sprint: Sprint) -> SyncResult:
        """Recompute goal and burned/unplanned effort of a sprint from Jira.

        Raises:
            SyncFailure: anything went wrong; buckets already reset or
                updated stay as they are
        """
        try:
            return self._sync(config, sprint)
        except SyncFailure:
            raise
        except Exception as e:
            logger.warning(f"Sync of sprint {sprint.id} failed: {e}")
            raise SyncFailure(sprint.id, str(e)) from e

    def _sync(self, config: TeamSyncConfig, sprint: Sprint) -> SyncResult:
        version = config.version_name(sprint.id)
        result = SyncResult(sprint=sprint, version=version)

        issue_keys = self.client.find_issue_keys(config.project_key, version)
        result.issue_keys = list(issue_keys)

        if not issue_keys:
            message = f"No issues found for sprint {sprint.id} (version '{version}')"
            logger.info(message)
            result.events.append(SyncEvent(SyncEvent.NO_ISSUES, message))

        issues = self._fetch_issues(issue_keys, result)

        sprint.planned = self._calculate_goal(config, issues)

        self.matcher.reset(sprint.effort, config.unplanned)
        for issue in issues:
            self._apply_issue(config, sprint, issue, result)

        return result

    def _fetch_issues(self, issue_keys: list, result: SyncResult) -> list:
        """Fetch issues in key order, dropping the ones Jira does not return."""
        if self.max_workers > 1 and len(issue_keys) > 1:
            # map() yields in submission order and re-raises the first failure by key order
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                fetched = list(executor.map(self.client.fetch_issue, issue_keys))
        else:
            fetched = [self.client.fetch_issue(key) for key in issue_keys]

        issues = []
        for key, issue in zip(issue_keys, fetched):
            if issue is None:
                message = f"Issue {key} could not be retrieved, skipping"
                logger.info(message)
                result.events.append(SyncEvent(SyncEvent.MISSING_ISSUE, message, issue_key=key))
                continue
            issues.append(issue)

        return issues

    def _is_unplanned(self, config: TeamSyncConfig, issue: Issue) -> bool:
        return config.unplanned and self.classifier.is_unplanned(config, issue)

    def _calculate_goal(self, config: TeamSyncConfig, issues: list) -> float:
        """Sum of planned effort over all issues that are not unplanned."""
        return sum(
            (self.valuator.value(config, issue) for issue in issues if not self._is_unplanned(config, issue)),
            0.0
        )

    def _apply_issue(self, config: TeamSyncConfig, sprint: Sprint, issue: Issue, result: SyncResult):
        if not issue.is_resolved:
            logger.debug(f"Issue {issue.key} is not resolved, no effort burned")
            result.events.append(SyncEvent(
                SyncEvent.UNRESOLVED, f"Issue {issue.key} is not resolved", issue_key=issue.key
            ))
            return

        if self._is_unplanned(config, issue):
            for day, hours in self.worklogs.daily_hours(issue).items():
                self._apply(sprint, day, 0.0, hours, issue.key, result)
        else:
            planned = self.valuator.value(config, issue)
            self._apply(sprint, issue.resolution_date, planned, 0.0, issue.key, result)

    def _apply(self, sprint: Sprint, day, planned: float, unplanned: float, issue_key: str, result: SyncResult):
        if self.matcher.apply(sprint.effort, day, planned, unplanned, sprint.id, issue_key):
            return

        day = calendar_day(day)
        result.events.append(SyncEvent(
            SyncEvent.BUCKET_OUT_OF_RANGE,
            f"Effort of issue {issue_key} on {day.isoformat()} is outside sprint {sprint.id}, discarded",
            issue_key=issue_key,
            day=day
        ))


def connect(server: str, email: str, token: str, max_workers: int = 1) -> SprintSyncService:
    """Log in to Jira and return a sync service bound to that session.

    Raises:
        AuthenticationError: Jira rejected the credentials
        IssueTrackerError: Jira could not be reached
    """
    client = JiraClient(server, email, token)
    user = client.authenticate()
    logger.info(f"Authenticated to {client.server} as {user.get('displayName', email)}")
    return SprintSyncService(client, max_workers=max_workers)
