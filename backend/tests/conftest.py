"""Shared fixtures for burndown sync tests."""

import os
import sys
from datetime import date, timedelta
from unittest.mock import Mock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from services.models import EffortMode, Issue, Sprint, SprintEffort, TeamSyncConfig


@pytest.fixture
def mock_jira_credentials():
    """Mock Jira credentials for testing."""
    return {
        "server": "https://test.atlassian.net",
        "email": "test@example.com",
        "token": "test-token-123"
    }


@pytest.fixture
def jira_headers(mock_jira_credentials):
    """Request headers carrying Jira credentials."""
    return {
        "X-Jira-Server": mock_jira_credentials["server"],
        "X-Jira-Email": mock_jira_credentials["email"],
        "X-Jira-Token": mock_jira_credentials["token"]
    }


@pytest.fixture
def hours_config():
    """Team measuring effort in original estimate hours, no unplanned tracking."""
    return TeamSyncConfig(
        project_key="PROJ",
        version_name_scheme="Sprint {0}",
        effort_mode=EffortMode.HOURS
    )


@pytest.fixture
def story_points_config():
    """Team measuring story points and tracking unplanned work via labels."""
    return TeamSyncConfig(
        project_key="PROJ",
        version_name_scheme="Sprint {0}",
        effort_mode=EffortMode.STORY_POINTS,
        story_points_field_id="customfield_10002",
        unplanned=True,
        unplanned_flag_field_id="customfield_10100",
        unplanned_flag_name="Unplanned"
    )


@pytest.fixture
def sprint_days():
    """Ten consecutive sprint days starting 2024-01-01."""
    return [date(2024, 1, 1) + timedelta(days=offset) for offset in range(10)]


@pytest.fixture
def sample_sprint(sprint_days):
    """Sprint 7 with leftover values from a previous sync."""
    return Sprint(
        id="7",
        planned=99.0,
        effort=[SprintEffort(date=day, burned=4.0, unplanned=2.0) for day in sprint_days]
    )


@pytest.fixture
def sample_issue_completed():
    """Resolved story with estimate and story points (Jira REST v2 shape)."""
    return {
        "key": "PROJ-123",
        "fields": {
            "summary": "Implement feature X",
            "issuetype": {"name": "Story", "subtask": False},
            "status": {"name": "Done"},
            "resolution": {"name": "Done"},
            "resolutiondate": "2024-01-03T15:30:00.000+0000",
            "timetracking": {"originalEstimate": "3h", "originalEstimateSeconds": 10800},
            "customfield_10002": "5",
            "worklog": {"startAt": 0, "maxResults": 20, "total": 0, "worklogs": []}
        }
    }


@pytest.fixture
def sample_issue_incomplete():
    """Unresolved issue."""
    return {
        "key": "PROJ-124",
        "fields": {
            "summary": "Fix bug Y",
            "issuetype": {"name": "Bug", "subtask": False},
            "status": {"name": "In Progress"},
            "resolution": None,
            "resolutiondate": None,
            "timetracking": {"originalEstimateSeconds": 7200},
            "customfield_10002": "3,5"
        }
    }


@pytest.fixture
def sample_issue_unplanned():
    """Resolved issue flagged unplanned, with work logged over two days."""
    return {
        "key": "PROJ-125",
        "fields": {
            "summary": "Hotfix production outage",
            "issuetype": {"name": "Bug", "subtask": False},
            "status": {"name": "Done"},
            "resolution": {"name": "Fixed"},
            "resolutiondate": "2024-01-05T18:00:00.000+0000",
            "timetracking": {},
            "customfield_10002": "2",
            "customfield_10100": [{"value": "UNPLANNED", "id": "10200"}],
            "worklog": {
                "startAt": 0,
                "maxResults": 20,
                "total": 3,
                "worklogs": [
                    {"id": "1", "started": "2024-01-04T09:00:00.000+0000", "timeSpentSeconds": 1800},
                    {"id": "2", "started": "2024-01-04T14:00:00.000+0000", "timeSpentSeconds": 2400},
                    {"id": "3", "started": "2024-01-05T10:00:00.000+0000", "timeSpentSeconds": 7200}
                ]
            }
        }
    }


@pytest.fixture
def sample_issue_legacy():
    """Resolved issue in the REST 2.0.alpha shape with wrapped field values."""
    return {
        "key": "PROJ-126",
        "fields": {
            "resolution": {
                "name": "resolution",
                "type": "com.atlassian.jira.issue.resolution.Resolution",
                "value": {"name": "Fixed"}
            },
            "resolutiondate": {
                "name": "resolutiondate",
                "type": "java.util.Date",
                "value": "2024-01-02T11:00:00.000+0100"
            },
            "timetracking": {
                "name": "timetracking",
                "type": "com.atlassian.jira.issue.fields.TimeTrackingSystemField",
                "value": {"timeoriginalestimate": 240, "timeestimate": 0}
            },
            "customfield_10002": {"name": "Story Points", "type": "java.lang.Double", "value": "1,5"},
            "worklog": {
                "name": "worklog",
                "type": "worklog",
                "value": [
                    {"started": "2024-01-02T09:00:00.000+0100", "minutesSpent": 20},
                    {"started": "2024-01-02T10:00:00.000+0100", "minutesSpent": 20},
                    {"started": "2024-01-02T11:00:00.000+0100", "minutesSpent": 20}
                ]
            }
        }
    }


@pytest.fixture
def make_issue():
    """Factory for parsed issues."""
    def _make(key="PROJ-1", resolved_at=None, estimate_minutes=None, custom_fields=None, worklogs=None):
        return Issue(
            key=key,
            resolution="Done" if resolved_at else None,
            resolution_date=resolved_at,
            original_estimate_minutes=estimate_minutes,
            custom_fields=custom_fields or {},
            worklogs=worklogs or []
        )
    return _make


@pytest.fixture
def mock_client():
    """Jira client double serving issues from a dict."""
    def _make(issues, keys=None):
        client = Mock()
        client.find_issue_keys.return_value = list(keys if keys is not None else issues.keys())
        client.fetch_issue.side_effect = lambda key: issues.get(key)
        return client
    return _make


@pytest.fixture
def app(tmp_path, monkeypatch):
    """Create Flask test app with a teams-sync config."""
    config_file = tmp_path / "teams-sync.json"
    config_file.write_text(
        '{"teams": ['
        '{"id": "alpha", "name": "Team Alpha", "projectKey": "ALPHA",'
        ' "versionNameScheme": "Sprint {0}", "effortMode": "HOURS"},'
        '{"id": "broken", "projectKey": "BROKEN"}'
        ']}'
    )
    monkeypatch.setenv("TEAMS_SYNC_CONFIG", str(config_file))

    from app import create_app
    app = create_app()
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()
