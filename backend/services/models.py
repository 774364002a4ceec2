"""Sprint burndown model and Jira issue representation."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Union
import logging

from services.exceptions import ConfigurationError, DuplicateBucketDate

logger = logging.getLogger(__name__)

# Jira formats: "2024-10-31T12:11:56.289-0400" or "2024-10-31T12:11:56.289+0000"
JIRA_DATE_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d"
]

# Issue fields parsed into dedicated Issue attributes; everything else is
# kept as a generic field record.
STRUCTURED_FIELDS = {"resolution", "resolutiondate", "timetracking", "timeoriginalestimate", "worklog"}


def parse_jira_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a Jira date string, returning None if empty or unparsable."""
    if not value:
        return None

    for fmt in JIRA_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue

    return None


def calendar_day(value: Union[date, datetime]) -> date:
    """Strip the time of day from a date or datetime."""
    if isinstance(value, datetime):
        return value.date()
    return value


def _unwrap_legacy(record: Any) -> Any:
    """Unwrap a field from the old REST format.

    The 2.0.alpha API wraps every field as
    ``{"name": ..., "type": ..., "value": ...}``; the current API returns
    the value directly.
    """
    if isinstance(record, dict) and "value" in record and "type" in record and "name" in record:
        return record["value"]
    return record


class EffortMode(Enum):
    """How an issue's planned effort is measured."""

    HOURS = "HOURS"
    STORY_POINTS = "STORY_POINTS"

    @classmethod
    def parse(cls, value: Union[str, "EffortMode"]) -> "EffortMode":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().replace("-", "_").upper()
        if normalized == "STORYPOINTS":
            normalized = "STORY_POINTS"
        try:
            return cls(normalized)
        except ValueError:
            raise ConfigurationError(f"Unknown effort mode: {value!r}") from None


@dataclass(frozen=True)
class TeamSyncConfig:
    """Per-team policy for turning Jira issues into sprint effort."""

    project_key: str
    version_name_scheme: str
    effort_mode: EffortMode = EffortMode.HOURS
    story_points_field_id: Optional[str] = None
    unplanned: bool = False
    unplanned_flag_field_id: Optional[str] = None
    unplanned_flag_name: Optional[str] = None
    team_id: Optional[str] = None
    name: Optional[str] = None

    def version_name(self, sprint_id: str) -> str:
        """Jira version name for a sprint, e.g. "Sprint {0}" -> "Sprint 7"."""
        return self.version_name_scheme.format(sprint_id)

    @classmethod
    def from_dict(cls, data: dict) -> "TeamSyncConfig":
        """Build a config from the camelCase JSON shape used in teams-sync.json.

        Raises:
            ConfigurationError: required keys are missing or inconsistent
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Team sync config must be an object")

        project_key = data.get("projectKey")
        scheme = data.get("versionNameScheme")
        if not project_key or not scheme:
            raise ConfigurationError("Missing required fields: projectKey, versionNameScheme")

        try:
            scheme.format("0")
        except (IndexError, KeyError, ValueError) as e:
            raise ConfigurationError(f"Invalid versionNameScheme {scheme!r}: {e}") from None

        unplanned = data.get("unplanned", False)
        if not isinstance(unplanned, bool):
            raise ConfigurationError(f"unplanned must be true or false, got {unplanned!r}")

        config = cls(
            project_key=project_key,
            version_name_scheme=scheme,
            effort_mode=EffortMode.parse(data.get("effortMode", EffortMode.HOURS)),
            story_points_field_id=data.get("storyPointsFieldId"),
            unplanned=unplanned,
            unplanned_flag_field_id=data.get("unplannedFlagFieldId"),
            unplanned_flag_name=data.get("unplannedFlagName"),
            team_id=str(data["id"]) if data.get("id") is not None else None,
            name=data.get("name")
        )

        if config.effort_mode is EffortMode.STORY_POINTS and not config.story_points_field_id:
            raise ConfigurationError("storyPointsFieldId is required for effortMode STORY_POINTS")
        if config.unplanned and not (config.unplanned_flag_field_id and config.unplanned_flag_name):
            raise ConfigurationError(
                "unplannedFlagFieldId and unplannedFlagName are required when unplanned tracking is on"
            )

        return config

    def to_dict(self) -> dict:
        return {
            "id": self.team_id,
            "name": self.name,
            "projectKey": self.project_key,
            "versionNameScheme": self.version_name_scheme,
            "effortMode": self.effort_mode.value,
            "storyPointsFieldId": self.story_points_field_id,
            "unplanned": self.unplanned,
            "unplannedFlagFieldId": self.unplanned_flag_field_id,
            "unplannedFlagName": self.unplanned_flag_name
        }


@dataclass
class SprintEffort:
    """Effort completed on one sprint day."""

    date: date
    burned: float = 0.0
    unplanned: float = 0.0

    @property
    def day(self) -> date:
        return calendar_day(self.date)


@dataclass
class Sprint:
    """A sprint with one effort bucket per day.

    Buckets are created by the owner of the sprint model; syncing only
    updates them.
    """

    id: str
    planned: float = 0.0
    effort: list = field(default_factory=list)

    def __post_init__(self):
        self.id = str(self.id)
        seen = set()
        for bucket in self.effort:
            if bucket.day in seen:
                raise DuplicateBucketDate(bucket.day)
            seen.add(bucket.day)

    @classmethod
    def from_dict(cls, sprint_id: str, data: dict) -> "Sprint":
        """Build a sprint from ``{"planned": n, "days": [{"date", "burned", "unplanned"}]}``."""
        if not isinstance(data, dict):
            raise ConfigurationError("Sprint must be an object")

        days = data.get("days")
        if not isinstance(days, list):
            raise ConfigurationError("Sprint requires a list of days")

        effort = []
        for day in days:
            parsed = parse_jira_date(day.get("date")) if isinstance(day, dict) else None
            if parsed is None:
                raise ConfigurationError(f"Invalid sprint day: {day!r}")
            try:
                effort.append(SprintEffort(
                    date=parsed.date(),
                    burned=float(day.get("burned") or 0),
                    unplanned=float(day.get("unplanned") or 0)
                ))
            except (TypeError, ValueError):
                raise ConfigurationError(f"Invalid effort values for sprint day {day.get('date')}") from None

        try:
            planned = float(data.get("planned") or 0)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid planned value: {data.get('planned')!r}") from None

        return cls(id=sprint_id, planned=planned, effort=effort)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "planned": self.planned,
            "days": [
                {
                    "date": bucket.day.isoformat(),
                    "burned": bucket.burned,
                    "unplanned": bucket.unplanned
                }
                for bucket in self.effort
            ]
        }


@dataclass(frozen=True)
class WorklogEntry:
    """Time logged on an issue, starting at ``started``."""

    started: datetime
    minutes_spent: float


@dataclass(frozen=True)
class FieldValue:
    """Tagged custom field value: ``numeric``, ``labels`` or ``absent``.

    ``numeric`` holds the raw scalar (usually a locale formatted string),
    ``labels`` holds a tuple of label strings.
    """

    kind: str
    payload: Any = None

    NUMERIC = "numeric"
    LABELS = "labels"
    ABSENT = "absent"

    @classmethod
    def numeric(cls, raw) -> "FieldValue":
        return cls(cls.NUMERIC, raw)

    @classmethod
    def labels(cls, values) -> "FieldValue":
        return cls(cls.LABELS, tuple(values))

    @classmethod
    def absent(cls) -> "FieldValue":
        return cls(cls.ABSENT)

    @property
    def is_absent(self) -> bool:
        return self.kind == self.ABSENT


@dataclass
class Issue:
    """The parts of a Jira issue that matter for the burndown."""

    key: str
    resolution: Optional[str] = None
    resolution_date: Optional[datetime] = None
    original_estimate_minutes: Optional[float] = None
    custom_fields: dict = field(default_factory=dict)
    worklogs: list = field(default_factory=list)
    worklog_truncated: bool = False

    @property
    def is_resolved(self) -> bool:
        return self.resolution is not None and self.resolution_date is not None

    @classmethod
    def from_jira(cls, payload: dict) -> "Issue":
        """Parse an issue from the Jira REST API (current or 2.0.alpha shape)."""
        fields = payload.get("fields") or {}

        resolution = _unwrap_legacy(fields.get("resolution"))
        if isinstance(resolution, dict):
            resolution = resolution.get("name") or resolution.get("id") or "Resolved"

        worklogs, truncated = cls._parse_worklogs(payload.get("key"), fields.get("worklog"))

        return cls(
            key=payload.get("key"),
            resolution=resolution or None,
            resolution_date=parse_jira_date(_unwrap_legacy(fields.get("resolutiondate"))),
            original_estimate_minutes=cls._parse_original_estimate(fields),
            custom_fields={k: v for k, v in fields.items() if k not in STRUCTURED_FIELDS},
            worklogs=worklogs,
            worklog_truncated=truncated
        )

    @staticmethod
    def _parse_original_estimate(fields: dict) -> Optional[float]:
        """Original estimate in minutes, or None without time tracking."""
        timetracking = _unwrap_legacy(fields.get("timetracking"))
        if isinstance(timetracking, dict):
            if timetracking.get("originalEstimateSeconds") is not None:
                return timetracking["originalEstimateSeconds"] / 60
            # 2.0.alpha reports minutes
            if timetracking.get("timeoriginalestimate") is not None:
                return float(timetracking["timeoriginalestimate"])

        seconds = _unwrap_legacy(fields.get("timeoriginalestimate"))
        if seconds is not None:
            return seconds / 60

        return None

    @staticmethod
    def _parse_worklogs(issue_key: Optional[str], worklog) -> tuple:
        """Returns (entries, truncated)."""
        if not isinstance(worklog, dict):
            return [], False

        if "worklogs" in worklog:
            raw_entries = worklog.get("worklogs") or []
            minutes = lambda w: (w.get("timeSpentSeconds") or 0) / 60
            total = worklog.get("total", len(raw_entries))
        else:
            raw_entries = worklog.get("value") or []
            minutes = lambda w: w.get("minutesSpent") or 0
            total = len(raw_entries)

        entries = [parse_worklog_entry(issue_key, w, minutes) for w in raw_entries]
        entries = [e for e in entries if e is not None]
        return entries, total > len(raw_entries)


def parse_worklog_entry(issue_key: Optional[str], raw: dict, minutes=None) -> Optional[WorklogEntry]:
    """Build a WorklogEntry from a Jira worklog record, None if it has no start date."""
    if minutes is None:
        minutes = lambda w: (w.get("timeSpentSeconds") or 0) / 60

    started = parse_jira_date(raw.get("started"))
    if started is None:
        logger.info(f"Ignoring worklog {raw.get('id')} of issue {issue_key} without a valid start date")
        return None

    return WorklogEntry(started=started, minutes_spent=minutes(raw))
