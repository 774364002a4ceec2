"""Effort valuation and per-day bucket accumulation for sprint burndowns."""

from collections import defaultdict
from datetime import date, datetime
from typing import Union
import logging

from services.fields import FieldAccessor
from services.models import EffortMode, Issue, TeamSyncConfig, calendar_day

logger = logging.getLogger(__name__)


class EffortValuator:
    """Planned effort of an issue under the team's effort mode."""

    def value(self, config: TeamSyncConfig, issue: Issue) -> float:
        """Story points, or original estimate in hours.

        Missing values count as 0. A malformed story points value raises
        UnparsableFieldValue instead of silently counting as 0.
        """
        if config.effort_mode is EffortMode.STORY_POINTS:
            points = FieldAccessor(issue.custom_fields).numeric(config.story_points_field_id)
            return points if points is not None else 0.0

        if issue.original_estimate_minutes is None:
            return 0.0
        return issue.original_estimate_minutes / 60


class UnplannedClassifier:
    """Detects issues flagged as unplanned via a label-list custom field."""

    def is_unplanned(self, config: TeamSyncConfig, issue: Issue) -> bool:
        if not config.unplanned_flag_name:
            return False

        wanted = config.unplanned_flag_name.casefold()
        labels = FieldAccessor(issue.custom_fields).labels(config.unplanned_flag_field_id)
        return any(label.casefold() == wanted for label in labels)


class WorklogAggregator:
    """Sums logged work per calendar day."""

    def daily_hours(self, issue: Issue) -> dict:
        """Map each worklog day to whole hours logged that day.

        Minutes are summed per day first and rounded once (round half to
        even), so three 20 minute entries give 1 hour, not 0.
        """
        minutes_per_day = defaultdict(float)
        for entry in issue.worklogs:
            minutes_per_day[calendar_day(entry.started)] += entry.minutes_spent

        return {
            day: int(round(minutes / 60))
            for day, minutes in sorted(minutes_per_day.items())
        }


class DayBucketMatcher:
    """Applies effort to the sprint day bucket matching a date."""

    def reset(self, buckets: list, unplanned: bool):
        """Zero burned effort, and unplanned effort if it is tracked."""
        for bucket in buckets:
            bucket.burned = 0.0
            if unplanned:
                bucket.unplanned = 0.0

    def apply(self, buckets: list, day: Union[date, datetime], planned_delta: float,
              unplanned_delta: float, sprint_id: str, issue_key: str) -> bool:
        """Add effort to the first bucket on the same calendar day.

        Returns:
            False if no bucket matches; the effort is discarded.
        """
        target = calendar_day(day)

        for bucket in buckets:
            if bucket.day != target:
                continue

            bucket.burned += planned_delta
            bucket.unplanned += unplanned_delta
            return True

        logger.info(
            f"Cannot add effort of issue {issue_key} to sprint {sprint_id} for {target.isoformat()}: "
            f"date is out of sprint range, effort discarded"
        )
        return False
