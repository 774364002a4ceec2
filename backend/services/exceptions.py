"""Errors raised while syncing Jira effort into a sprint burndown."""


class BurndownSyncError(Exception):
    """Base class for all burndown sync errors."""


class AuthenticationError(BurndownSyncError):
    """Jira rejected the supplied credentials."""


class IssueTrackerError(BurndownSyncError):
    """Request to Jira failed (HTTP error, timeout, connection problem)."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class SyncFailure(BurndownSyncError):
    """A sprint sync was aborted.

    Wraps whatever went wrong (the original exception is chained as
    ``__cause__``). Buckets mutated before the failure are not rolled back.
    """

    def __init__(self, sprint_id: str, message: str):
        super().__init__(f"Sync of sprint {sprint_id} failed: {message}")
        self.sprint_id = sprint_id


class ConfigurationError(BurndownSyncError, ValueError):
    """Team sync config or sprint model is invalid."""


class DuplicateBucketDate(ConfigurationError):
    """Two sprint effort buckets fall on the same calendar day."""

    def __init__(self, day):
        super().__init__(f"Sprint has more than one effort bucket for {day.isoformat()}")
        self.day = day


class UnparsableFieldValue(BurndownSyncError, ValueError):
    """A custom field expected to hold a number could not be parsed."""

    def __init__(self, field_id: str, raw):
        super().__init__(f"Cannot parse value {raw!r} of field {field_id} as a number")
        self.field_id = field_id
        self.raw = raw
