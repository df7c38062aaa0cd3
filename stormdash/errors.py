from __future__ import annotations


class StormDashError(Exception):
    """Base class for dashboard errors."""


class LoadFailure(StormDashError):
    """A report batch could not be fetched for the selected date."""


class QueryExecutionFailure(StormDashError):
    """The query service failed or returned a malformed response."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class QueryConsoleBusy(StormDashError):
    """A query is already running; submissions are locked until it settles."""


class QueryNotEditable(StormDashError):
    """The console is read-only until editing is enabled."""
