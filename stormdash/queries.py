from __future__ import annotations

import datetime as dt
from typing import Iterable, Optional

REPORT_FIELDS = """
      id
      eventType
      measurement { magnitude unit }
      beginTime
      geo { lat lon }
      location { name state county }
      sourceOffice
      comments
"""

DEFAULT_QUERY = """{
  stormReports(filter: {
    timeRange: { from: "2020-01-01T00:00:00Z", to: "2030-01-01T00:00:00Z" }
  }) {
    totalCount
    reports {
      id
      eventType
      location { state county }
      measurement { magnitude unit }
      beginTime
    }
  }
}"""


def format_instant(value: dt.datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def _filter_clause(
    start: dt.datetime,
    end: dt.datetime,
    event_types: Optional[Iterable[str]] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> str:
    parts = [f'timeRange: {{ from: "{format_instant(start)}", to: "{format_instant(end)}" }}']
    types = [t.upper() for t in (event_types or []) if t]
    if types:
        parts.append(f"eventTypes: [{', '.join(types)}]")
    if limit is not None:
        parts.append(f"limit: {int(limit)}")
    if offset:
        parts.append(f"offset: {int(offset)}")
    return "\n    ".join(parts)


def build_reports_query(
    start: dt.datetime,
    end: dt.datetime,
    *,
    event_types: Optional[Iterable[str]] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> str:
    """Batch query for one date selection: reports plus count, paging and freshness metadata."""
    clause = _filter_clause(start, end, event_types, limit, offset)
    return (
        "{\n"
        "  stormReports(filter: {\n"
        f"    {clause}\n"
        "  }) {\n"
        "    totalCount\n"
        "    hasMore\n"
        f"    reports {{{REPORT_FIELDS}    }}\n"
        "    meta { lastUpdated dataLagMinutes }\n"
        "  }\n"
        "}"
    )


def build_lookback_query(start: dt.datetime, end: dt.datetime, *, limit: int) -> str:
    """Cheap look-back query used to auto-detect the most recent report date."""
    clause = _filter_clause(start, end, None, limit, None)
    return (
        "{\n"
        "  stormReports(filter: {\n"
        f"    {clause}\n"
        "  }) {\n"
        "    totalCount\n"
        "    reports { beginTime }\n"
        "  }\n"
        "}"
    )
