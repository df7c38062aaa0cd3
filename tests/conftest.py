from __future__ import annotations

import datetime as dt
import json
from typing import Dict, List, Optional

import pandas as pd
import pytest

from stormdash.data import ReportBatch, empty_batch, finalize_reports
from stormdash.dates import DateSelection

REPORT_DAY = dt.date(2024, 4, 26)

EXPECTED_TOTAL = 271
EXPECTED_HAIL = 79
EXPECTED_TORNADO = 149
EXPECTED_WIND = 43
EXPECTED_STATE_COUNT = 11
EXPECTED_TOP_STATES = {"NE": 100, "IA": 69, "TX": 39}

# state -> (hail, tornado, wind)
STATE_MIX = {
    "NE": (30, 55, 15),
    "IA": (20, 40, 9),
    "TX": (15, 14, 10),
}
OTHER_STATES = {"KS": 15, "MO": 12, "MN": 10, "OK": 8, "WI": 6, "SD": 5, "IL": 4, "CO": 3}
OTHER_MIX = (14, 40, 9)

COUNTIES = {
    "NE": ["Lancaster", "Douglas", "Saunders", "Washington"],
    "IA": ["Harrison", "Pottawattamie", "Shelby"],
    "TX": ["San Saba", "Brown", "Mills"],
}
CENTERS = {
    "NE": (41.0, -99.0), "IA": (41.9, -93.4), "TX": (31.0, -99.0), "KS": (38.5, -98.0),
    "MO": (38.4, -92.5), "MN": (46.3, -94.3), "OK": (35.5, -97.5), "WI": (44.6, -89.9),
    "SD": (44.4, -100.2), "IL": (40.0, -89.2), "CO": (39.0, -105.5),
}

HAIL_SIZES = [0.75, 1.0, 1.25, 1.75, 2.5, 4.25]
TORNADO_EF = [None, 0, 1, 2, 3]
WIND_MPH = [None, 50, 60, 70, 80]


def _magnitude(event_type: str, n: int) -> Optional[float]:
    if event_type == "hail":
        return HAIL_SIZES[n % len(HAIL_SIZES)]
    if event_type == "tornado":
        return TORNADO_EF[n % len(TORNADO_EF)]
    return WIND_MPH[n % len(WIND_MPH)]


def _types(hail: int, tornado: int, wind: int) -> List[str]:
    return ["hail"] * hail + ["tornado"] * tornado + ["wind"] * wind


def report_rows() -> List[Dict[str, object]]:
    assignments = []
    for state, mix in STATE_MIX.items():
        assignments.extend((state, t) for t in _types(*mix))
    other_types = _types(*OTHER_MIX)
    pos = 0
    for state, count in OTHER_STATES.items():
        assignments.extend((state, t) for t in other_types[pos : pos + count])
        pos += count

    rows = []
    per_type: Dict[str, int] = {"hail": 0, "tornado": 0, "wind": 0}
    for i, (state, event_type) in enumerate(assignments):
        n = per_type[event_type]
        per_type[event_type] += 1
        counties = COUNTIES.get(state, [f"{state} County A", f"{state} County B"])
        lat, lon = CENTERS[state]
        ts = dt.datetime.combine(REPORT_DAY, dt.time(12 + i % 12, (i * 13) % 60), tzinfo=dt.timezone.utc)
        rows.append(
            {
                "id": f"r{i:04d}",
                "event_type": event_type,
                "state": state,
                "county": counties[i % len(counties)],
                "magnitude": _magnitude(event_type, n),
                "timestamp": ts,
                "lat": lat + (i % 10) * 0.05,
                "lon": lon - (i % 7) * 0.05,
                "location": f"Town {i}",
                "source_office": "OAX",
                "comments": None,
            }
        )
    return rows


@pytest.fixture
def selection() -> DateSelection:
    return DateSelection.single(REPORT_DAY)


@pytest.fixture
def batch(selection: DateSelection) -> ReportBatch:
    reports = finalize_reports(pd.DataFrame(report_rows()), selection)
    return ReportBatch(reports=reports, selection=selection)


@pytest.fixture
def no_data_batch() -> ReportBatch:
    return empty_batch(DateSelection.single(dt.date(2000, 1, 1)))


def graphql_record(row: Dict[str, object]) -> Dict[str, object]:
    ts = row["timestamp"]
    return {
        "id": row["id"],
        "eventType": row["event_type"],
        "measurement": {"magnitude": row["magnitude"], "unit": ""},
        "beginTime": ts.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "geo": {"lat": row["lat"], "lon": row["lon"]},
        "location": {"name": row["location"], "state": row["state"], "county": row["county"]},
        "sourceOffice": row["source_office"],
        "comments": row["comments"],
    }


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", payload: Optional[object] = None) -> None:
        self.status_code = status_code
        self.text = json.dumps(payload) if payload is not None else text


class FakeSession:
    """Stands in for requests.Session; replays queued responses or raises queued errors."""

    def __init__(self, responses: Optional[List[object]] = None) -> None:
        self.responses = list(responses or [])
        self.posts: List[Dict[str, object]] = []
        self.gets: List[str] = []

    def _next(self):
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        return self._next()

    def get(self, url, timeout=None):
        self.gets.append(url)
        return self._next()


class FakeQueryClient:
    """Query client double for store/console tests."""

    def __init__(self, pages: Optional[List[Dict[str, object]]] = None, raw: str = "", error: Optional[Exception] = None) -> None:
        self.pages = list(pages or [])
        self.raw = raw
        self.error = error
        self.queries: List[str] = []

    def graphql(self, query: str) -> Dict[str, object]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.pages.pop(0)

    def execute(self, query: str) -> str:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.raw
