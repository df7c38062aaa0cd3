"""
Report data model
=================

A report is one severe-weather observation. Batches are held as pandas
DataFrames with the columns in `REPORT_COLUMNS`; `Report` is the
immutable single-row view used for popups and tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

import pandas as pd

from stormdash.config import SeverityThresholds

HAIL = "hail"
TORNADO = "tornado"
WIND = "wind"

# Fixed order for stacked rendering and legends.
EVENT_TYPES = (HAIL, TORNADO, WIND)

SEVERE = "severe"
NON_SEVERE = "non-severe"
SEVERITIES = (SEVERE, NON_SEVERE)

UNITS = {HAIL: "in", TORNADO: "EF", WIND: "mph"}

REPORT_COLUMNS = [
    "id",
    "event_type",
    "state",
    "county",
    "severity",
    "magnitude",
    "unit",
    "timestamp",
    "lat",
    "lon",
    "location",
    "source_office",
    "comments",
]


@dataclass(frozen=True)
class Report:
    id: str
    event_type: str
    state: str
    county: str
    severity: str
    magnitude: Optional[float]
    timestamp: pd.Timestamp
    lat: float
    lon: float
    location: Optional[str] = None
    source_office: Optional[str] = None
    comments: Optional[str] = None

    @property
    def unit(self) -> str:
        return UNITS.get(self.event_type, "")

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Report":
        magnitude = row.get("magnitude")
        return cls(
            id=str(row["id"]),
            event_type=str(row["event_type"]),
            state=str(row["state"]),
            county=str(row["county"]),
            severity=str(row["severity"]),
            magnitude=None if magnitude is None or pd.isna(magnitude) else float(magnitude),
            timestamp=pd.Timestamp(row["timestamp"]),
            lat=float(row["lat"]),
            lon=float(row["lon"]),
            location=_opt_str(row.get("location")),
            source_office=_opt_str(row.get("source_office")),
            comments=_opt_str(row.get("comments")),
        )


def _opt_str(value: object) -> Optional[str]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    s = str(value).strip()
    return s or None


def normalize_event_type(value: object) -> Optional[str]:
    """Map source spellings (HAIL, torn, Tornado...) onto an event type."""
    if value is None:
        return None
    s = str(value).strip().lower()
    if s in {"torn", "tor"}:
        return TORNADO
    return s if s in EVENT_TYPES else None


def classify_severity(event_type: str, magnitude: Optional[float], thresholds: Optional[SeverityThresholds] = None) -> str:
    """Derive the two-level severity from magnitude. Unknown magnitude is non-severe."""
    t = thresholds or SeverityThresholds()
    if magnitude is None or pd.isna(magnitude):
        return NON_SEVERE
    limit = {HAIL: t.hail_in, WIND: t.wind_mph, TORNADO: t.tornado_ef}.get(event_type)
    if limit is None:
        return NON_SEVERE
    return SEVERE if float(magnitude) >= limit else NON_SEVERE


def format_magnitude(event_type: str, magnitude: Optional[float]) -> str:
    if magnitude is None or pd.isna(magnitude):
        return ""
    if event_type == HAIL:
        return f'{float(magnitude):.2f}"'
    if event_type == TORNADO:
        return f"EF{int(magnitude)}"
    if event_type == WIND:
        return f"{int(round(float(magnitude)))} mph"
    return str(magnitude)


def format_max_magnitude(event_type: str, magnitude: Optional[float]) -> str:
    """Stats-card line, e.g. 'max 1.75"'. Empty when the type has no matches."""
    text = format_magnitude(event_type, magnitude)
    return f"max {text}" if text else ""


def empty_reports_frame() -> pd.DataFrame:
    df = pd.DataFrame({col: pd.Series(dtype=object) for col in REPORT_COLUMNS})
    df["magnitude"] = df["magnitude"].astype(float)
    df["lat"] = df["lat"].astype(float)
    df["lon"] = df["lon"].astype(float)
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    return df
