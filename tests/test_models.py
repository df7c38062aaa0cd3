from __future__ import annotations

import pandas as pd
import pytest

from stormdash.config import SeverityThresholds
from stormdash.models import (
    NON_SEVERE,
    SEVERE,
    Report,
    classify_severity,
    format_magnitude,
    format_max_magnitude,
    normalize_event_type,
)


@pytest.mark.parametrize(
    "raw, expected",
    [("HAIL", "hail"), ("Tornado", "tornado"), ("torn", "tornado"), (" wind ", "wind"), ("flood", None), (None, None)],
)
def test_normalize_event_type(raw, expected):
    assert normalize_event_type(raw) == expected


@pytest.mark.parametrize(
    "event_type, magnitude, expected",
    [
        ("hail", 0.75, NON_SEVERE),
        ("hail", 1.0, SEVERE),
        ("wind", 57.0, NON_SEVERE),
        ("wind", 58.0, SEVERE),
        ("tornado", 0.0, NON_SEVERE),
        ("tornado", 2.0, SEVERE),
        ("tornado", None, NON_SEVERE),
        ("wind", float("nan"), NON_SEVERE),
    ],
)
def test_classify_severity(event_type, magnitude, expected):
    assert classify_severity(event_type, magnitude) == expected


def test_classify_severity_custom_thresholds():
    strict = SeverityThresholds(hail_in=2.0)
    assert classify_severity("hail", 1.75, strict) == NON_SEVERE
    assert classify_severity("hail", 2.0, strict) == SEVERE


def test_format_magnitude():
    assert format_magnitude("hail", 1.75) == '1.75"'
    assert format_magnitude("tornado", 2.0) == "EF2"
    assert format_magnitude("wind", 64.6) == "65 mph"
    assert format_magnitude("wind", None) == ""
    assert format_max_magnitude("hail", 2.5) == 'max 2.50"'
    assert format_max_magnitude("tornado", None) == ""


def test_report_from_row():
    row = pd.Series(
        {
            "id": "r1",
            "event_type": "wind",
            "state": "KS",
            "county": "Sedgwick",
            "severity": NON_SEVERE,
            "magnitude": float("nan"),
            "timestamp": pd.Timestamp("2024-04-26T18:05:00Z"),
            "lat": 37.7,
            "lon": -97.3,
            "location": "Wichita",
            "source_office": None,
            "comments": "  ",
        }
    )
    report = Report.from_row(row)
    assert report.magnitude is None
    assert report.unit == "mph"
    assert report.comments is None
