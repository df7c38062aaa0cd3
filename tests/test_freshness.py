from __future__ import annotations

import re

import pytest

from stormdash.freshness import format_lag, freshness_badge, freshness_level


@pytest.mark.parametrize("minutes, text", [(0, "0m"), (45, "45m"), (60, "1h 0m"), (125, "2h 5m")])
def test_format_lag(minutes, text):
    assert format_lag(minutes) == text
    assert re.match(r"^\d+[mh]", text)


@pytest.mark.parametrize("minutes, level", [(None, "err"), (5, "ok"), (59, "ok"), (60, "warn"), (179, "warn"), (180, "stale")])
def test_freshness_level(minutes, level):
    assert freshness_level(minutes) == level


def test_badge():
    assert freshness_badge(90) == {"value": "1h 30m", "level": "warn", "css_class": "freshness-warn"}
    assert freshness_badge(None)["value"] == ""
