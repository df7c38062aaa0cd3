from __future__ import annotations

import pytest

from stormdash.filters import (
    COUNTY_REQUIRES_STATE,
    FilterState,
    apply_changes,
    cascade_valid,
    enforce_cascade,
    normalize_filters,
    reset_filter,
    set_filter,
)


def test_default_is_unfiltered_and_county_disabled():
    f = FilterState()
    assert f.is_unfiltered
    assert not f.county_enabled


def test_county_rejected_without_state():
    update = set_filter(FilterState(), "county", "Lancaster")
    assert update.rejected == COUNTY_REQUIRES_STATE
    assert not update.changed
    assert update.filters == FilterState()


def test_county_accepted_with_state():
    f = set_filter(FilterState(), "state", "ne").filters
    assert f.state == "NE"
    assert f.county_enabled
    update = set_filter(f, "county", "Lancaster")
    assert update.changed
    assert update.filters.county == "Lancaster"


def test_clearing_state_clears_county():
    f = FilterState(state="NE", county="Lancaster")
    update = set_filter(f, "state", "")
    assert update.filters.state is None
    assert update.filters.county is None
    assert not update.filters.county_enabled


def test_changing_state_clears_county():
    f = FilterState(state="NE", county="Lancaster", type="hail")
    f2 = set_filter(f, "state", "IA").filters
    assert f2 == FilterState(state="IA", type="hail")


def test_same_state_keeps_county():
    f = FilterState(state="NE", county="Lancaster")
    update = set_filter(f, "state", "NE")
    assert not update.changed
    assert update.filters.county == "Lancaster"


def test_type_and_severity_do_not_cascade():
    f = FilterState(state="NE", county="Lancaster")
    f = set_filter(f, "type", "TORNADO").filters
    f = set_filter(f, "severity", "severe").filters
    assert f == FilterState(type="tornado", state="NE", county="Lancaster", severity="severe")


def test_reset_field_returns_to_all():
    f = FilterState(type="hail", state="NE", county="Douglas")
    assert reset_filter(f, "type").filters.type is None
    assert reset_filter(f, "state").filters == FilterState(type="hail")


def test_all_tokens_mean_unset():
    f = FilterState(type="wind")
    assert set_filter(f, "type", "All").filters.type is None
    assert set_filter(f, "type", None).filters.type is None


def test_invalid_values_raise():
    with pytest.raises(ValueError):
        set_filter(FilterState(), "type", "blizzard")
    with pytest.raises(ValueError):
        set_filter(FilterState(), "severity", "extreme")
    with pytest.raises(KeyError):
        set_filter(FilterState(), "magnitude", "2")


def test_apply_changes_sets_state_before_county():
    update = apply_changes(FilterState(), {"county": "Douglas", "state": "NE"})
    assert update.filters == FilterState(state="NE", county="Douglas")
    assert update.rejected is None


def test_apply_changes_reports_rejected_county():
    update = apply_changes(FilterState(), {"type": "hail", "county": "Douglas"})
    assert update.filters == FilterState(type="hail")
    assert update.rejected == COUNTY_REQUIRES_STATE


def test_cascade_predicate():
    assert cascade_valid(FilterState(state="NE", county="Douglas"))
    assert not cascade_valid(FilterState(county="Douglas"))
    assert enforce_cascade(FilterState(county="Douglas")) == FilterState()


def test_normalize_filters_is_tolerant():
    f = normalize_filters({"type": "Hail", "state": "tx", "county": "San Saba", "severity": "bogus"})
    assert f == FilterState(type="hail", state="TX", county="San Saba")
    assert normalize_filters({"county": "San Saba"}) == FilterState()
    assert normalize_filters(None) == FilterState()
    assert normalize_filters({"severity": "non_severe"}).severity == "non-severe"
