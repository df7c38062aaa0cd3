from __future__ import annotations

import pandas as pd

from conftest import EXPECTED_HAIL, EXPECTED_STATE_COUNT, EXPECTED_TOP_STATES, EXPECTED_TORNADO, EXPECTED_TOTAL
from stormdash.engine import apply_filters, county_options, filter_options, prepare_context, state_options
from stormdash.filters import FilterState


def test_unfiltered_returns_everything(batch):
    assert len(apply_filters(batch.reports, FilterState())) == EXPECTED_TOTAL


def test_type_filter(batch):
    view = apply_filters(batch.reports, FilterState(type="hail"))
    assert len(view) == EXPECTED_HAIL
    assert set(view["event_type"]) == {"hail"}


def test_state_filter(batch):
    for state, count in EXPECTED_TOP_STATES.items():
        assert len(apply_filters(batch.reports, FilterState(state=state))) == count


def test_combined_filters(batch):
    view = apply_filters(batch.reports, FilterState(type="tornado", state="IA"))
    assert 0 < len(view) < EXPECTED_TORNADO
    assert set(view["state"]) == {"IA"}


def test_severity_filter_narrows(batch):
    view = apply_filters(batch.reports, FilterState(severity="severe"))
    assert 0 < len(view) < EXPECTED_TOTAL
    assert set(view["severity"]) == {"severe"}


def test_county_filter_narrows_within_state(batch):
    counties = county_options(batch.reports, "NE")
    assert len(counties) > 1
    view = apply_filters(batch.reports, FilterState(state="NE", county=counties[0]))
    assert 0 < len(view) < EXPECTED_TOP_STATES["NE"]


def test_filtering_is_idempotent_and_pure(batch):
    before = batch.reports.copy()
    f = FilterState(type="wind", severity="non-severe")
    first = apply_filters(batch.reports, f)
    second = apply_filters(batch.reports, f)
    pd.testing.assert_frame_equal(first, second)
    pd.testing.assert_frame_equal(batch.reports, before)
    # Batch order is preserved.
    assert first.index.is_monotonic_increasing


def test_unknown_value_yields_empty_view(batch):
    assert apply_filters(batch.reports, FilterState(state="ZZ")).empty


def test_empty_batch_yields_empty_view(no_data_batch):
    view = apply_filters(no_data_batch.reports, FilterState(type="hail"))
    assert view.empty


def test_state_options(batch):
    states = state_options(batch.reports)
    assert len(states) == EXPECTED_STATE_COUNT
    assert states == sorted(states)


def test_county_options_ignore_other_filters(batch):
    # County options depend on the state alone.
    ctx_all = filter_options(batch, FilterState(state="NE"))
    ctx_typed = filter_options(batch, FilterState(state="NE", type="wind", severity="severe"))
    assert ctx_all["counties"] == ctx_typed["counties"] == ["Douglas", "Lancaster", "Saunders", "Washington"]
    assert ctx_all["county_enabled"]


def test_county_options_empty_without_state(batch):
    options = filter_options(batch, FilterState())
    assert options["counties"] == []
    assert not options["county_enabled"]


def test_prepare_context_enforces_cascade(batch):
    ctx = prepare_context(batch, FilterState(county="Douglas"))
    assert ctx["filters"] == FilterState()
    assert len(ctx["filtered_reports"]) == EXPECTED_TOTAL
