from __future__ import annotations

from typing import Any, Dict, List

import pandas as pd

from stormdash.data import ReportBatch
from stormdash.filters import FilterState, enforce_cascade

# FilterState field -> report column
FIELD_COLUMNS = {
    "type": "event_type",
    "state": "state",
    "county": "county",
    "severity": "severity",
}


def apply_filters(reports: pd.DataFrame, filters: FilterState) -> pd.DataFrame:
    """AND of exact matches over every set field; unset fields impose nothing.

    Returns a new frame in batch order. The input is never modified.
    """
    if reports.empty:
        return reports.copy()
    mask = pd.Series(True, index=reports.index)
    for name, col in FIELD_COLUMNS.items():
        value = getattr(filters, name)
        if value is None:
            continue
        mask &= reports[col].astype(str) == value
    return reports[mask].copy()


def state_options(reports: pd.DataFrame) -> List[str]:
    if reports.empty:
        return []
    return sorted(s for s in reports["state"].astype(str).unique().tolist() if s)


def county_options(reports: pd.DataFrame, state: str | None) -> List[str]:
    """Distinct counties among reports matching the state alone."""
    if reports.empty or state is None:
        return []
    in_state = reports[reports["state"].astype(str) == state]
    return sorted(c for c in in_state["county"].astype(str).unique().tolist() if c)


def filter_options(batch: ReportBatch, filters: FilterState) -> Dict[str, Any]:
    return {
        "states": state_options(batch.reports),
        "counties": county_options(batch.reports, filters.state),
        "county_enabled": filters.county_enabled,
    }


def prepare_context(batch: ReportBatch, filters: FilterState) -> Dict[str, Any]:
    filt = enforce_cascade(filters)
    return {
        "batch": batch,
        "filters": filt,
        "filtered_reports": apply_filters(batch.reports, filt),
        "options": filter_options(batch, filt),
    }
