from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

from stormdash.models import SEVERITIES, normalize_event_type

FILTER_FIELDS = ("type", "state", "county", "severity")
ALL_TOKENS = {"", "all", "any"}

COUNTY_REQUIRES_STATE = "county_requires_state"


@dataclass(frozen=True)
class FilterState:
    """Current filter selection. `None` means "All" for that field."""

    type: Optional[str] = None
    state: Optional[str] = None
    county: Optional[str] = None
    severity: Optional[str] = None

    @property
    def county_enabled(self) -> bool:
        return self.state is not None

    @property
    def is_unfiltered(self) -> bool:
        return all(getattr(self, name) is None for name in FILTER_FIELDS)


@dataclass(frozen=True)
class FilterUpdate:
    filters: FilterState
    changed: bool
    rejected: Optional[str] = None


def cascade_valid(filters: FilterState) -> bool:
    """County is only meaningful while a state is selected."""
    return filters.county is None or filters.state is not None


def enforce_cascade(filters: FilterState) -> FilterState:
    if cascade_valid(filters):
        return filters
    return replace(filters, county=None)


def _is_all(value: object) -> bool:
    return value is None or str(value).strip().lower() in ALL_TOKENS


def clean_type(value: object) -> Optional[str]:
    if _is_all(value):
        return None
    event_type = normalize_event_type(value)
    if event_type is None:
        raise ValueError(f"unknown event type: {value!r}")
    return event_type


def clean_severity(value: object) -> Optional[str]:
    if _is_all(value):
        return None
    s = str(value).strip().lower().replace("_", "-")
    if s == "nonsevere":
        s = "non-severe"
    if s not in SEVERITIES:
        raise ValueError(f"unknown severity: {value!r}")
    return s


def clean_state(value: object) -> Optional[str]:
    return None if _is_all(value) else str(value).strip().upper()


def clean_county(value: object) -> Optional[str]:
    return None if _is_all(value) else str(value).strip()


_CLEANERS = {
    "type": clean_type,
    "state": clean_state,
    "county": clean_county,
    "severity": clean_severity,
}


def _set(filters: FilterState, name: str, value: Optional[str]) -> FilterState:
    if name == "state" and value != filters.state:
        # A new state invalidates the county options, so the county is cleared.
        return replace(filters, state=value, county=None)
    return enforce_cascade(replace(filters, **{name: value}))


def set_filter(filters: FilterState, name: str, value: object) -> FilterUpdate:
    """Set one field and run the cascade rules.

    Selecting a county without a state is rejected and leaves the
    selection untouched; callers surface it as a disabled control.
    """
    if name not in _CLEANERS:
        raise KeyError(f"unknown filter field: {name}")
    cleaned = _CLEANERS[name](value)
    if name == "county" and cleaned is not None and filters.state is None:
        return FilterUpdate(filters=filters, changed=False, rejected=COUNTY_REQUIRES_STATE)
    updated = _set(filters, name, cleaned)
    return FilterUpdate(filters=updated, changed=updated != filters)


def reset_filter(filters: FilterState, name: str) -> FilterUpdate:
    return set_filter(filters, name, None)


def apply_changes(filters: FilterState, changes: Mapping[str, Any]) -> FilterUpdate:
    """Apply several field changes from one gesture.

    State is applied before county so that "state=NE, county=Lincoln" in
    one gesture is accepted.
    """
    rejected = None
    current = filters
    for name in FILTER_FIELDS:
        if name not in changes:
            continue
        result = set_filter(current, name, changes[name])
        current = result.filters
        rejected = rejected or result.rejected
    return FilterUpdate(filters=current, changed=current != filters, rejected=rejected)


def normalize_filters(raw: Optional[Mapping[str, Any]]) -> FilterState:
    raw = raw or {}
    values: Dict[str, Optional[str]] = {}
    for name in FILTER_FIELDS:
        try:
            values[name] = _CLEANERS[name](raw.get(name))
        except ValueError:
            values[name] = None
    return enforce_cascade(FilterState(**values))
