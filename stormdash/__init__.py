"""Core (UI-agnostic) severe-weather dashboard logic.

This package contains:
- report batch loading (query service or NOAA SPC CSV -> pandas)
- filter state and the county-depends-on-state cascade
- the filter engine and per-view aggregations (JSON-serializable payloads)
- view synchronisation and the ad hoc query console
- chart helpers (Altair -> Vega-Lite spec dict)
"""

__version__ = "0.1.0"
