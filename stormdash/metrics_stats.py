from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from stormdash.data import ReportBatch
from stormdash.filters import FilterState
from stormdash.models import EVENT_TYPES, format_max_magnitude

NO_DATA = "No data"
DATE_RANGE_SEP = " — "


@dataclass(frozen=True)
class Stats:
    total: int
    by_type: Dict[str, int]
    # None when a type has no matches (or only unknown magnitudes).
    max_magnitude_by_type: Dict[str, Optional[float]]
    date_range: Optional[Tuple[dt.date, dt.date]]


def _max_magnitude(df: pd.DataFrame) -> Optional[float]:
    values = pd.to_numeric(df["magnitude"], errors="coerce").dropna()
    return float(values.max()) if not values.empty else None


def stats_for(view: pd.DataFrame, batch: ReportBatch) -> Stats:
    by_type: Dict[str, int] = {}
    max_by_type: Dict[str, Optional[float]] = {}
    for event_type in EVENT_TYPES:
        subset = view[view["event_type"] == event_type] if not view.empty else view
        by_type[event_type] = int(len(subset))
        max_by_type[event_type] = _max_magnitude(subset) if not subset.empty else None

    # The range describes the loaded batch, not the filtered subset.
    date_range = (batch.date_from, batch.date_to) if not batch.is_empty else None
    return Stats(total=int(len(view)), by_type=by_type, max_magnitude_by_type=max_by_type, date_range=date_range)


def format_date_range(stats: Stats) -> str:
    if stats.date_range is None or stats.total == 0:
        return NO_DATA
    start, end = stats.date_range
    return f"{start.isoformat()}{DATE_RANGE_SEP}{end.isoformat()}"


def stats_cards(stats: Stats) -> Dict[str, str]:
    cards = {"total": str(stats.total), "date_range": format_date_range(stats)}
    for event_type in EVENT_TYPES:
        cards[f"{event_type}_count"] = str(stats.by_type.get(event_type, 0))
        cards[f"{event_type}_max"] = format_max_magnitude(event_type, stats.max_magnitude_by_type.get(event_type))
    return cards


def state_breakdown(view: pd.DataFrame) -> List[Dict[str, Any]]:
    """Per-state counts with a per-county breakdown, largest first."""
    if view.empty:
        return []
    out: List[Dict[str, Any]] = []
    state_counts = view.groupby("state").size().reset_index(name="count")
    state_counts = state_counts.sort_values(["count", "state"], ascending=[False, True])
    for rec in state_counts.to_dict(orient="records"):
        in_state = view[view["state"] == rec["state"]]
        counties = (
            in_state.groupby("county").size().reset_index(name="count").sort_values(["count", "county"], ascending=[False, True])
        )
        out.append(
            {
                "state": str(rec["state"]),
                "count": int(rec["count"]),
                "counties": [{"county": str(c["county"]), "count": int(c["count"])} for c in counties.to_dict(orient="records")],
            }
        )
    return out


def compute_stats(filters: FilterState, ctx: Dict[str, Any]) -> Dict[str, Any]:
    view: pd.DataFrame = ctx.get("filtered_reports", pd.DataFrame())
    batch: ReportBatch = ctx["batch"]
    stats = stats_for(view, batch)
    payload = asdict(stats)
    if stats.date_range is not None:
        payload["date_range"] = [d.isoformat() for d in stats.date_range]
    return {
        "filters": asdict(filters),
        "stats": payload,
        "cards": stats_cards(stats),
        "by_state": state_breakdown(view),
    }
