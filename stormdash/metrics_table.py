from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Literal

import pandas as pd

from stormdash.filters import FilterState
from stormdash.models import format_magnitude

SortBy = Literal["time", "magnitude"]
SortOrder = Literal["asc", "desc"]

TABLE_COLUMNS = ["id", "time", "event_type", "magnitude", "location", "county", "state", "severity", "comments"]


def sort_reports(view: pd.DataFrame, sort_by: SortBy = "time", sort_order: SortOrder = "asc") -> pd.DataFrame:
    """Stable sort; unknown magnitudes always sink to the bottom."""
    if view.empty or (sort_by == "time" and sort_order == "asc"):
        return view
    col = "timestamp" if sort_by == "time" else "magnitude"
    return view.sort_values(col, ascending=sort_order == "asc", kind="mergesort", na_position="last")


def table_rows(view: pd.DataFrame, *, tz: str = "UTC") -> List[Dict[str, Any]]:
    """Display rows; `time` is the hour:minute in the same zone as the timeline."""
    rows: List[Dict[str, Any]] = []
    for rec in view.to_dict(orient="records"):
        rows.append(
            {
                "id": str(rec["id"]),
                "time": pd.Timestamp(rec["timestamp"]).tz_convert(tz).strftime("%H:%M"),
                "event_type": rec["event_type"],
                "magnitude": format_magnitude(rec["event_type"], rec.get("magnitude")),
                "location": rec.get("location") if isinstance(rec.get("location"), str) else "",
                "county": rec["county"],
                "state": rec["state"],
                "severity": rec["severity"],
                "comments": rec.get("comments") if isinstance(rec.get("comments"), str) else "",
            }
        )
    return rows


def export_frame(view: pd.DataFrame, *, tz: str = "UTC") -> pd.DataFrame:
    if view.empty:
        return pd.DataFrame(columns=TABLE_COLUMNS)
    return pd.DataFrame(table_rows(view, tz=tz), columns=TABLE_COLUMNS)


def compute_table(
    filters: FilterState,
    ctx: Dict[str, Any],
    *,
    sort_by: SortBy = "time",
    sort_order: SortOrder = "asc",
    tz: str = "UTC",
) -> Dict[str, Any]:
    view: pd.DataFrame = ctx.get("filtered_reports", pd.DataFrame())
    rows = table_rows(sort_reports(view, sort_by, sort_order), tz=tz)
    return {
        "filters": asdict(filters),
        "sort": {"by": sort_by, "order": sort_order},
        "count": len(rows),
        "rows": rows,
    }
