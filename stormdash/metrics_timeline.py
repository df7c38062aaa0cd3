from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List

import altair as alt
import pandas as pd

from stormdash.charts import TYPE_LABELS, to_vega_spec, type_color_scale
from stormdash.filters import FilterState
from stormdash.models import EVENT_TYPES


@dataclass(frozen=True)
class TimelineBucket:
    hour: int
    counts_by_type: Dict[str, int]

    @property
    def total(self) -> int:
        return sum(self.counts_by_type.values())

    def segments(self) -> List[Dict[str, Any]]:
        """Stacked segments bottom-up in fixed type order; empty segments omitted."""
        return [{"event_type": t, "count": self.counts_by_type[t]} for t in EVENT_TYPES if self.counts_by_type.get(t)]


def timeline_buckets(view: pd.DataFrame, *, tz: str = "UTC") -> List[TimelineBucket]:
    """One bucket per hour-of-day with at least one report, ascending."""
    if view.empty:
        return []
    hours = pd.to_datetime(view["timestamp"], utc=True).dt.tz_convert(tz).dt.hour
    counts = (
        pd.DataFrame({"hour": hours.to_numpy(), "event_type": view["event_type"].to_numpy()})
        .groupby(["hour", "event_type"])
        .size()
        .unstack(fill_value=0)
        .reindex(columns=list(EVENT_TYPES), fill_value=0)
        .sort_index()
    )
    return [
        TimelineBucket(hour=int(hour), counts_by_type={t: int(row[t]) for t in EVENT_TYPES})
        for hour, row in counts.iterrows()
    ]


def timeline_chart(buckets: List[TimelineBucket]) -> Dict[str, Any]:
    rows = [
        {"hour": b.hour, "event_type": seg["event_type"], "order": EVENT_TYPES.index(seg["event_type"]), "count": seg["count"]}
        for b in buckets
        for seg in b.segments()
    ]
    df = pd.DataFrame(rows, columns=["hour", "event_type", "order", "count"])
    chart = (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X("hour:O", title="Hour", axis=alt.Axis(labelAngle=0)),
            y=alt.Y("count:Q", title="Reports", stack="zero"),
            color=alt.Color("event_type:N", title="Type", scale=type_color_scale(), legend=alt.Legend(labelExpr=_legend_expr())),
            order=alt.Order("order:Q"),
            tooltip=["hour", "event_type", "count"],
        )
        .properties(height=180)
    )
    return to_vega_spec(chart)


def _legend_expr() -> str:
    parts = [f"datum.label == '{t}' ? '{TYPE_LABELS[t]}'" for t in EVENT_TYPES]
    return " : ".join(parts) + " : datum.label"


def compute_timeline(filters: FilterState, ctx: Dict[str, Any], *, tz: str = "UTC") -> Dict[str, Any]:
    view: pd.DataFrame = ctx.get("filtered_reports", pd.DataFrame())
    buckets = timeline_buckets(view, tz=tz)
    return {
        "filters": asdict(filters),
        "buckets": [{"hour": b.hour, "total": b.total, "counts_by_type": dict(b.counts_by_type), "segments": b.segments()} for b in buckets],
        "legend": [{"event_type": t, "label": TYPE_LABELS[t]} for t in EVENT_TYPES],
        "total": sum(b.total for b in buckets),
        "charts": {"timeline": timeline_chart(buckets)} if buckets else {},
    }
