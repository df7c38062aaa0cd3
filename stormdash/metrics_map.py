from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Literal, Optional

import altair as alt
import pandas as pd

from stormdash.charts import SEVERITY_COLORS, TYPE_COLORS, severity_color_scale, to_vega_spec, type_color_scale
from stormdash.filters import FilterState
from stormdash.models import Report, format_magnitude

ColorMode = Literal["type", "severity"]
COLOR_MODES = ("type", "severity")
DEFAULT_COLOR_MODE: ColorMode = "type"
FALLBACK_COLOR = "#6b7280"


@dataclass(frozen=True)
class MapMarker:
    report_id: str
    lat: float
    lon: float
    color_key: str

    @property
    def color(self) -> str:
        return marker_color(self.color_key)


def marker_color(color_key: str) -> str:
    return TYPE_COLORS.get(color_key) or SEVERITY_COLORS.get(color_key) or FALLBACK_COLOR


def clean_color_mode(value: Optional[str]) -> ColorMode:
    mode = (value or DEFAULT_COLOR_MODE).strip().lower()
    if mode not in COLOR_MODES:
        raise ValueError(f"unknown color mode: {value!r}")
    return mode  # type: ignore[return-value]


def map_markers(view: pd.DataFrame, color_mode: ColorMode = DEFAULT_COLOR_MODE) -> List[MapMarker]:
    """One marker per filtered report; the mode only picks the color key."""
    if view.empty:
        return []
    key_col = "event_type" if color_mode == "type" else "severity"
    return [
        MapMarker(report_id=str(rid), lat=float(lat), lon=float(lon), color_key=str(key))
        for rid, lat, lon, key in zip(view["id"], view["lat"], view["lon"], view[key_col])
    ]


def marker_popup(report: Report) -> Dict[str, Any]:
    return {
        "event_type": report.event_type.upper(),
        "location": {"state": report.state, "county": report.county, "name": report.location},
        "timestamp": report.timestamp.isoformat(),
        "magnitude": format_magnitude(report.event_type, report.magnitude),
    }


def popup_text(popup: Dict[str, Any]) -> str:
    loc = popup["location"]
    county = f"{loc['county']} Co." if loc.get("county") else None
    place = ", ".join(p for p in [loc.get("name"), county, loc.get("state")] if p)
    lines = [popup["event_type"], place, popup["timestamp"]]
    if popup["magnitude"]:
        lines.append(popup["magnitude"])
    return "\n".join(lines)


def map_chart(view: pd.DataFrame, color_mode: ColorMode) -> Dict[str, Any]:
    key_col = "event_type" if color_mode == "type" else "severity"
    df = view[["id", "lat", "lon", "event_type", "severity", "state", "county"]].copy()
    df["color_key"] = df[key_col]
    scale = type_color_scale() if color_mode == "type" else severity_color_scale()
    chart = (
        alt.Chart(df)
        .mark_circle(size=40, opacity=0.8)
        .encode(
            longitude="lon:Q",
            latitude="lat:Q",
            color=alt.Color("color_key:N", title="Type" if color_mode == "type" else "Severity", scale=scale),
            tooltip=["event_type", "state", "county", "severity"],
        )
        .project(type="albersUsa")
        .properties(height=360)
    )
    return to_vega_spec(chart)


def compute_map(filters: FilterState, ctx: Dict[str, Any], *, color_mode: ColorMode = DEFAULT_COLOR_MODE) -> Dict[str, Any]:
    view: pd.DataFrame = ctx.get("filtered_reports", pd.DataFrame())
    markers = map_markers(view, color_mode)
    return {
        "filters": asdict(filters),
        "color_mode": color_mode,
        "markers": [{**asdict(m), "color": m.color} for m in markers],
        "charts": {"map": map_chart(view, color_mode)} if markers else {},
    }
