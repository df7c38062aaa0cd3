from __future__ import annotations

from typing import Any, Dict

import altair as alt

from stormdash.models import EVENT_TYPES, NON_SEVERE, SEVERE

alt.data_transformers.disable_max_rows()

TYPE_COLORS = {"hail": "#22c55e", "tornado": "#ef4444", "wind": "#3b82f6"}
SEVERITY_COLORS = {SEVERE: "#b91c1c", NON_SEVERE: "#f59e0b"}
TYPE_LABELS = {t: t.capitalize() for t in EVENT_TYPES}


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def type_color_scale() -> alt.Scale:
    return alt.Scale(domain=list(EVENT_TYPES), range=[TYPE_COLORS[t] for t in EVENT_TYPES])


def severity_color_scale() -> alt.Scale:
    return alt.Scale(domain=[SEVERE, NON_SEVERE], range=[SEVERITY_COLORS[SEVERE], SEVERITY_COLORS[NON_SEVERE]])
