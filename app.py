import logging
from typing import List, Optional

import altair as alt
import pandas as pd
import streamlit as st

from stormdash.client import QueryServiceClient
from stormdash.config import configure_logging, get_settings
from stormdash.data import ReportStore
from stormdash.dates import DateSelector, default_date
from stormdash.errors import QueryConsoleBusy
from stormdash.filters import FILTER_FIELDS
from stormdash.metrics_map import marker_popup, popup_text
from stormdash.metrics_stats import format_date_range
from stormdash.metrics_table import export_frame
from stormdash.models import EVENT_TYPES, SEVERITIES
from stormdash.query_console import QueryConsole
from stormdash.view_sync import ViewStatus, ViewSync, snapshot_payload

alt.data_transformers.disable_max_rows()
configure_logging()
logger = logging.getLogger(__name__)

ALL = "All"


# ---------- Session state ----------
def _session():
    if "view_sync" in st.session_state:
        return st.session_state["view_sync"], st.session_state["date_selector"], st.session_state["query_console"]

    settings = get_settings()
    client = QueryServiceClient.from_settings(settings)
    if settings.data_dir:
        store = ReportStore(data_dir=settings.data_dir, thresholds=settings.thresholds)
    else:
        store = ReportStore(client=client, page_size=settings.page_size, lookback_days=settings.lookback_days, thresholds=settings.thresholds)

    view_sync = ViewSync(store.load, tz=settings.display_tz)
    selector = DateSelector(default_date(store.latest_date()))
    selector.subscribe(view_sync.load)
    view_sync.load(selector.selection)

    st.session_state["view_sync"] = view_sync
    st.session_state["date_selector"] = selector
    st.session_state["query_console"] = QueryConsole(client)
    st.session_state["query_client"] = client
    return view_sync, selector, st.session_state["query_console"]


def _option_index(options: List[str], value: Optional[str]) -> int:
    return options.index(value) if value in options else 0


def _as_filter(value: str) -> Optional[str]:
    return None if value == ALL else value


# ---------- UI setup ----------
st.set_page_config(page_title="Storm Reports Dashboard", layout="wide")
st.title("Severe Weather Reports")

view_sync, selector, console = _session()
settings = get_settings()

with st.sidebar:
    st.markdown("### Date")
    range_enabled = st.checkbox("Date range", value=selector.range_enabled)
    selector.set_range_enabled(range_enabled)
    selector.set_from(st.date_input("Date", value=selector.date_from))
    if selector.end_visible:
        selector.set_to(st.date_input("To", value=selector.date_to))

    st.markdown("---")
    st.markdown("### Filters")
    snap = view_sync.snapshot
    options = snap.options if snap is not None else {"states": [], "counties": [], "county_enabled": False}
    current = view_sync.filters

    type_opts = [ALL] + list(EVENT_TYPES)
    state_opts = [ALL] + options["states"]
    sev_opts = [ALL] + list(SEVERITIES)
    changes = {
        "type": _as_filter(st.selectbox("Type", type_opts, index=_option_index(type_opts, current.type))),
        "state": _as_filter(st.selectbox("State", state_opts, index=_option_index(state_opts, current.state))),
        "severity": _as_filter(st.selectbox("Severity", sev_opts, index=_option_index(sev_opts, current.severity))),
    }
    view_sync.apply(changes)

    # County options depend on the state that was just applied.
    county_opts = [ALL] + (view_sync.snapshot.options["counties"] if view_sync.snapshot is not None else [])
    county = st.selectbox(
        "County",
        county_opts,
        index=_option_index(county_opts, view_sync.filters.county),
        disabled=not view_sync.filters.county_enabled,
    )
    view_sync.set_filter("county", _as_filter(county))
    if not view_sync.filters.is_unfiltered and st.button("Clear filters"):
        view_sync.apply({name: None for name in FILTER_FIELDS})
        st.rerun()

    st.markdown("---")
    color_mode = st.selectbox("Map colors", ["type", "severity"], format_func=lambda m: f"By {m.capitalize()}")
    view_sync.set_color_mode(color_mode)

    if not settings.data_dir:
        up = st.session_state["query_client"].health()
        st.caption(f"Query service: {'up' if up else 'unreachable'}")

snap = view_sync.snapshot
if view_sync.status == ViewStatus.LOADING:
    st.info("Loading...")
if snap is None:
    st.error(view_sync.load_error or "No data loaded.")
    st.stop()

payload = snapshot_payload(snap)
status_box = st.success if snap.status_class == "ok" else (st.error if snap.status_class == "err" else st.warning)
status_box(snap.status_text)
if snap.freshness["value"]:
    st.caption(f"Data lag: {snap.freshness['value']} ({snap.freshness['level']})")

# ----- Stats cards -----
cards = payload["cards"]
cols = st.columns(5)
cols[0].metric("Total", cards["total"])
for col, event_type in zip(cols[1:4], EVENT_TYPES):
    col.metric(event_type.capitalize(), cards[f"{event_type}_count"], cards[f"{event_type}_max"] or None, delta_color="off")
cols[4].metric("Date range", format_date_range(snap.stats))

# ----- Map + timeline -----
left, right = st.columns([3, 2])
with left:
    st.subheader("Map")
    if payload["charts"].get("map"):
        st.vega_lite_chart(payload["charts"]["map"], use_container_width=True)
    else:
        st.info("No reports to map.")
    if snap.rows:
        selected = st.selectbox("Report details", [r["id"] for r in snap.rows])
        report = view_sync.batch.report(selected) if view_sync.batch is not None else None
        if report is not None:
            st.text(popup_text(marker_popup(report)))
with right:
    st.subheader("Activity timeline")
    if payload["charts"].get("timeline"):
        st.vega_lite_chart(payload["charts"]["timeline"], use_container_width=True)
    else:
        st.info("No activity.")

# ----- Table -----
st.subheader(f"Reports ({len(snap.rows)})")
table_df = export_frame(snap.reports, tz=settings.display_tz)
st.dataframe(table_df, use_container_width=True, hide_index=True)
st.download_button(
    "Export CSV",
    data=table_df.to_csv(index=False).encode("utf-8"),
    file_name="storm-reports.csv",
    mime="text/csv",
)

# ----- Query console -----
with st.expander("GraphQL query", expanded=False):
    editable = st.checkbox("Edit", value=console.editable)
    console.set_editable(editable)
    text = st.text_area("Query", value=console.text, height=220, disabled=not editable)
    if editable and text != console.text:
        console.set_text(text)
    run_col, reset_col = st.columns(2)
    if reset_col.button("Reset query", disabled=not editable):
        console.restore_default()
        st.rerun()
    if run_col.button("Run", disabled=not console.can_run):
        try:
            console.run()
        except QueryConsoleBusy:
            st.warning("A query is already running.")
    execution = console.execution
    if execution.timing:
        st.caption(execution.timing)
    if execution.display_text:
        st.code(execution.display_text, language="json")

with st.expander("By state", expanded=False):
    st.dataframe(pd.DataFrame(payload["by_state"], columns=["state", "count"]), hide_index=True)
