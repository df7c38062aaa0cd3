"""
View synchronisation
====================

`ViewSync` owns the loaded batch, the filter selection and the map color
mode. Every accepted change runs exactly one recomputation through
`build_snapshot`, and the resulting snapshot is handed to every
subscriber. Views never talk to each other; they only read snapshots.

    Idle -> Loading -> Ready | Empty
    Ready/Empty -> Ready/Empty       (filter or color-mode change)
    Ready/Empty -> Loading -> ...    (date change; previous snapshot kept)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

import pandas as pd

from stormdash.data import ReportBatch
from stormdash.dates import DateSelection
from stormdash.engine import prepare_context
from stormdash.errors import LoadFailure
from stormdash.filters import FilterState, FilterUpdate, apply_changes, reset_filter, set_filter
from stormdash.freshness import freshness_badge
from stormdash.metrics_map import DEFAULT_COLOR_MODE, ColorMode, MapMarker, clean_color_mode, map_chart, map_markers
from stormdash.metrics_stats import Stats, format_date_range, state_breakdown, stats_cards, stats_for
from stormdash.metrics_table import SortBy, SortOrder, sort_reports, table_rows
from stormdash.metrics_timeline import TimelineBucket, timeline_buckets, timeline_chart

logger = logging.getLogger(__name__)

NO_REPORTS_FOR_DATE = "No reports for selected date"
NO_REPORTS_FOR_FILTERS = "No reports match filters"
LOADING_TEXT = "Loading..."


class ViewStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    EMPTY = "empty"


@dataclass(frozen=True, eq=False)
class DashboardSnapshot:
    cycle: int
    status: ViewStatus
    status_text: str
    status_class: str
    filters: FilterState
    color_mode: ColorMode
    stats: Stats
    timeline: List[TimelineBucket]
    markers: List[MapMarker]
    rows: List[Dict[str, Any]]
    options: Dict[str, Any]
    freshness: Dict[str, str]
    reports: pd.DataFrame = field(repr=False)


def status_line(batch: ReportBatch, view: pd.DataFrame) -> tuple[ViewStatus, str, str]:
    if batch.is_empty:
        return ViewStatus.EMPTY, NO_REPORTS_FOR_DATE, "empty"
    if view.empty:
        return ViewStatus.EMPTY, NO_REPORTS_FOR_FILTERS, "empty"
    return ViewStatus.READY, f"{batch.count} reports loaded", "ok"


def build_snapshot(
    batch: ReportBatch,
    filters: FilterState,
    *,
    color_mode: ColorMode = DEFAULT_COLOR_MODE,
    cycle: int = 0,
    tz: str = "UTC",
    sort_by: SortBy = "time",
    sort_order: SortOrder = "asc",
) -> DashboardSnapshot:
    """One recomputation: filter once, derive every view from that one frame."""
    ctx = prepare_context(batch, filters)
    view: pd.DataFrame = ctx["filtered_reports"]
    status, text, css = status_line(batch, view)
    return DashboardSnapshot(
        cycle=cycle,
        status=status,
        status_text=text,
        status_class=css,
        filters=ctx["filters"],
        color_mode=color_mode,
        stats=stats_for(view, batch),
        timeline=timeline_buckets(view, tz=tz),
        markers=map_markers(view, color_mode),
        rows=table_rows(sort_reports(view, sort_by, sort_order), tz=tz),
        options=ctx["options"],
        freshness=freshness_badge(batch.meta.data_lag_minutes),
        reports=view,
    )


def snapshot_payload(snapshot: DashboardSnapshot, *, include_charts: bool = True) -> Dict[str, Any]:
    stats = asdict(snapshot.stats)
    if snapshot.stats.date_range is not None:
        stats["date_range"] = [d.isoformat() for d in snapshot.stats.date_range]
    payload: Dict[str, Any] = {
        "cycle": snapshot.cycle,
        "status": {"state": snapshot.status.value, "text": snapshot.status_text, "css_class": snapshot.status_class},
        "filters": asdict(snapshot.filters),
        "color_mode": snapshot.color_mode,
        "stats": stats,
        "cards": stats_cards(snapshot.stats),
        "date_range": format_date_range(snapshot.stats),
        "by_state": state_breakdown(snapshot.reports),
        "timeline": [
            {"hour": b.hour, "total": b.total, "counts_by_type": dict(b.counts_by_type), "segments": b.segments()}
            for b in snapshot.timeline
        ],
        "markers": [{**asdict(m), "color": m.color} for m in snapshot.markers],
        "rows": snapshot.rows,
        "options": snapshot.options,
        "freshness": snapshot.freshness,
        "charts": {},
    }
    if include_charts and snapshot.timeline:
        payload["charts"] = {
            "timeline": timeline_chart(snapshot.timeline),
            "map": map_chart(snapshot.reports, snapshot.color_mode),
        }
    return payload


Listener = Callable[[DashboardSnapshot], None]


class ViewSync:
    def __init__(
        self,
        loader: Callable[[DateSelection], ReportBatch],
        *,
        color_mode: ColorMode = DEFAULT_COLOR_MODE,
        tz: str = "UTC",
    ) -> None:
        self._loader = loader
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._pending: Optional[DateSelection] = None
        self.tz = tz
        self.color_mode: ColorMode = clean_color_mode(color_mode)
        self.filters = FilterState()
        self.batch: Optional[ReportBatch] = None
        self.snapshot: Optional[DashboardSnapshot] = None
        self.status = ViewStatus.IDLE
        self.load_error: Optional[str] = None
        self.cycles = 0

    # ---------------- Subscribers ----------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)
            if self.snapshot is not None:
                listener(self.snapshot)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, snapshot: DashboardSnapshot) -> None:
        self.snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)

    def _recompute(self) -> None:
        if self.batch is None:
            return
        self.cycles += 1
        snapshot = build_snapshot(self.batch, self.filters, color_mode=self.color_mode, cycle=self.cycles, tz=self.tz)
        self.status = snapshot.status
        self._publish(snapshot)

    # ---------------- Loading ----------------
    def begin_load(self, selection: DateSelection) -> None:
        """Enter Loading; the current snapshot stays published until the batch resolves."""
        with self._lock:
            self._pending = selection
            self.status = ViewStatus.LOADING
            if self.snapshot is not None:
                self._publish(replace(self.snapshot, status_text=LOADING_TEXT, status_class="loading"))

    def finish_load(self, batch: ReportBatch) -> bool:
        with self._lock:
            if self._pending is not None and batch.selection != self._pending:
                logger.info("discarding stale batch for %s", batch.selection)
                return False
            self._pending = None
            self.batch = batch
            self.load_error = None
            self._recompute()
            return True

    def fail_load(self, selection: DateSelection, error: Exception) -> None:
        """Keep the previous batch and views; surface the failure on the status line."""
        with self._lock:
            if self._pending is not None and selection != self._pending:
                return
            self._pending = None
            self.load_error = str(error)
            logger.warning("load failed for %s: %s", selection, error)
            if self.snapshot is None:
                self.status = ViewStatus.IDLE
                return
            self.status = self.snapshot.status
            self._publish(replace(self.snapshot, status_text=f"Failed to load reports: {error}", status_class="err"))

    def load(self, selection: DateSelection) -> bool:
        self.begin_load(selection)
        try:
            batch = self._loader(selection)
        except LoadFailure as exc:
            self.fail_load(selection, exc)
            return False
        except Exception as exc:
            logger.exception("loader crashed for %s", selection)
            self.fail_load(selection, exc)
            return False
        return self.finish_load(batch)

    # ---------------- Filters ----------------
    def _accept(self, update: FilterUpdate) -> FilterUpdate:
        if update.changed:
            self.filters = update.filters
            self._recompute()
        return update

    def set_filter(self, name: str, value: object) -> FilterUpdate:
        with self._lock:
            return self._accept(set_filter(self.filters, name, value))

    def reset(self, name: str) -> FilterUpdate:
        with self._lock:
            return self._accept(reset_filter(self.filters, name))

    def apply(self, changes: Mapping[str, Any]) -> FilterUpdate:
        """Several field changes from one gesture, one recomputation."""
        with self._lock:
            return self._accept(apply_changes(self.filters, changes))

    def set_color_mode(self, mode: str) -> None:
        with self._lock:
            cleaned = clean_color_mode(mode)
            if cleaned == self.color_mode:
                return
            self.color_mode = cleaned
            self._recompute()
