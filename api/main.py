from __future__ import annotations

import datetime as dt
import logging
import math
from functools import lru_cache
from typing import Literal, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import DashboardRequestModel, MetaListResponse, QueryRunModel
from stormdash.client import QueryServiceClient
from stormdash.config import configure_logging, get_settings
from stormdash.data import ReportBatch, ReportStore
from stormdash.dates import DateSelection, default_date
from stormdash.engine import county_options, prepare_context, state_options
from stormdash.errors import LoadFailure, QueryConsoleBusy
from stormdash.filters import FilterState, normalize_filters
from stormdash.metrics_map import clean_color_mode, compute_map
from stormdash.metrics_stats import compute_stats
from stormdash.metrics_table import compute_table, export_frame, sort_reports
from stormdash.metrics_timeline import compute_timeline
from stormdash.query_console import QueryConsole, QueryStatus
from stormdash.view_sync import build_snapshot, snapshot_payload

configure_logging()
app = FastAPI(title="Storm Reports Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_client() -> QueryServiceClient:
    return QueryServiceClient.from_settings(get_settings())


@lru_cache(maxsize=1)
def get_store() -> ReportStore:
    settings = get_settings()
    if settings.data_dir:
        return ReportStore(data_dir=settings.data_dir, thresholds=settings.thresholds)
    return ReportStore(
        client=get_client(),
        page_size=settings.page_size,
        lookback_days=settings.lookback_days,
        thresholds=settings.thresholds,
    )


@lru_cache(maxsize=1)
def get_console() -> QueryConsole:
    return QueryConsole(get_client())


def _selection(date_from: Optional[dt.date], date_to: Optional[dt.date]) -> DateSelection:
    start = date_from or default_date(get_store().latest_date())
    return DateSelection(start, max(start, date_to or start))


def _batch(model: DashboardRequestModel) -> ReportBatch:
    return get_store().load(_selection(model.date_from, model.date_to))


def _filters(model: DashboardRequestModel) -> FilterState:
    return normalize_filters(model.model_dump(include={"type", "state", "county", "severity"}))


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/healthz")
def healthz():
    return {"status": "healthy"}


@app.get("/meta/latest-date")
def meta_latest_date():
    try:
        latest = get_store().latest_date()
        return _json({"latest": latest.isoformat() if latest else None, "default": default_date(latest).isoformat()})
    except Exception as exc:
        logger.exception("meta_latest_date failed")
        return _error(exc)


@app.get("/meta/states", response_model=MetaListResponse)
def meta_states(date: Optional[dt.date] = Query(default=None)):
    try:
        batch = get_store().load(_selection(date, None))
        return _json({"values": state_options(batch.reports)})
    except LoadFailure as exc:
        logger.warning("meta_states load failed: %s", exc)
        return _error(exc, 502)
    except Exception as exc:
        logger.exception("meta_states failed")
        return _error(exc)


@app.get("/meta/counties", response_model=MetaListResponse)
def meta_counties(date: Optional[dt.date] = Query(default=None), state: str = Query(default="")):
    try:
        batch = get_store().load(_selection(date, None))
        code = state.strip().upper() or None
        return _json({"values": county_options(batch.reports, code)})
    except LoadFailure as exc:
        logger.warning("meta_counties load failed: %s", exc)
        return _error(exc, 502)
    except Exception as exc:
        logger.exception("meta_counties failed")
        return _error(exc)


@app.post("/dashboard")
def dashboard(
    body: DashboardRequestModel,
    color_mode: Literal["type", "severity"] = Query(default="type"),
    include_charts: bool = Query(default=True),
):
    try:
        batch = _batch(body)
        snapshot = build_snapshot(batch, _filters(body), color_mode=color_mode, tz=get_settings().display_tz)
        return _json(snapshot_payload(snapshot, include_charts=include_charts))
    except LoadFailure as exc:
        logger.warning("dashboard load failed: %s", exc)
        return _error(exc, 502)
    except Exception as exc:
        logger.exception("dashboard failed")
        return _error(exc)


@app.post("/stats")
def stats(body: DashboardRequestModel):
    try:
        ctx = prepare_context(_batch(body), _filters(body))
        return _json(compute_stats(ctx["filters"], ctx))
    except LoadFailure as exc:
        logger.warning("stats load failed: %s", exc)
        return _error(exc, 502)
    except Exception as exc:
        logger.exception("stats failed")
        return _error(exc)


@app.post("/timeline")
def timeline(body: DashboardRequestModel):
    try:
        ctx = prepare_context(_batch(body), _filters(body))
        return _json(compute_timeline(ctx["filters"], ctx, tz=get_settings().display_tz))
    except LoadFailure as exc:
        logger.warning("timeline load failed: %s", exc)
        return _error(exc, 502)
    except Exception as exc:
        logger.exception("timeline failed")
        return _error(exc)


@app.post("/map")
def map_markers(body: DashboardRequestModel, color_mode: Literal["type", "severity"] = Query(default="type")):
    try:
        ctx = prepare_context(_batch(body), _filters(body))
        return _json(compute_map(ctx["filters"], ctx, color_mode=clean_color_mode(color_mode)))
    except LoadFailure as exc:
        logger.warning("map load failed: %s", exc)
        return _error(exc, 502)
    except Exception as exc:
        logger.exception("map failed")
        return _error(exc)


@app.post("/reports")
def reports(
    body: DashboardRequestModel,
    sort_by: Literal["time", "magnitude"] = Query(default="time"),
    sort_order: Literal["asc", "desc"] = Query(default="asc"),
):
    try:
        ctx = prepare_context(_batch(body), _filters(body))
        return _json(compute_table(ctx["filters"], ctx, sort_by=sort_by, sort_order=sort_order, tz=get_settings().display_tz))
    except LoadFailure as exc:
        logger.warning("reports load failed: %s", exc)
        return _error(exc, 502)
    except Exception as exc:
        logger.exception("reports failed")
        return _error(exc)


@app.post("/export/reports")
def export_reports(
    body: DashboardRequestModel,
    sort_by: Literal["time", "magnitude"] = Query(default="time"),
    sort_order: Literal["asc", "desc"] = Query(default="asc"),
):
    try:
        batch = _batch(body)
        ctx = prepare_context(batch, _filters(body))
        export_df = export_frame(sort_reports(ctx["filtered_reports"], sort_by, sort_order), tz=get_settings().display_tz)
    except LoadFailure as exc:
        logger.warning("export load failed: %s", exc)
        return _error(exc, 502)
    except Exception as exc:
        logger.exception("export failed")
        return _error(exc)
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    selection = batch.selection
    span = selection.date_from.isoformat()
    if not selection.is_single_day:
        span += f"_{selection.date_to.isoformat()}"
    filename = f"storm-reports-{span}.csv"
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})


@app.get("/query/default")
def query_default():
    return {"query": get_console().default_query}


@app.post("/query/run")
def query_run(body: QueryRunModel):
    console = get_console()
    try:
        console.set_editable(True)
        console.set_text(body.query if body.query is not None else console.default_query)
        execution = console.run()
    except QueryConsoleBusy as exc:
        return _error(exc, 409)
    except Exception as exc:
        logger.exception("query_run failed")
        return _error(exc)
    status_code = 502 if execution.status == QueryStatus.ERROR else 200
    return _json(execution.to_payload(), status_code=status_code)
