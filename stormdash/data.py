from __future__ import annotations

import datetime as dt
import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from stormdash.client import QueryServiceClient
from stormdash.config import SeverityThresholds
from stormdash.dates import DateSelection
from stormdash.errors import LoadFailure, QueryExecutionFailure
from stormdash.models import (
    EVENT_TYPES,
    HAIL,
    REPORT_COLUMNS,
    TORNADO,
    UNITS,
    WIND,
    Report,
    classify_severity,
    empty_reports_frame,
    normalize_event_type,
)
from stormdash.queries import build_lookback_query, build_reports_query

logger = logging.getLogger(__name__)

SPC_FILE_SUFFIX = {HAIL: "hail", TORNADO: "torn", WIND: "wind"}
SPC_MAGNITUDE_COLUMN = {HAIL: "Size", TORNADO: "F_Scale", WIND: "Speed"}
SPC_FILE_RE = re.compile(r"^(\d{6})_rpts_(hail|torn|wind)\.csv$")


@dataclass(frozen=True)
class BatchMeta:
    last_updated: Optional[pd.Timestamp] = None
    data_lag_minutes: Optional[int] = None


@dataclass(frozen=True, eq=False)
class ReportBatch:
    """All reports for one date selection. Never mutated after loading."""

    reports: pd.DataFrame
    selection: DateSelection
    meta: BatchMeta = field(default_factory=BatchMeta)

    @property
    def count(self) -> int:
        return int(len(self.reports))

    @property
    def is_empty(self) -> bool:
        return self.reports.empty

    @property
    def date_from(self) -> dt.date:
        return self.selection.date_from

    @property
    def date_to(self) -> dt.date:
        return self.selection.date_to

    def report(self, report_id: str) -> Optional[Report]:
        match = self.reports[self.reports["id"].astype(str) == str(report_id)]
        if match.empty:
            return None
        return Report.from_row(match.iloc[0])


def empty_batch(selection: DateSelection, meta: Optional[BatchMeta] = None) -> ReportBatch:
    return ReportBatch(reports=empty_reports_frame(), selection=selection, meta=meta or BatchMeta())


def finalize_reports(
    df: pd.DataFrame,
    selection: DateSelection,
    thresholds: Optional[SeverityThresholds] = None,
) -> pd.DataFrame:
    """Coerce types, derive severity/unit, enforce the date window and sort."""
    if df.empty:
        return empty_reports_frame()
    df = df.copy()
    for col in REPORT_COLUMNS:
        if col not in df.columns:
            df[col] = pd.NA

    df["event_type"] = df["event_type"].apply(normalize_event_type)
    unknown = df["event_type"].isna()
    if unknown.any():
        logger.warning("dropping %d reports with unknown event type", int(unknown.sum()))
        df = df[~unknown]

    df["id"] = df["id"].astype(str)
    df["state"] = df["state"].fillna("").astype(str).str.strip().str.upper()
    df["county"] = df["county"].fillna("").astype(str).str.strip()
    df["magnitude"] = pd.to_numeric(df["magnitude"], errors="coerce")
    df["lat"] = pd.to_numeric(df["lat"], errors="coerce")
    df["lon"] = pd.to_numeric(df["lon"], errors="coerce")
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
    df["unit"] = df["event_type"].map(UNITS)
    df["severity"] = [classify_severity(t, m, thresholds) for t, m in zip(df["event_type"], df["magnitude"])]

    start, end = selection.time_range()
    in_window = df["timestamp"].notna() & (df["timestamp"] >= pd.Timestamp(start)) & (df["timestamp"] < pd.Timestamp(end))
    dropped = int((~in_window).sum())
    if dropped:
        logger.warning("dropping %d reports outside %s .. %s", dropped, selection.date_from, selection.date_to)
    df = df[in_window]

    df = df[REPORT_COLUMNS].sort_values(["timestamp", "id"], kind="mergesort").reset_index(drop=True)
    return df


# ---------------- Query service source ----------------
def records_to_frame(records: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    """Flatten GraphQL report objects into report columns."""
    rows = []
    for r in records:
        measurement = r.get("measurement") or {}
        geo = r.get("geo") or {}
        location = r.get("location") or {}
        rows.append(
            {
                "id": r.get("id"),
                "event_type": r.get("eventType"),
                "state": location.get("state"),
                "county": location.get("county"),
                "magnitude": measurement.get("magnitude"),
                "timestamp": r.get("beginTime"),
                "lat": geo.get("lat"),
                "lon": geo.get("lon"),
                "location": location.get("name"),
                "source_office": r.get("sourceOffice"),
                "comments": r.get("comments"),
            }
        )
    return pd.DataFrame(rows)


def _meta_from(payload: Dict[str, Any]) -> BatchMeta:
    meta = payload.get("meta") or {}
    last_updated = pd.to_datetime(meta.get("lastUpdated"), utc=True, errors="coerce") if meta.get("lastUpdated") else None
    lag = meta.get("dataLagMinutes")
    try:
        lag = int(lag) if lag is not None else None
    except (TypeError, ValueError):
        lag = None
    return BatchMeta(last_updated=None if last_updated is None or pd.isna(last_updated) else last_updated, data_lag_minutes=lag)


def fetch_report_batch(
    client: QueryServiceClient,
    selection: DateSelection,
    *,
    page_size: int = 500,
    thresholds: Optional[SeverityThresholds] = None,
) -> ReportBatch:
    """Fetch every report for the selection, following `hasMore` pages."""
    start, end = selection.time_range()
    records: List[Dict[str, Any]] = []
    meta = BatchMeta()
    offset = 0
    while True:
        query = build_reports_query(start, end, limit=page_size, offset=offset)
        try:
            data = client.graphql(query)
        except QueryExecutionFailure as exc:
            raise LoadFailure(f"could not load reports for {selection.date_from}: {exc}") from exc
        payload = data.get("stormReports")
        if not isinstance(payload, dict):
            raise LoadFailure("query service response has no stormReports object")
        page = payload.get("reports") or []
        if not isinstance(page, list) or not all(isinstance(r, dict) for r in page):
            raise LoadFailure("query service returned malformed report objects")
        if offset == 0:
            meta = _meta_from(payload)
        records.extend(page)
        offset += len(page)
        if not payload.get("hasMore") or not page:
            break

    logger.info("loaded %d reports for %s .. %s", len(records), selection.date_from, selection.date_to)
    try:
        reports = finalize_reports(records_to_frame(records), selection, thresholds)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise LoadFailure(f"could not decode reports for {selection.date_from}: {exc}") from exc
    return ReportBatch(reports=reports, selection=selection, meta=meta)


def detect_latest_date(
    client: QueryServiceClient,
    *,
    lookback_days: int = 14,
    limit: int = 500,
    today: Optional[dt.date] = None,
) -> Optional[dt.date]:
    """Calendar date of the most recent report in the look-back window, if any."""
    today = today or dt.datetime.now(dt.timezone.utc).date()
    window = DateSelection(today - dt.timedelta(days=lookback_days), today)
    start, end = window.time_range()
    try:
        data = client.graphql(build_lookback_query(start, end, limit=limit))
    except QueryExecutionFailure as exc:
        logger.warning("date auto-detection failed: %s", exc)
        return None
    reports = (data.get("stormReports") or {}).get("reports") or []
    times = pd.to_datetime([r.get("beginTime") for r in reports], utc=True, errors="coerce").dropna()
    if len(times) == 0:
        return None
    return times.max().date()


# ---------------- NOAA SPC CSV source ----------------
def _spc_time(value: str, day: dt.date) -> Optional[pd.Timestamp]:
    s = (value or "").strip()
    if not s:
        return None
    if s.isdigit():
        padded = s.zfill(4)[-4:]
        hour, minute = int(padded[:2]), int(padded[2:])
        if hour > 23 or minute > 59:
            return None
        return pd.Timestamp(dt.datetime.combine(day, dt.time(hour, minute), tzinfo=dt.timezone.utc))
    ts = pd.to_datetime(s, utc=True, errors="coerce")
    return None if pd.isna(ts) else ts


def _spc_magnitude(event_type: str, value: str) -> Optional[float]:
    s = (value or "").strip().upper()
    if not s or s == "UNK":
        return None
    if event_type == TORNADO:
        m = re.match(r"^E?F(\d)$", s)
        return float(m.group(1)) if m else None
    try:
        number = float(s)
    except ValueError:
        return None
    # Hail sizes are hundredths of an inch (125 -> 1.25").
    return number / 100.0 if event_type == HAIL else number


def parse_spc_csv(source: Union[str, Path, Any], event_type: str, day: dt.date) -> pd.DataFrame:
    """Read one SPC daily report file into report columns (unfinalized)."""
    raw = pd.read_csv(source, dtype=str, keep_default_na=False)
    if raw.empty:
        return pd.DataFrame(columns=REPORT_COLUMNS)
    raw.columns = [str(c).strip() for c in raw.columns]
    mag_col = SPC_MAGNITUDE_COLUMN[event_type]
    suffix = SPC_FILE_SUFFIX[event_type]
    rows = []
    for i, rec in enumerate(raw.to_dict(orient="records")):
        rows.append(
            {
                "id": f"{day:%y%m%d}-{suffix}-{i + 1:04d}",
                "event_type": event_type,
                "state": rec.get("State"),
                "county": rec.get("County"),
                "magnitude": _spc_magnitude(event_type, rec.get(mag_col, "")),
                "timestamp": _spc_time(rec.get("Time", ""), day),
                "lat": rec.get("Lat"),
                "lon": rec.get("Lon"),
                "location": rec.get("Location") or None,
                "source_office": _office_from_comments(rec.get("Comments", "")),
                "comments": rec.get("Comments") or None,
            }
        )
    return pd.DataFrame(rows)


def _office_from_comments(comments: str) -> Optional[str]:
    # SPC comments end with the issuing office in parentheses, e.g. "(SJT)".
    m = re.search(r"\(([A-Z]{3})\)\s*$", comments or "")
    return m.group(1) if m else None


def _days(selection: DateSelection) -> List[dt.date]:
    span = (selection.date_to - selection.date_from).days
    return [selection.date_from + dt.timedelta(days=n) for n in range(span + 1)]


def load_spc_directory(
    data_dir: Union[str, Path],
    selection: DateSelection,
    *,
    thresholds: Optional[SeverityThresholds] = None,
) -> ReportBatch:
    root = Path(data_dir)
    if not root.is_dir():
        raise LoadFailure(f"SPC data directory not found: {root}")
    frames = []
    for day in _days(selection):
        for event_type in EVENT_TYPES:
            path = root / f"{day:%y%m%d}_rpts_{SPC_FILE_SUFFIX[event_type]}.csv"
            if not path.exists():
                continue
            try:
                frames.append(parse_spc_csv(path, event_type, day))
            except (OSError, ValueError, pd.errors.ParserError) as exc:
                raise LoadFailure(f"could not read {path.name}: {exc}") from exc
    frames = [f for f in frames if not f.empty]
    combined = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame(columns=REPORT_COLUMNS)
    logger.info("read %d SPC reports from %s for %s .. %s", len(combined), root, selection.date_from, selection.date_to)
    return ReportBatch(reports=finalize_reports(combined, selection, thresholds), selection=selection)


def detect_latest_spc_date(data_dir: Union[str, Path]) -> Optional[dt.date]:
    root = Path(data_dir)
    if not root.is_dir():
        return None
    days = []
    for path in root.iterdir():
        m = SPC_FILE_RE.match(path.name)
        if m:
            days.append(dt.datetime.strptime(m.group(1), "%y%m%d").date())
    return max(days) if days else None


# ---------------- Store ----------------
class ReportStore:
    """Loads and caches one ReportBatch per date selection.

    Reads SPC CSV files when `data_dir` is set, otherwise queries the
    report service through `client`.
    """

    def __init__(
        self,
        *,
        client: Optional[QueryServiceClient] = None,
        data_dir: Optional[Union[str, Path]] = None,
        page_size: int = 500,
        lookback_days: int = 14,
        thresholds: Optional[SeverityThresholds] = None,
    ) -> None:
        if client is None and data_dir is None:
            raise ValueError("ReportStore needs a query client or an SPC data directory")
        self.client = client
        self.data_dir = data_dir
        self.page_size = page_size
        self.lookback_days = lookback_days
        self.thresholds = thresholds
        self._load_cached = lru_cache(maxsize=4)(self._load_uncached)

    def _load_uncached(self, selection: DateSelection) -> ReportBatch:
        if self.data_dir is not None:
            return load_spc_directory(self.data_dir, selection, thresholds=self.thresholds)
        return fetch_report_batch(self.client, selection, page_size=self.page_size, thresholds=self.thresholds)

    def load(self, selection: DateSelection) -> ReportBatch:
        return self._load_cached(selection)

    def latest_date(self, *, today: Optional[dt.date] = None) -> Optional[dt.date]:
        if self.data_dir is not None:
            return detect_latest_spc_date(self.data_dir)
        return detect_latest_date(self.client, lookback_days=self.lookback_days, limit=self.page_size, today=today)

    def clear(self) -> None:
        self._load_cached.cache_clear()
