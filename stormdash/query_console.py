"""
Ad hoc query console
====================

Submits raw query text to the query service, independent of the filter
pipeline. One execution at a time; a new submission is rejected while
the previous one is running. No retries and no cancellation.

    Idle -> Running -> Done | Error
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, Optional

from stormdash.client import QueryServiceClient
from stormdash.errors import QueryConsoleBusy, QueryExecutionFailure, QueryNotEditable
from stormdash.queries import DEFAULT_QUERY

logger = logging.getLogger(__name__)

RUNNING_TEXT = "Running..."


class QueryStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class QueryExecution:
    query_text: str
    status: QueryStatus = QueryStatus.IDLE
    result_text: Optional[str] = None
    elapsed_ms: Optional[int] = None
    error: Optional[str] = None

    @property
    def timing(self) -> str:
        return f"{self.elapsed_ms}ms" if self.elapsed_ms is not None else ""

    @property
    def display_text(self) -> str:
        if self.status == QueryStatus.RUNNING:
            return RUNNING_TEXT
        if self.status == QueryStatus.ERROR:
            return self.error or ""
        return self.result_text or ""

    def to_payload(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        payload["timing"] = self.timing
        payload["display_text"] = self.display_text
        return payload


class QueryConsole:
    def __init__(
        self,
        client: QueryServiceClient,
        *,
        default_query: str = DEFAULT_QUERY,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.client = client
        self.default_query = default_query
        self.text = default_query
        self.editable = False
        self.execution = QueryExecution(query_text=default_query)
        self._clock = clock
        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def running(self) -> bool:
        return self.execution.status == QueryStatus.RUNNING

    @property
    def can_run(self) -> bool:
        return self.editable and not self.running

    def set_editable(self, editable: bool) -> None:
        self.editable = bool(editable)

    def set_text(self, text: str) -> None:
        if not self.editable:
            raise QueryNotEditable("enable editing before changing the query")
        self.text = text

    def restore_default(self) -> None:
        self.text = self.default_query

    def submit(self) -> "Future[QueryExecution]":
        """Start an execution in the background and return its future."""
        with self._lock:
            if not self.editable:
                raise QueryNotEditable("enable editing before running the query")
            if self.running:
                raise QueryConsoleBusy("a query is already running")
            query_text = self.text
            self.execution = QueryExecution(query_text=query_text, status=QueryStatus.RUNNING)
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="query-console")
            return self._executor.submit(self._execute, query_text)

    def run(self) -> QueryExecution:
        return self.submit().result()

    def _execute(self, query_text: str) -> QueryExecution:
        started = self._clock()
        try:
            result = self.client.execute(query_text)
        except QueryExecutionFailure as exc:
            return self._settle(QueryExecution(query_text, QueryStatus.ERROR, error=_error_text(exc)), started)
        except Exception as exc:
            logger.exception("query execution crashed")
            self._settle(QueryExecution(query_text, QueryStatus.ERROR, error=str(exc)), started)
            raise
        return self._settle(QueryExecution(query_text, QueryStatus.DONE, result_text=result), started)

    def _settle(self, execution: QueryExecution, started: float) -> QueryExecution:
        elapsed_ms = int(round((self._clock() - started) * 1000))
        execution = replace(execution, elapsed_ms=elapsed_ms)
        with self._lock:
            self.execution = execution
        logger.info("query %s in %dms", execution.status.value, elapsed_ms)
        return execution

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None


def _error_text(exc: QueryExecutionFailure) -> str:
    if exc.body:
        return f"{exc}\n{exc.body}"
    return str(exc)
