from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import requests

from stormdash.config import Settings, get_settings
from stormdash.errors import QueryExecutionFailure

logger = logging.getLogger(__name__)


class QueryServiceClient:
    """Thin GraphQL-over-HTTP client for the storm report query service."""

    def __init__(self, url: str, *, timeout_s: float = 10.0, session: Optional[requests.Session] = None) -> None:
        self.url = url
        self.timeout_s = timeout_s
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, *, session: Optional[requests.Session] = None) -> "QueryServiceClient":
        settings = settings or get_settings()
        return cls(settings.query_url, timeout_s=settings.timeout_s, session=session)

    def execute(self, query: str) -> str:
        """Send query text verbatim and return the raw response body."""
        headers = {"Content-Type": "application/json"}
        try:
            resp = self.session.post(self.url, json={"query": query}, headers=headers, timeout=self.timeout_s)
        except requests.exceptions.RequestException as exc:
            raise QueryExecutionFailure(f"query service unreachable: {exc}") from exc
        if resp.status_code != 200:
            raise QueryExecutionFailure(
                f"query service returned status {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )
        return resp.text

    def graphql(self, query: str) -> Dict[str, Any]:
        """Execute and decode, returning the `data` object."""
        body = self.execute(query)
        try:
            payload = json.loads(body)
        except ValueError as exc:
            raise QueryExecutionFailure("malformed response from query service", body=body) from exc
        if not isinstance(payload, dict):
            raise QueryExecutionFailure("malformed response from query service", body=body)
        errors = payload.get("errors") or []
        if errors:
            messages = "; ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
            raise QueryExecutionFailure(f"GraphQL errors: {messages}", body=body)
        data = payload.get("data")
        if not isinstance(data, dict):
            raise QueryExecutionFailure("response has no data object", body=body)
        return data

    def health(self) -> bool:
        base = self.url.rsplit("/", 1)[0]
        try:
            resp = self.session.get(base + "/healthz", timeout=self.timeout_s)
        except requests.exceptions.RequestException:
            logger.warning("health check failed for %s", base)
            return False
        return resp.status_code == 200
