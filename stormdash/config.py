from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class SeverityThresholds:
    hail_in: float = 1.0
    wind_mph: float = 58.0
    tornado_ef: float = 1.0


@dataclass(frozen=True)
class Settings:
    api_url: str = "http://localhost:8080"
    query_path: str = "/query"
    timeout_s: float = 10.0
    page_size: int = 500
    lookback_days: int = 14
    data_dir: Optional[str] = None
    display_tz: str = "UTC"
    log_level: str = "INFO"
    thresholds: SeverityThresholds = field(default_factory=SeverityThresholds)

    @property
    def query_url(self) -> str:
        return self.api_url.rstrip("/") + "/" + self.query_path.lstrip("/")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return max(1, int(value))
    except ValueError:
        return default


def settings_from_env() -> Settings:
    load_dotenv()
    return Settings(
        api_url=os.getenv("STORMDASH_API_URL", "http://localhost:8080").strip() or "http://localhost:8080",
        query_path=os.getenv("STORMDASH_QUERY_PATH", "/query").strip() or "/query",
        timeout_s=_env_float("STORMDASH_TIMEOUT_S", 10.0),
        page_size=_env_int("STORMDASH_PAGE_SIZE", 500),
        lookback_days=_env_int("STORMDASH_LOOKBACK_DAYS", 14),
        data_dir=os.getenv("STORMDASH_DATA_DIR", "").strip() or None,
        display_tz=os.getenv("STORMDASH_DISPLAY_TZ", "UTC").strip() or "UTC",
        log_level=os.getenv("STORMDASH_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        thresholds=SeverityThresholds(
            hail_in=_env_float("STORMDASH_SEVERE_HAIL_IN", 1.0),
            wind_mph=_env_float("STORMDASH_SEVERE_WIND_MPH", 58.0),
            tornado_ef=_env_float("STORMDASH_SEVERE_TORNADO_EF", 1.0),
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return settings_from_env()


def configure_logging(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
