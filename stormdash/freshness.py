from __future__ import annotations

from typing import Dict, Optional

WARN_AFTER_MIN = 60
STALE_AFTER_MIN = 180


def format_lag(minutes: int) -> str:
    """'45m' under an hour, otherwise '2h 5m'."""
    minutes = max(0, int(minutes))
    if minutes < 60:
        return f"{minutes}m"
    return f"{minutes // 60}h {minutes % 60}m"


def freshness_level(minutes: Optional[int]) -> str:
    if minutes is None:
        return "err"
    if minutes < WARN_AFTER_MIN:
        return "ok"
    if minutes < STALE_AFTER_MIN:
        return "warn"
    return "stale"


def freshness_badge(minutes: Optional[int]) -> Dict[str, str]:
    level = freshness_level(minutes)
    return {
        "value": format_lag(minutes) if minutes is not None else "",
        "level": level,
        "css_class": f"freshness-{level}",
    }
