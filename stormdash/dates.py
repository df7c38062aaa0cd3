from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateSelection:
    date_from: dt.date
    date_to: dt.date

    def __post_init__(self) -> None:
        if self.date_to < self.date_from:
            raise ValueError(f"date_to {self.date_to} is before date_from {self.date_from}")

    @classmethod
    def single(cls, day: dt.date) -> "DateSelection":
        return cls(day, day)

    @property
    def is_single_day(self) -> bool:
        return self.date_from == self.date_to

    def time_range(self) -> Tuple[dt.datetime, dt.datetime]:
        """Half-open UTC window [date_from 00:00, date_to + 1 day 00:00)."""
        start = dt.datetime.combine(self.date_from, dt.time.min, tzinfo=dt.timezone.utc)
        end = dt.datetime.combine(self.date_to + dt.timedelta(days=1), dt.time.min, tzinfo=dt.timezone.utc)
        return start, end


def parse_date(value: object) -> dt.date:
    """Accept a date, datetime or YYYY-MM-DD string."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    return dt.date.fromisoformat(str(value).strip())


class DateSelector:
    """Active date (or date range) with a range toggle.

    Every change that alters the selection notifies listeners exactly once;
    listeners typically reload the report batch.
    """

    def __init__(self, initial: dt.date) -> None:
        self.date_from = initial
        self.date_to = initial
        self.range_enabled = False
        self._listeners: List[Callable[[DateSelection], None]] = []

    @property
    def selection(self) -> DateSelection:
        if not self.range_enabled:
            return DateSelection.single(self.date_from)
        return DateSelection(self.date_from, max(self.date_from, self.date_to))

    @property
    def end_visible(self) -> bool:
        return self.range_enabled

    def subscribe(self, listener: Callable[[DateSelection], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        selection = self.selection
        logger.info("date selection changed: %s .. %s", selection.date_from, selection.date_to)
        for listener in list(self._listeners):
            listener(selection)

    def set_from(self, value: object) -> None:
        day = parse_date(value)
        if day == self.date_from:
            return
        self.date_from = day
        if self.date_to < day:
            self.date_to = day
        self._emit()

    def set_to(self, value: object) -> None:
        if not self.range_enabled:
            return
        day = max(parse_date(value), self.date_from)
        if day == self.date_to:
            return
        self.date_to = day
        self._emit()

    def set_range_enabled(self, enabled: bool) -> None:
        if enabled == self.range_enabled:
            return
        self.range_enabled = enabled
        if enabled:
            # Both ends start on the same day, so the selection is unchanged.
            self.date_to = self.date_from
            return
        self.date_to = self.date_from
        self._emit()


def default_date(latest: Optional[dt.date] = None, *, today: Optional[dt.date] = None) -> dt.date:
    if latest is not None:
        return latest
    return today or dt.datetime.now(dt.timezone.utc).date()
