from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from sqlalchemy.sql import Select

from salescrm.errors import ValidationError


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Inclusive [start, end] range in UTC. Independent of authorization scope."""

    start: datetime
    end: datetime

    def criteria(self, column: Any) -> tuple[Any, Any]:
        return column >= self.start, column <= self.end

    def apply(self, query: Select[Any], column: Any) -> Select[Any]:
        return query.where(*self.criteria(column))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_window(day: date) -> TimeWindow:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = datetime.combine(day, time(23, 59, 59, 999000), tzinfo=timezone.utc)
    return TimeWindow(start=start, end=end)


def month_window(year: int, month: int) -> TimeWindow:
    if month < 1 or month > 12:
        raise ValidationError("Month must be between 1 and 12")
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    next_start = datetime(year + 1, 1, 1, tzinfo=timezone.utc) if month == 12 else datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return TimeWindow(start=start, end=next_start - timedelta(milliseconds=1))


def current_month_window(now: datetime | None = None) -> TimeWindow:
    now = now or datetime.now(timezone.utc)
    return month_window(now.year, now.month)


def previous_month_window(now: datetime | None = None) -> TimeWindow:
    now = now or datetime.now(timezone.utc)
    if now.month == 1:
        return month_window(now.year - 1, 12)
    return month_window(now.year, now.month - 1)


def today_window(now: datetime | None = None) -> TimeWindow:
    now = now or datetime.now(timezone.utc)
    return day_window(now.date())


def resolve_window(
    *,
    day: date | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> TimeWindow | None:
    """Explicit start+end wins over a single day; nothing given means no window."""

    if start is not None and end is not None:
        start_utc, end_utc = _as_utc(start), _as_utc(end)
        if start_utc > end_utc:
            raise ValidationError("start_date must not be after end_date")
        return TimeWindow(start=start_utc, end=end_utc)
    if start is not None or end is not None:
        raise ValidationError("start_date and end_date must be provided together")
    if day is not None:
        return day_window(day)
    return None
