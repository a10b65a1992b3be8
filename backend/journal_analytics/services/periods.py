"""Calendar boundaries for named periods in the configured timezone.

Daily ledger records are keyed by calendar date in one fixed timezone, so all
ranges here are inclusive ``date`` pairs. Named periods only resolve to a
``DateRange``; aggregation always goes through the generic range path.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .domain import DateRange, PeriodType, TimeOfDay
from .errors import InvalidInputError

WEEKDAY_LABELS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

# Session buckets in exchange-local time: (bucket, start inclusive, end exclusive).
TIME_OF_DAY_BUCKETS: tuple[tuple[TimeOfDay, time, time], ...] = (
    (TimeOfDay.OPENING, time(9, 15), time(10, 0)),
    (TimeOfDay.MORNING, time(10, 0), time(12, 0)),
    (TimeOfDay.MIDDAY, time(12, 0), time(14, 0)),
    (TimeOfDay.CLOSING, time(14, 0), time(15, 30)),
)


def get_zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidInputError(f"Unknown timezone: {tz_name}") from exc


def today(tz_name: str) -> date:
    return datetime.now(get_zone(tz_name)).date()


def subtract_months(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def month_range(year: int, month: int) -> DateRange:
    if not 1 <= month <= 12:
        raise InvalidInputError("month must be between 1 and 12")
    return DateRange(date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1]))


def year_range(year: int) -> DateRange:
    return DateRange(date(year, 1, 1), date(year, 12, 31))


def week_range(day: date) -> DateRange:
    start = day - timedelta(days=day.weekday())
    return DateRange(start, start + timedelta(days=6))


def quarter_range(day: date) -> DateRange:
    first_month = 3 * ((day.month - 1) // 3) + 1
    return DateRange(date(day.year, first_month, 1), month_range(day.year, first_month + 2).end)


def named_range(name: str, reference: date) -> DateRange:
    """Resolve relative period names such as ``last_30_days`` against ``reference``."""

    if name == "today":
        return DateRange(reference, reference)
    if name == "yesterday":
        previous = reference - timedelta(days=1)
        return DateRange(previous, previous)
    if name == "this_week":
        return week_range(reference)
    if name == "last_week":
        return week_range(reference - timedelta(days=7))
    if name == "this_month":
        return month_range(reference.year, reference.month)
    if name == "last_month":
        previous = subtract_months(reference, 1)
        return month_range(previous.year, previous.month)
    if name == "this_quarter":
        return quarter_range(reference)
    if name == "this_year":
        return year_range(reference.year)
    if name.startswith("last_") and name.endswith("_days"):
        try:
            days = int(name[len("last_") : -len("_days")])
        except ValueError as exc:
            raise InvalidInputError(f"Unknown period: {name}") from exc
        if days in (7, 30, 90, 365):
            return DateRange(reference - timedelta(days=days - 1), reference)
    raise InvalidInputError(f"Unknown period: {name}")


def resolve_window(
    start: date | None,
    end: date | None,
    *,
    reference: date,
    lookback_months: int,
) -> DateRange:
    """Fill in missing bounds: ``end`` defaults to today, ``start`` to ``lookback_months`` earlier."""

    end = end or reference
    start = start or subtract_months(end, lookback_months)
    return DateRange(start, end)


def period_key(period_type: PeriodType, day: date) -> str:
    """Key used by the ledger for pre-aggregated period records."""

    if period_type is PeriodType.DAILY:
        return day.isoformat()
    if period_type is PeriodType.WEEKLY:
        iso_year, iso_week, _ = day.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if period_type is PeriodType.MONTHLY:
        return f"{day.year}-{day.month:02d}"
    if period_type is PeriodType.YEARLY:
        return str(day.year)
    raise InvalidInputError("custom periods have no period key")


def time_of_day_bucket(timestamp: datetime, tz_name: str) -> TimeOfDay:
    """Bucket an execution timestamp by exchange session; naive values are treated as UTC."""

    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    local = timestamp.astimezone(get_zone(tz_name)).time()
    for bucket, begins, ends in TIME_OF_DAY_BUCKETS:
        if begins <= local < ends:
            return bucket
    return TimeOfDay.AFTER_HOURS


__all__ = [
    "WEEKDAY_LABELS",
    "TIME_OF_DAY_BUCKETS",
    "get_zone",
    "today",
    "subtract_months",
    "month_range",
    "year_range",
    "week_range",
    "quarter_range",
    "named_range",
    "resolve_window",
    "period_key",
    "time_of_day_bucket",
]
