"""Bucketing and period arithmetic over inclusive calendar ranges.

Granularity is chosen from the inclusive day count ``D`` of a range:
``D <= 31`` -> day, ``32 <= D <= 180`` -> week, ``D > 180`` -> month.

Bucket keys are the first calendar day of the bucket: the date itself for
days, the Monday on or before the date for weeks (ISO weeks), and the first
of the month for months. :func:`generate_buckets` enumerates every key from
the bucket containing ``start`` through the bucket containing ``end``, so a
series never has gaps, even for buckets without activity.
"""

from __future__ import annotations

from datetime import date, timedelta
from enum import StrEnum

from .deltas import Number, compute_delta
from .models import Bucket, DateRange, Granularity, PeriodComparison

# pt-BR short month names used in labels; no locale lookup involved.
MONTH_ABBREVIATIONS: tuple[str, ...] = (
    "jan",
    "fev",
    "mar",
    "abr",
    "mai",
    "jun",
    "jul",
    "ago",
    "set",
    "out",
    "nov",
    "dez",
)

WEEK_LABEL_PREFIX = "Sem"


def inclusive_days(start: date, end: date) -> int:
    return (end - start).days + 1


def choose_granularity(start: date, end: date) -> Granularity:
    days = inclusive_days(start, end)
    if days <= 31:
        return Granularity.DAY
    if days <= 180:
        return Granularity.WEEK
    return Granularity.MONTH


def add_months(day: date, months: int) -> date:
    """Shift to the same day ``months`` later, clamped to the month's end."""

    index = day.year * 12 + (day.month - 1) + months
    year, month0 = divmod(index, 12)
    month = month0 + 1
    return date(year, month, min(day.day, _days_in_month(year, month)))


def _days_in_month(year: int, month: int) -> int:
    if month == 12:
        return 31
    return (date(year, month + 1, 1) - timedelta(days=1)).day


def start_of_week(day: date) -> date:
    return day - timedelta(days=day.weekday())


def start_of_month(day: date) -> date:
    return day.replace(day=1)


def end_of_month(day: date) -> date:
    return day.replace(day=_days_in_month(day.year, day.month))


def bucket_key(day: date, granularity: Granularity) -> date:
    if granularity is Granularity.DAY:
        return day
    if granularity is Granularity.WEEK:
        return start_of_week(day)
    return start_of_month(day)


def next_bucket(key: date, granularity: Granularity) -> date:
    if granularity is Granularity.DAY:
        return key + timedelta(days=1)
    if granularity is Granularity.WEEK:
        return key + timedelta(weeks=1)
    return add_months(key, 1)


def bucket_label(key: date, granularity: Granularity) -> str:
    """Short display label: ``05/01``, ``Sem 05/01``, ``jan/26``."""

    if granularity is Granularity.DAY:
        return key.strftime("%d/%m")
    if granularity is Granularity.WEEK:
        return f"{WEEK_LABEL_PREFIX} {key.strftime('%d/%m')}"
    return f"{MONTH_ABBREVIATIONS[key.month - 1]}/{key.year % 100:02d}"


def generate_buckets(start: date, end: date, granularity: Granularity) -> list[Bucket]:
    if start > end:
        raise ValueError(f"start must not be after end ({start} > {end})")
    buckets: list[Bucket] = []
    key = bucket_key(start, granularity)
    while key <= end:
        buckets.append(Bucket(granularity, key, bucket_label(key, granularity)))
        key = next_bucket(key, granularity)
    return buckets


def calculate_previous_period(start: date, end: date) -> DateRange:
    """The window of identical length ending the day before ``start``."""

    days = inclusive_days(start, end)
    prev_end = start - timedelta(days=1)
    return DateRange(prev_end - timedelta(days=days - 1), prev_end)


def previous_range(date_range: DateRange) -> DateRange:
    return calculate_previous_period(date_range.start, date_range.end)


def compare_period(date_range: DateRange, current: Number, previous: Number) -> PeriodComparison:
    """Pair ``date_range`` with its previous window and the delta between totals.

    ``previous`` is the total over :func:`previous_range`; the caller computes
    both totals with the same filters.
    """

    delta = compute_delta(current, previous)
    return PeriodComparison(
        current=date_range,
        previous=previous_range(date_range),
        delta_value=delta.value,
        delta_pct=delta.pct,
    )


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------


class DatePreset(StrEnum):
    TODAY = "today"
    LAST_7_DAYS = "last7days"
    LAST_30_DAYS = "last30days"
    THIS_MONTH = "thisMonth"
    LAST_MONTH = "lastMonth"
    THIS_YEAR = "thisYear"


def preset_range(preset: DatePreset, today: date) -> DateRange:
    """Resolve ``preset`` relative to ``today`` (a civil date, see ``config``)."""

    if preset is DatePreset.TODAY:
        return DateRange(today, today)
    if preset is DatePreset.LAST_7_DAYS:
        return DateRange(today - timedelta(days=6), today)
    if preset is DatePreset.LAST_30_DAYS:
        return DateRange(today - timedelta(days=29), today)
    if preset is DatePreset.LAST_MONTH:
        last = add_months(start_of_month(today), -1)
        return DateRange(last, end_of_month(last))
    if preset is DatePreset.THIS_YEAR:
        return DateRange(date(today.year, 1, 1), date(today.year, 12, 31))
    return DateRange(start_of_month(today), end_of_month(today))


def parse_date_string(value: str | None) -> date | None:
    """Parse ``YYYY-MM-DD``; malformed or empty input yields ``None``."""

    if not value:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


__all__ = [
    "DatePreset",
    "MONTH_ABBREVIATIONS",
    "add_months",
    "bucket_key",
    "bucket_label",
    "calculate_previous_period",
    "choose_granularity",
    "compare_period",
    "end_of_month",
    "generate_buckets",
    "inclusive_days",
    "next_bucket",
    "parse_date_string",
    "preset_range",
    "previous_range",
    "start_of_month",
    "start_of_week",
]
