"""Canonical date and amount resolution for ledger records.

Both resolvers return a tagged result naming the fallback step that produced
the value, so callers can assert provenance and not only the final value.

Date chain
----------
due date -> planned date -> actual date (settled records only) -> unresolved.

Amount chain
------------
actual amount (settled records only, and only when nonzero) -> planned amount
-> gross amount -> ``0``. A settled record whose actual amount is ``0`` is
treated as missing its actual amount, so it never hides a nonzero forecast.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from .config import to_civil_date
from .deltas import as_decimal
from .models import (
    AmountResolution,
    AmountSource,
    DateResolution,
    DateSource,
    RawRecord,
)


_ZERO = Decimal("0")


def _valid_date(value: object, tz: ZoneInfo | None) -> date | None:
    if isinstance(value, datetime):
        return to_civil_date(value, tz) if tz is not None else value.date()
    if isinstance(value, date):
        return value
    return None


def _present(value: Decimal | int | float | None) -> bool:
    if value is None:
        return False
    # NaN amounts carry no information
    return value == value


def resolve_canonical_date(record: RawRecord, *, tz: ZoneInfo | None = None) -> DateResolution:
    due = _valid_date(record.due_date, tz)
    if due is not None:
        return DateResolution(due, DateSource.DUE_DATE)
    planned = _valid_date(record.planned_date, tz)
    if planned is not None:
        return DateResolution(planned, DateSource.PLANNED_DATE)
    if record.is_settled:
        actual = _valid_date(record.actual_date, tz)
        if actual is not None:
            return DateResolution(actual, DateSource.ACTUAL_DATE)
    return DateResolution(None, DateSource.UNRESOLVED)


def resolve_cash_date(record: RawRecord, *, tz: ZoneInfo | None = None) -> DateResolution:
    """Date money moved: the actual date of a settled record, else unresolved."""

    if record.is_settled:
        actual = _valid_date(record.actual_date, tz)
        if actual is not None:
            return DateResolution(actual, DateSource.ACTUAL_DATE)
    return DateResolution(None, DateSource.UNRESOLVED)


def resolve_amount(record: RawRecord) -> AmountResolution:
    actual = record.actual_amount
    if record.is_settled and actual is not None and _present(actual) and actual != 0:
        return AmountResolution(as_decimal(actual), AmountSource.ACTUAL)
    if record.planned_amount is not None and _present(record.planned_amount):
        return AmountResolution(as_decimal(record.planned_amount), AmountSource.PLANNED)
    if record.gross_amount is not None and _present(record.gross_amount):
        return AmountResolution(as_decimal(record.gross_amount), AmountSource.GROSS)
    return AmountResolution(_ZERO, AmountSource.DEFAULT_ZERO)


__all__ = ["resolve_amount", "resolve_canonical_date", "resolve_cash_date"]
