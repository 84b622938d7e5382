from dataclasses import replace
from datetime import UTC, date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from ledger_metrics.models import AmountSource, DateSource, SettlementStatus
from ledger_metrics.resolvers import resolve_amount, resolve_canonical_date, resolve_cash_date
from tests.helpers.records import mk_record

SETTLED = SettlementStatus.SETTLED
PENDING = SettlementStatus.PENDING


# ---- Dates --------------------------------------------------------------------


def test_due_date_wins_when_present():
    rec = mk_record(due="2026-01-10", planned="2026-01-05", actual="2026-01-03", status=SETTLED)
    res = resolve_canonical_date(rec)
    assert res.value == date(2026, 1, 10)
    assert res.source is DateSource.DUE_DATE


def test_planned_date_is_the_first_fallback():
    res = resolve_canonical_date(mk_record(planned="2026-01-05", actual="2026-01-03"))
    assert res.value == date(2026, 1, 5)
    assert res.source is DateSource.PLANNED_DATE


def test_actual_date_only_counts_for_settled_records():
    pending = resolve_canonical_date(mk_record(actual="2026-01-03", status=PENDING))
    settled = resolve_canonical_date(mk_record(actual="2026-01-03", status=SETTLED))
    assert pending.value is None and pending.source is DateSource.UNRESOLVED
    assert not pending.resolved
    assert settled.value == date(2026, 1, 3) and settled.source is DateSource.ACTUAL_DATE


def test_aware_datetimes_collapse_in_the_civil_timezone():
    # 02:30 UTC on Jan 10 is still Jan 9 in São Paulo (UTC-3)
    rec = replace(mk_record(), due_date=datetime(2026, 1, 10, 2, 30, tzinfo=UTC))
    res = resolve_canonical_date(rec, tz=ZoneInfo("America/Sao_Paulo"))
    assert res.value == date(2026, 1, 9)


def test_cash_date_uses_actual_date_of_settled_records_only():
    assert resolve_cash_date(mk_record(due="2026-01-10", status=SETTLED)).value is None
    res = resolve_cash_date(mk_record(due="2026-01-10", actual="2026-01-12", status=SETTLED))
    assert res.value == date(2026, 1, 12) and res.source is DateSource.ACTUAL_DATE
    assert resolve_cash_date(mk_record(actual="2026-01-12", status=PENDING)).value is None


# ---- Amounts ------------------------------------------------------------------


def test_zero_actual_amount_does_not_override_planned_amount():
    res = resolve_amount(mk_record(status=SETTLED, actual_amount=0, planned_amount=100))
    assert res.value == Decimal("100")
    assert res.source is AmountSource.PLANNED


def test_settled_nonzero_actual_amount_wins():
    res = resolve_amount(mk_record(status=SETTLED, actual_amount="95.50", planned_amount=100))
    assert res.value == Decimal("95.50")
    assert res.source is AmountSource.ACTUAL


def test_pending_records_ignore_actual_amount():
    res = resolve_amount(mk_record(status=PENDING, actual_amount=80, planned_amount=100))
    assert res.source is AmountSource.PLANNED


@pytest.mark.parametrize(
    ("fields", "expected", "source"),
    [
        ({"gross_amount": 70}, Decimal("70"), AmountSource.GROSS),
        ({"planned_amount": 0, "gross_amount": 70}, Decimal("0"), AmountSource.PLANNED),
        ({}, Decimal("0"), AmountSource.DEFAULT_ZERO),
        ({"status": SETTLED, "actual_amount": 0}, Decimal("0"), AmountSource.DEFAULT_ZERO),
    ],
)
def test_amount_fallbacks(fields, expected, source):
    res = resolve_amount(mk_record(**fields))
    assert res.value == expected
    assert res.source is source


def test_nan_amount_is_treated_as_missing():
    rec = replace(
        mk_record(status=SETTLED, planned_amount=40), actual_amount=Decimal("NaN")
    )
    res = resolve_amount(rec)
    assert res.value == Decimal("40") and res.source is AmountSource.PLANNED


def test_negative_amounts_are_kept_as_is():
    res = resolve_amount(mk_record(status=SETTLED, actual_amount=-30, planned_amount=100))
    assert res.value == Decimal("-30")
