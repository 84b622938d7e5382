"""Output shapes handed to presentation and reporting layers.

All reports are frozen pydantic models. Money is kept as :class:`Decimal`
in Python and serialized as a JSON number by ``model_dump(mode="json")``.
Nullable percentages stay ``None`` (``null`` in JSON) and must never be
rendered as ``0%``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer

from .models import (
    DateBasis,
    Granularity,
    PayerSide,
    PayerView,
    RankKey,
    SettlementStatus,
    SortBy,
)

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class _Report(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Summary, series, ranking
# ---------------------------------------------------------------------------


class MetricsSummary(_Report):
    total: Money
    count: int
    prev_total: Money
    prev_count: int
    delta_value: Money
    delta_pct: float | None
    date_range: dict[str, str]
    previous_range: dict[str, str]


class SeriesPoint(_Report):
    bucket_start: date
    bucket_label: str
    values: dict[str, Money]
    counts: dict[str, int] = {}


class TimeSeries(_Report):
    granularity: Granularity
    basis: DateBasis
    metrics: tuple[str, ...]
    points: tuple[SeriesPoint, ...]
    date_range: dict[str, str]


class RankingItem(_Report):
    key: str
    label: str
    total: Money
    count: int
    citation_numbers: tuple[str, ...] = ()


class Ranking(_Report):
    rank_key: RankKey
    sort_by: SortBy
    limit: int
    items: tuple[RankingItem, ...]
    date_range: dict[str, str]


# ---------------------------------------------------------------------------
# Cash position and executive dashboard
# ---------------------------------------------------------------------------


class MetricDelta(_Report):
    current: Money
    previous: Money
    delta_value: Money
    delta_pct: float | None


class CashPosition(_Report):
    """Cash view of one period.

    ``received``/``paid`` are settled records keyed by actual date;
    ``receivable``/``payable`` are open records keyed by due date, and the
    overdue figures are the subset of those due before "today".
    """

    received: Money
    paid: Money
    receivable: Money
    payable: Money
    overdue_receivable: Money
    overdue_payable: Money
    net_cash: Money


class CashPositionComparison(_Report):
    current: CashPosition
    previous: CashPosition
    received: MetricDelta
    paid: MetricDelta
    net_cash: MetricDelta
    date_range: dict[str, str]
    previous_range: dict[str, str]


class MarginComparison(_Report):
    current: float | None
    previous: float | None
    delta_pp: float | None


class CategoryDriver(_Report):
    key: str
    label: str
    total: Money
    count: int
    previous_total: Money | None
    delta_value: Money | None
    delta_pct: float | None


class ExecDashboard(_Report):
    income: MetricDelta
    expense: MetricDelta
    profit: MetricDelta
    margin: MarginComparison
    cash: CashPosition
    series: TimeSeries
    drivers: tuple[CategoryDriver, ...]
    date_range: dict[str, str]
    previous_range: dict[str, str]


# ---------------------------------------------------------------------------
# Fines and investors
# ---------------------------------------------------------------------------


class FineItem(_Report):
    id: str
    occurred_on: date | None
    plate: str | None
    citation_number: str | None
    amount: Money
    status: SettlementStatus
    payer: PayerSide
    category: str | None
    description: str | None


class FinePage(_Report):
    items: tuple[FineItem, ...]
    total: int
    page: int
    page_size: int
    payer_view: PayerView
    date_range: dict[str, str]


class VehicleMetrics(_Report):
    plate: str
    rental_income: Money
    maintenance_cost: Money
    fines_cost: Money
    net_result: Money


class InvestorMetrics(_Report):
    investor_id: str
    investor_name: str
    totals: VehicleMetrics
    vehicles: tuple[VehicleMetrics, ...]
    date_range: dict[str, str]


__all__ = [
    "CashPosition",
    "CashPositionComparison",
    "CategoryDriver",
    "ExecDashboard",
    "FineItem",
    "FinePage",
    "InvestorMetrics",
    "MarginComparison",
    "MetricDelta",
    "MetricsSummary",
    "Money",
    "Ranking",
    "RankingItem",
    "SeriesPoint",
    "TimeSeries",
    "VehicleMetrics",
]
