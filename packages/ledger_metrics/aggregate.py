"""Aggregations over an in-memory collection of canonical records.

Every function here is pure: it takes already-canonicalized records (see
:mod:`ledger_metrics.canonical`) plus explicit parameters and returns a
report from :mod:`ledger_metrics.reports`. No I/O, no clock reads; callers
inject ``today`` where overdue checks need it.

Filtering rules shared by all views:

- ``CANCELLED`` records never contribute to any metric.
- Date-scoped views drop records whose date (per the requested
  :class:`~ledger_metrics.models.DateBasis`) is unresolved or out of range.
- ``MetricScope.FINES`` selects payable records in a fines category; the
  payer view filter narrows it further by derived payer side.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from zoneinfo import ZoneInfo

from .deltas import compute_delta, margin, margin_delta_pp
from .extractors import (
    NO_PLATE_KEY,
    is_fines_category,
    is_maintenance_category,
    is_rental_income_category,
    payer_matches_view,
)
from .models import (
    CanonicalRecord,
    DateBasis,
    DateRange,
    Granularity,
    Investor,
    MetricScope,
    PayerView,
    RankKey,
    RecordKind,
    SettlementStatus,
    SortBy,
)
from .periods import (
    bucket_key,
    choose_granularity,
    compare_period,
    generate_buckets,
    previous_range,
)
from .reports import (
    CashPosition,
    CashPositionComparison,
    CategoryDriver,
    ExecDashboard,
    FineItem,
    FinePage,
    InvestorMetrics,
    MarginComparison,
    MetricDelta,
    MetricsSummary,
    Ranking,
    RankingItem,
    SeriesPoint,
    TimeSeries,
    VehicleMetrics,
)
from .resolvers import resolve_cash_date
from .text import format_class_label, normalize_class_key

_ZERO = Decimal("0")

OPEN_STATUSES: frozenset[SettlementStatus] = frozenset(
    {SettlementStatus.PENDING, SettlementStatus.OVERDUE, SettlementStatus.SCHEDULED}
)

PROFIT_METRIC = "profit"


# ---------------------------------------------------------------------------
# Selection helpers
# ---------------------------------------------------------------------------


def in_metric_scope(canon: CanonicalRecord, scope: MetricScope) -> bool:
    kind = canon.record.kind
    if scope is MetricScope.INCOME:
        return kind is RecordKind.RECEIVABLE
    if scope is MetricScope.EXPENSE:
        return kind is RecordKind.PAYABLE
    return kind is RecordKind.PAYABLE and is_fines_category(canon.category)


def record_date(
    canon: CanonicalRecord, basis: DateBasis = DateBasis.CANONICAL, *, tz: ZoneInfo | None = None
) -> date | None:
    if basis is DateBasis.CASH:
        return resolve_cash_date(canon.record, tz=tz).value
    return canon.date.value


def select_records(
    records: Iterable[CanonicalRecord],
    date_range: DateRange,
    scope: MetricScope,
    *,
    payer_view: PayerView = PayerView.ALL,
    basis: DateBasis = DateBasis.CANONICAL,
    tz: ZoneInfo | None = None,
) -> list[tuple[date, CanonicalRecord]]:
    """Records in ``scope`` whose ``basis`` date falls inside ``date_range``.

    Input order is preserved; rankings rely on it for tie-breaking.
    """

    out: list[tuple[date, CanonicalRecord]] = []
    for canon in records:
        if canon.record.status is SettlementStatus.CANCELLED:
            continue
        if not in_metric_scope(canon, scope):
            continue
        if not payer_matches_view(canon.payer, payer_view):
            continue
        day = record_date(canon, basis, tz=tz)
        if day is None or not date_range.contains(day):
            continue
        out.append((day, canon))
    return out


def _matching(
    records: Iterable[CanonicalRecord],
    date_range: DateRange,
    scope: MetricScope,
    **options: object,
) -> list[CanonicalRecord]:
    return [c for _, c in select_records(records, date_range, scope, **options)]


def _total(records: Iterable[CanonicalRecord]) -> Decimal:
    return sum((c.amount.value for c in records), _ZERO)


def _metric_delta(current: Decimal, previous: Decimal) -> MetricDelta:
    delta = compute_delta(current, previous)
    return MetricDelta(
        current=current, previous=previous, delta_value=delta.value, delta_pct=delta.pct
    )


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


def summarize(
    records: Sequence[CanonicalRecord],
    date_range: DateRange,
    scope: MetricScope,
    *,
    payer_view: PayerView = PayerView.ALL,
    basis: DateBasis = DateBasis.CANONICAL,
    tz: ZoneInfo | None = None,
) -> MetricsSummary:
    options = {"payer_view": payer_view, "basis": basis, "tz": tz}
    current = _matching(records, date_range, scope, **options)
    previous = _matching(records, previous_range(date_range), scope, **options)
    total, prev_total = _total(current), _total(previous)
    comparison = compare_period(date_range, total, prev_total)
    return MetricsSummary(
        total=total,
        count=len(current),
        prev_total=prev_total,
        prev_count=len(previous),
        delta_value=comparison.delta_value,
        delta_pct=comparison.delta_pct,
        date_range=comparison.current.to_strings(),
        previous_range=comparison.previous.to_strings(),
    )


# ---------------------------------------------------------------------------
# Time series
# ---------------------------------------------------------------------------


def time_series(
    records: Sequence[CanonicalRecord],
    date_range: DateRange,
    metrics: Sequence[MetricScope],
    *,
    granularity: Granularity | None = None,
    basis: DateBasis = DateBasis.CANONICAL,
    payer_view: PayerView = PayerView.ALL,
    tz: ZoneInfo | None = None,
) -> TimeSeries:
    """One point per bucket over ``date_range``, zero-valued buckets included.

    Each point carries a total and a record count per requested metric. When
    both income and expense are requested, a ``profit`` value (income minus
    expense) is added; it has no count of its own. Repeated metrics are
    counted once.
    """

    metrics = list(dict.fromkeys(metrics))
    if not metrics:
        raise ValueError("at least one metric is required")
    gran = granularity or choose_granularity(date_range.start, date_range.end)
    buckets = generate_buckets(date_range.start, date_range.end, gran)
    names = [m.value for m in metrics]
    with_profit = MetricScope.INCOME in metrics and MetricScope.EXPENSE in metrics

    totals: dict[date, dict[str, Decimal]] = {b.key: dict.fromkeys(names, _ZERO) for b in buckets}
    counts: dict[date, dict[str, int]] = {b.key: dict.fromkeys(names, 0) for b in buckets}
    for metric in metrics:
        selected = select_records(
            records, date_range, metric, payer_view=payer_view, basis=basis, tz=tz
        )
        for day, canon in selected:
            key = bucket_key(day, gran)
            totals[key][metric.value] += canon.amount.value
            counts[key][metric.value] += 1
    if with_profit:
        names.append(PROFIT_METRIC)

    points: list[SeriesPoint] = []
    for b in buckets:
        values = totals[b.key]
        if with_profit:
            income = values[MetricScope.INCOME.value]
            values[PROFIT_METRIC] = income - values[MetricScope.EXPENSE.value]
        points.append(
            SeriesPoint(
                bucket_start=b.key, bucket_label=b.label, values=values, counts=counts[b.key]
            )
        )
    return TimeSeries(
        granularity=gran,
        basis=basis,
        metrics=tuple(names),
        points=tuple(points),
        date_range=date_range.to_strings(),
    )


# ---------------------------------------------------------------------------
# Rankings
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _Group:
    key: str
    label: str
    total: Decimal = _ZERO
    count: int = 0
    citations: list[str] = field(default_factory=list)

    def add(self, canon: CanonicalRecord) -> None:
        self.total += canon.amount.value
        self.count += 1
        cn = canon.citation_number
        if cn is not None and cn not in self.citations:
            self.citations.append(cn)

    def to_item(self, *, with_citations: bool) -> RankingItem:
        return RankingItem(
            key=self.key,
            label=self.label,
            total=self.total,
            count=self.count,
            citation_numbers=tuple(self.citations) if with_citations else (),
        )


def _group_key(canon: CanonicalRecord, rank_key: RankKey) -> tuple[str, str]:
    if rank_key is RankKey.PLATE:
        plate = canon.plate or NO_PLATE_KEY
        return plate, plate
    return normalize_class_key(canon.category), format_class_label(canon.category)


def _group(records: Iterable[CanonicalRecord], rank_key: RankKey) -> list[_Group]:
    groups: dict[str, _Group] = {}
    for canon in records:
        key, label = _group_key(canon, rank_key)
        group = groups.get(key)
        if group is None:
            group = groups[key] = _Group(key, label)
        group.add(canon)
    return list(groups.values())


def _sort_groups(groups: list[_Group], sort_by: SortBy) -> list[_Group]:
    # sorted() is stable with reverse=True, so equal groups keep discovery order
    if sort_by is SortBy.COUNT:
        return sorted(groups, key=lambda g: g.count, reverse=True)
    return sorted(groups, key=lambda g: g.total, reverse=True)


def rank(
    records: Sequence[CanonicalRecord],
    date_range: DateRange,
    scope: MetricScope,
    *,
    rank_key: RankKey = RankKey.CATEGORY,
    sort_by: SortBy = SortBy.VALUE,
    limit: int = 5,
    payer_view: PayerView = PayerView.ALL,
    basis: DateBasis = DateBasis.CANONICAL,
    tz: ZoneInfo | None = None,
) -> Ranking:
    """Group by category or plate, sort descending, keep the first ``limit``.

    Ties keep first-discovery order from ``records``. Plate groups also carry
    the distinct citation numbers seen, in discovery order.
    """

    if limit <= 0:
        raise ValueError("limit must be positive")
    selected = _matching(
        records, date_range, scope, payer_view=payer_view, basis=basis, tz=tz
    )
    ordered = _sort_groups(_group(selected, rank_key), sort_by)[:limit]
    with_citations = rank_key is RankKey.PLATE
    return Ranking(
        rank_key=rank_key,
        sort_by=sort_by,
        limit=limit,
        items=tuple(g.to_item(with_citations=with_citations) for g in ordered),
        date_range=date_range.to_strings(),
    )


# ---------------------------------------------------------------------------
# Cash position
# ---------------------------------------------------------------------------


def _is_overdue(canon: CanonicalRecord, today: date) -> bool:
    if canon.record.status is SettlementStatus.OVERDUE:
        return True
    due = canon.record.due_date
    return due is not None and due < today


def cash_position(
    records: Sequence[CanonicalRecord],
    date_range: DateRange,
    *,
    today: date,
    tz: ZoneInfo | None = None,
) -> CashPosition:
    """Settled money by actual date plus open obligations by due date."""

    received = _total(
        _matching(records, date_range, MetricScope.INCOME, basis=DateBasis.CASH, tz=tz)
    )
    paid = _total(_matching(records, date_range, MetricScope.EXPENSE, basis=DateBasis.CASH, tz=tz))

    open_by_kind: dict[RecordKind, list[CanonicalRecord]] = {
        RecordKind.RECEIVABLE: [],
        RecordKind.PAYABLE: [],
    }
    for canon in records:
        rec = canon.record
        if rec.status not in OPEN_STATUSES:
            continue
        if rec.due_date is None or not date_range.contains(rec.due_date):
            continue
        open_by_kind[rec.kind].append(canon)

    receivables = open_by_kind[RecordKind.RECEIVABLE]
    payables = open_by_kind[RecordKind.PAYABLE]
    return CashPosition(
        received=received,
        paid=paid,
        receivable=_total(receivables),
        payable=_total(payables),
        overdue_receivable=_total(c for c in receivables if _is_overdue(c, today)),
        overdue_payable=_total(c for c in payables if _is_overdue(c, today)),
        net_cash=received - paid,
    )


def compare_cash_position(
    records: Sequence[CanonicalRecord],
    date_range: DateRange,
    *,
    today: date,
    tz: ZoneInfo | None = None,
) -> CashPositionComparison:
    prev = previous_range(date_range)
    current = cash_position(records, date_range, today=today, tz=tz)
    previous = cash_position(records, prev, today=today, tz=tz)
    return CashPositionComparison(
        current=current,
        previous=previous,
        received=_metric_delta(current.received, previous.received),
        paid=_metric_delta(current.paid, previous.paid),
        net_cash=_metric_delta(current.net_cash, previous.net_cash),
        date_range=date_range.to_strings(),
        previous_range=prev.to_strings(),
    )


# ---------------------------------------------------------------------------
# Executive dashboard
# ---------------------------------------------------------------------------


def expense_drivers(
    records: Sequence[CanonicalRecord],
    date_range: DateRange,
    *,
    limit: int = 5,
    tz: ZoneInfo | None = None,
) -> list[CategoryDriver]:
    """Top paid expense categories with their previous-period totals.

    ``previous_total`` (and the deltas) are ``None`` for categories with no
    paid expense in the previous period.
    """

    def groups_for(dr: DateRange) -> list[_Group]:
        selected = _matching(records, dr, MetricScope.EXPENSE, basis=DateBasis.CASH, tz=tz)
        return _group(selected, RankKey.CATEGORY)

    top = _sort_groups(groups_for(date_range), SortBy.VALUE)[:limit]
    prev_totals = {g.key: g.total for g in groups_for(previous_range(date_range))}

    drivers: list[CategoryDriver] = []
    for g in top:
        prev = prev_totals.get(g.key)
        delta = compute_delta(g.total, prev) if prev is not None else None
        drivers.append(
            CategoryDriver(
                key=g.key,
                label=g.label,
                total=g.total,
                count=g.count,
                previous_total=prev,
                delta_value=delta.value if delta is not None else None,
                delta_pct=delta.pct if delta is not None else None,
            )
        )
    return drivers


def exec_dashboard(
    records: Sequence[CanonicalRecord],
    date_range: DateRange,
    *,
    today: date,
    granularity: Granularity | None = None,
    driver_limit: int = 5,
    tz: ZoneInfo | None = None,
) -> ExecDashboard:
    """Cash-basis executive view of ``date_range`` against the previous period."""

    prev = previous_range(date_range)
    current = cash_position(records, date_range, today=today, tz=tz)
    previous = cash_position(records, prev, today=today, tz=tz)
    cur_margin = margin(current.net_cash, current.received)
    prev_margin = margin(previous.net_cash, previous.received)
    return ExecDashboard(
        income=_metric_delta(current.received, previous.received),
        expense=_metric_delta(current.paid, previous.paid),
        profit=_metric_delta(current.net_cash, previous.net_cash),
        margin=MarginComparison(
            current=cur_margin,
            previous=prev_margin,
            delta_pp=margin_delta_pp(cur_margin, prev_margin),
        ),
        cash=current,
        series=time_series(
            records,
            date_range,
            (MetricScope.INCOME, MetricScope.EXPENSE),
            granularity=granularity,
            basis=DateBasis.CASH,
            tz=tz,
        ),
        drivers=tuple(expense_drivers(records, date_range, limit=driver_limit, tz=tz)),
        date_range=date_range.to_strings(),
        previous_range=prev.to_strings(),
    )


# ---------------------------------------------------------------------------
# Fines list
# ---------------------------------------------------------------------------


def list_fines(
    records: Sequence[CanonicalRecord],
    date_range: DateRange,
    *,
    payer_view: PayerView = PayerView.ALL,
    page: int = 1,
    page_size: int = 20,
) -> FinePage:
    """Fine detail rows, newest first, one page at a time (pages start at 1)."""

    if page < 1 or page_size < 1:
        raise ValueError("page and page_size must be positive")
    selected = select_records(records, date_range, MetricScope.FINES, payer_view=payer_view)
    ordered = sorted(selected, key=lambda pair: pair[0], reverse=True)
    start = (page - 1) * page_size
    items = tuple(
        FineItem(
            id=c.record.id,
            occurred_on=day,
            plate=c.plate,
            citation_number=c.citation_number,
            amount=c.amount.value,
            status=c.record.status,
            payer=c.payer,
            category=c.category,
            description=c.record.description,
        )
        for day, c in ordered[start : start + page_size]
    )
    return FinePage(
        items=items,
        total=len(ordered),
        page=page,
        page_size=page_size,
        payer_view=payer_view,
        date_range=date_range.to_strings(),
    )


# ---------------------------------------------------------------------------
# Investors
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _VehicleTally:
    plate: str
    rental_income: Decimal = _ZERO
    maintenance_cost: Decimal = _ZERO
    fines_cost: Decimal = _ZERO

    def to_metrics(self) -> VehicleMetrics:
        return VehicleMetrics(
            plate=self.plate,
            rental_income=self.rental_income,
            maintenance_cost=self.maintenance_cost,
            fines_cost=self.fines_cost,
            net_result=self.rental_income - self.maintenance_cost - self.fines_cost,
        )


def investor_metrics(
    records: Sequence[CanonicalRecord],
    investor: Investor,
    date_range: DateRange,
) -> InvestorMetrics:
    """Per-vehicle rental income, maintenance and fines for one investor.

    Records are linked to a vehicle through the plate extracted from their
    text. A payable in a fines category counts as a fine even when its
    category also looks like maintenance.
    """

    tallies = {plate: _VehicleTally(plate) for plate in investor.vehicles}
    for canon in records:
        rec = canon.record
        if rec.status is SettlementStatus.CANCELLED or canon.plate not in tallies:
            continue
        day = canon.date.value
        if day is None or not date_range.contains(day):
            continue
        tally = tallies[canon.plate]
        amount = canon.amount.value
        if rec.kind is RecordKind.RECEIVABLE:
            if is_rental_income_category(canon.category):
                tally.rental_income += amount
        elif is_fines_category(canon.category):
            tally.fines_cost += amount
        elif is_maintenance_category(canon.category):
            tally.maintenance_cost += amount

    vehicles = tuple(t.to_metrics() for t in tallies.values())
    totals = _VehicleTally(
        plate="TOTAL",
        rental_income=sum((v.rental_income for v in vehicles), _ZERO),
        maintenance_cost=sum((v.maintenance_cost for v in vehicles), _ZERO),
        fines_cost=sum((v.fines_cost for v in vehicles), _ZERO),
    )
    return InvestorMetrics(
        investor_id=investor.id,
        investor_name=investor.name,
        totals=totals.to_metrics(),
        vehicles=vehicles,
        date_range=date_range.to_strings(),
    )


__all__ = [
    "OPEN_STATUSES",
    "PROFIT_METRIC",
    "cash_position",
    "compare_cash_position",
    "exec_dashboard",
    "expense_drivers",
    "in_metric_scope",
    "investor_metrics",
    "list_fines",
    "rank",
    "record_date",
    "select_records",
    "summarize",
    "time_series",
]
