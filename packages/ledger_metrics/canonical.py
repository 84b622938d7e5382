"""Derive :class:`~ledger_metrics.models.CanonicalRecord` views from raw rows.

The canonical view is recomputed on demand and never written back. Category
precedence is:

1. ``MANUAL`` categories are kept as-is (terminal).
2. A matching normalization rule assigns its target (``NORMALIZED``).
3. A previously normalized category is kept with its rule id.
4. Otherwise the stored category, falling back to the raw label (``RAW``).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from zoneinfo import ZoneInfo

from .extractors import derive_payer, extract_citation_number, extract_plate
from .logging_setup import get_logger
from .models import (
    AmountSource,
    CanonicalRecord,
    CategorySource,
    PayerSide,
    RawRecord,
)
from .resolvers import resolve_amount, resolve_canonical_date
from .rules import RuleSet

_logger = get_logger("ledger_metrics.canonical")


def entity_text(record: RawRecord) -> str:
    """Free text searched for plates, citation numbers and payer cues."""

    return " ".join(p.strip() for p in (record.description, record.notes) if p and p.strip())


def resolve_category(
    record: RawRecord, rule_set: RuleSet | None = None
) -> tuple[str | None, CategorySource, str | None]:
    if record.category_source is CategorySource.MANUAL:
        return record.category, CategorySource.MANUAL, None
    if rule_set is not None:
        result = rule_set.resolve_record(record)
        if result.rule_id is not None:
            return result.category, CategorySource.NORMALIZED, result.rule_id
    if record.category_source is CategorySource.NORMALIZED:
        return record.category, CategorySource.NORMALIZED, record.normalized_by_rule_id
    category = record.category if record.category is not None else record.raw_category
    return category, CategorySource.RAW, None


def canonicalize(
    record: RawRecord,
    *,
    rule_set: RuleSet | None = None,
    tz: ZoneInfo | None = None,
) -> CanonicalRecord:
    category, source, rule_id = resolve_category(record, rule_set)
    text = entity_text(record)
    return CanonicalRecord(
        record=record,
        date=resolve_canonical_date(record, tz=tz),
        amount=resolve_amount(record),
        category=category,
        category_source=source,
        rule_id=rule_id,
        plate=extract_plate(text),
        citation_number=extract_citation_number(text),
        payer=derive_payer(text),
    )


@dataclass(slots=True)
class IngestionStats:
    """Data-quality tallies gathered while canonicalizing a collection."""

    total_rows: int = 0
    missing_date: int = 0
    missing_amount: int = 0
    missing_plate: int = 0
    unknown_payer: int = 0

    @property
    def valid_rows(self) -> int:
        return self.total_rows - self.missing_date

    def observe(self, canon: CanonicalRecord) -> None:
        self.total_rows += 1
        if not canon.date.resolved:
            self.missing_date += 1
        if canon.amount.source is AmountSource.DEFAULT_ZERO:
            self.missing_amount += 1
        if canon.plate is None:
            self.missing_plate += 1
        if canon.payer is PayerSide.UNKNOWN:
            self.unknown_payer += 1

    def pct(self, count: int) -> float:
        return (count / self.total_rows * 100) if self.total_rows else 0.0

    def log(self, context: str) -> None:
        _logger.debug(
            "[%s] rows=%d valid=%d missing_date=%d (%.1f%%) missing_amount=%d (%.1f%%) "
            "missing_plate=%d (%.1f%%) unknown_payer=%d (%.1f%%)",
            context,
            self.total_rows,
            self.valid_rows,
            self.missing_date,
            self.pct(self.missing_date),
            self.missing_amount,
            self.pct(self.missing_amount),
            self.missing_plate,
            self.pct(self.missing_plate),
            self.unknown_payer,
            self.pct(self.unknown_payer),
        )


def canonicalize_all(
    records: Iterable[RawRecord],
    *,
    rule_set: RuleSet | None = None,
    tz: ZoneInfo | None = None,
    context: str = "canonicalize",
) -> list[CanonicalRecord]:
    stats = IngestionStats()
    out: list[CanonicalRecord] = []
    for record in records:
        canon = canonicalize(record, rule_set=rule_set, tz=tz)
        stats.observe(canon)
        out.append(canon)
    stats.log(context)
    return out


__all__ = [
    "IngestionStats",
    "canonicalize",
    "canonicalize_all",
    "entity_text",
    "resolve_category",
]
