"""Domain models and type aliases for ``ledger_metrics``.

Ledger rows arrive as :class:`RawRecord` values with explicit per-field
nullability; every derived value (:class:`CanonicalRecord`) is recomputable
from a raw record plus configuration and is never stored back as the source of
truth. Rules are modeled with pydantic so authoring-time validation (empty
patterns, invalid regexes) happens at construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .matching import validate_regex_pattern

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class RecordKind(StrEnum):
    PAYABLE = "PAYABLE"
    RECEIVABLE = "RECEIVABLE"


class SettlementStatus(StrEnum):
    PENDING = "PENDING"
    SETTLED = "SETTLED"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"
    SCHEDULED = "SCHEDULED"


class CategorySource(StrEnum):
    """Provenance of a record's effective category.

    ``MANUAL`` is terminal with respect to automatic normalization.
    """

    RAW = "RAW"
    NORMALIZED = "NORMALIZED"
    MANUAL = "MANUAL"


class MatchType(StrEnum):
    EXACT = "EXACT"
    CONTAINS = "CONTAINS"
    REGEX = "REGEX"


class RuleScope(StrEnum):
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"
    BOTH = "BOTH"


class MetricScope(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"
    FINES = "fines"


class PayerSide(StrEnum):
    OWNER = "OWNER"
    OPERATOR = "OPERATOR"
    UNKNOWN = "UNKNOWN"


class PayerView(StrEnum):
    ALL = "ALL"
    OPERATOR = "OPERATOR"
    OWNER = "OWNER"


class Granularity(StrEnum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class SortBy(StrEnum):
    COUNT = "count"
    VALUE = "value"


class RankKey(StrEnum):
    CATEGORY = "category"
    PLATE = "plate"


class DateBasis(StrEnum):
    """Which date places a record in time.

    ``CANONICAL`` applies the due/planned/actual fallback chain; ``CASH`` keys
    settled records by the date money actually moved and ignores the rest.
    """

    CANONICAL = "canonical"
    CASH = "cash"


class DateSource(StrEnum):
    DUE_DATE = "due_date"
    PLANNED_DATE = "planned_date"
    ACTUAL_DATE = "actual_date"
    UNRESOLVED = "unresolved"


class AmountSource(StrEnum):
    ACTUAL = "actual_amount"
    PLANNED = "planned_amount"
    GROSS = "gross_amount"
    DEFAULT_ZERO = "default_zero"


# ---------------------------------------------------------------------------
# Ledger records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawRecord:
    """A ledger row as delivered by the persistence layer.

    ``raw_category`` is the label found in the source spreadsheet and feeds the
    rule engine; ``category`` is the current effective category, whose origin
    is recorded by ``category_source``.
    """

    id: str
    kind: RecordKind
    status: SettlementStatus
    due_date: date | None = None
    planned_date: date | None = None
    actual_date: date | None = None
    planned_amount: Decimal | None = None
    actual_amount: Decimal | None = None
    gross_amount: Decimal | None = None
    raw_category: str | None = None
    category: str | None = None
    category_source: CategorySource = CategorySource.RAW
    normalized_by_rule_id: str | None = None
    description: str | None = None
    counterparty: str | None = None
    notes: str | None = None

    @property
    def is_settled(self) -> bool:
        return self.status is SettlementStatus.SETTLED

    @property
    def rule_scope(self) -> RuleScope:
        return RuleScope.EXPENSE if self.kind is RecordKind.PAYABLE else RuleScope.INCOME


class NormalizationRule(BaseModel):
    """A category normalization rule.

    Construction validates the rule the way an authoring endpoint would:
    patterns and target categories must be non-empty, and REGEX patterns must
    compile within the size limit. Fields also accept their camelCase names
    (``fromPattern``, ``toCategory``) as found in exported rule files. Naive
    ``updated_at`` values are taken as UTC so ordering never mixes naive and
    aware timestamps.
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", alias_generator=to_camel, populate_by_name=True
    )

    id: str
    from_pattern: str
    match_type: MatchType = MatchType.CONTAINS
    scope: RuleScope = RuleScope.BOTH
    to_category: str
    priority: int = 0
    active: bool = True
    updated_at: datetime

    @field_validator("from_pattern")
    @classmethod
    def _pattern_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("fromPattern is required")
        return v

    @field_validator("to_category")
    @classmethod
    def _category_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("toCategory is required")
        return v.strip()

    @field_validator("updated_at")
    @classmethod
    def _aware_timestamp(cls, v: datetime) -> datetime:
        return v.replace(tzinfo=UTC) if v.tzinfo is None else v

    @model_validator(mode="after")
    def _regex_compiles(self) -> NormalizationRule:
        if self.match_type is MatchType.REGEX:
            check = validate_regex_pattern(self.from_pattern)
            if not check.ok:
                raise ValueError(f"Invalid regex pattern: {check.reason}")
        return self


# ---------------------------------------------------------------------------
# Ranges, buckets and comparisons
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DateRange:
    """An inclusive calendar range ``[start, end]``."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"DateRange start must not be after end ({self.start} > {self.end})"
            )

    @classmethod
    def parse(cls, start: str, end: str) -> DateRange:
        return cls(date.fromisoformat(start), date.fromisoformat(end))

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def to_strings(self) -> dict[str, str]:
        return {"from": self.start.isoformat(), "to": self.end.isoformat()}


@dataclass(frozen=True, slots=True)
class Bucket:
    granularity: Granularity
    key: date
    label: str


@dataclass(frozen=True, slots=True)
class PeriodComparison:
    current: DateRange
    previous: DateRange
    delta_value: Decimal
    delta_pct: float | None


# ---------------------------------------------------------------------------
# Tagged resolution results and canonical view
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DateResolution:
    value: date | None
    source: DateSource

    @property
    def resolved(self) -> bool:
        return self.value is not None


@dataclass(frozen=True, slots=True)
class AmountResolution:
    value: Decimal
    source: AmountSource


@dataclass(frozen=True, slots=True)
class CategoryResolution:
    """Winning rule target and identifier; both ``None`` when nothing matched."""

    category: str | None
    rule_id: str | None

    @property
    def matched(self) -> bool:
        return self.rule_id is not None


@dataclass(frozen=True, slots=True)
class CanonicalRecord:
    record: RawRecord
    date: DateResolution
    amount: AmountResolution
    category: str | None
    category_source: CategorySource
    rule_id: str | None
    plate: str | None
    citation_number: str | None
    payer: PayerSide


# ---------------------------------------------------------------------------
# Investors
# ---------------------------------------------------------------------------


class Investor(BaseModel):
    """A vehicle owner; plates are normalized upper-case without hyphens."""

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    id: str
    name: str
    vehicles: tuple[str, ...] = ()
    email: str | None = None
    phone: str | None = None
    notes: str | None = None

    @field_validator("vehicles")
    @classmethod
    def _normalize_plates(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(p.strip().upper().replace("-", "") for p in v if p and p.strip())


__all__ = [
    "AmountResolution",
    "AmountSource",
    "Bucket",
    "CanonicalRecord",
    "CategoryResolution",
    "CategorySource",
    "DateBasis",
    "DateRange",
    "DateResolution",
    "DateSource",
    "Granularity",
    "Investor",
    "MatchType",
    "MetricScope",
    "NormalizationRule",
    "PayerSide",
    "PayerView",
    "PeriodComparison",
    "RankKey",
    "RawRecord",
    "RecordKind",
    "RuleScope",
    "SettlementStatus",
    "SortBy",
]
