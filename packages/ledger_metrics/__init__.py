"""Public interface for the ``ledger_metrics`` package.

This module re-exports the canonicalization, rule engine and aggregation
functions plus the public models as the stable import surface. There is no
runtime logic here, only symbol re-exports.
"""

from .aggregate import (
    cash_position,
    compare_cash_position,
    exec_dashboard,
    expense_drivers,
    investor_metrics,
    list_fines,
    rank,
    summarize,
    time_series,
)
from .canonical import IngestionStats, canonicalize, canonicalize_all
from .config import Settings, load_settings
from .deltas import compute_delta, delta_pct, margin, margin_delta_pp
from .extractors import derive_payer, extract_citation_number, extract_plate
from .investors import InvestorDirectory, InvestorStore
from .models import (
    CanonicalRecord,
    CategorySource,
    DateBasis,
    DateRange,
    Granularity,
    Investor,
    MatchType,
    MetricScope,
    NormalizationRule,
    PayerSide,
    PayerView,
    PeriodComparison,
    RankKey,
    RawRecord,
    RecordKind,
    RuleScope,
    SettlementStatus,
    SortBy,
)
from .periods import (
    DatePreset,
    bucket_key,
    bucket_label,
    calculate_previous_period,
    choose_granularity,
    compare_period,
    generate_buckets,
)
from .resolvers import resolve_amount, resolve_canonical_date
from .rules import RuleSet, apply_rules, preview_rules, resolve_category_by_rules

__all__ = [
    # Aggregation
    "cash_position",
    "compare_cash_position",
    "exec_dashboard",
    "expense_drivers",
    "investor_metrics",
    "list_fines",
    "rank",
    "summarize",
    "time_series",
    # Canonicalization
    "IngestionStats",
    "canonicalize",
    "canonicalize_all",
    "resolve_amount",
    "resolve_canonical_date",
    "derive_payer",
    "extract_citation_number",
    "extract_plate",
    # Rules
    "RuleSet",
    "apply_rules",
    "preview_rules",
    "resolve_category_by_rules",
    # Periods and deltas
    "DatePreset",
    "bucket_key",
    "bucket_label",
    "calculate_previous_period",
    "choose_granularity",
    "compare_period",
    "generate_buckets",
    "compute_delta",
    "delta_pct",
    "margin",
    "margin_delta_pp",
    # Configuration
    "InvestorDirectory",
    "InvestorStore",
    "Settings",
    "load_settings",
    # Models
    "CanonicalRecord",
    "CategorySource",
    "DateBasis",
    "DateRange",
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
