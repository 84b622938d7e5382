"""Category normalization rule engine.

Maps the free-text label of a ledger row to a standardized category using a
priority-ordered list of :class:`~ledger_metrics.models.NormalizationRule`.

Selection
---------
- Only active rules whose scope equals the requested scope, or is ``BOTH``,
  take part.
- Higher ``priority`` wins; ties go to the most recent ``updated_at``; any
  remaining tie goes to the lexicographically smallest rule ``id``. The order
  rules are supplied in never affects the outcome.
- An empty label never matches.

The engine only ever derives a category. It does not read the effective
category of a record, so re-running it over already-normalized data yields the
same assignments, and records whose category was set by hand (``MANUAL``) are
never rewritten by :func:`apply_rules`.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .logging_setup import get_logger
from .matching import match_contains, match_exact, match_regex
from .models import (
    CategoryResolution,
    CategorySource,
    DateRange,
    MatchType,
    NormalizationRule,
    RawRecord,
    RuleScope,
)

LABEL_SEPARATOR = " | "

_logger = get_logger("ledger_metrics.rules")


# ---------------------------------------------------------------------------
# Label construction and single-rule matching
# ---------------------------------------------------------------------------


def build_raw_label(
    *,
    counterparty: str | None = None,
    description: str | None = None,
    category: str | None = None,
    notes: str | None = None,
) -> str:
    """Join the available descriptive fields with :data:`LABEL_SEPARATOR`.

    Field order is fixed (counterparty, description, category, notes) and
    absent or blank fields are skipped, so the same row always yields the same
    label.
    """

    parts = [p for p in (counterparty, description, category, notes) if p and p.strip()]
    return LABEL_SEPARATOR.join(parts)


def record_label(record: RawRecord) -> str:
    return build_raw_label(
        counterparty=record.counterparty,
        description=record.description,
        category=record.raw_category,
        notes=record.notes,
    )


def match_rule(rule: NormalizationRule, text: str) -> bool:
    if not rule.active or not text:
        return False
    if rule.match_type is MatchType.EXACT:
        return match_exact(rule.from_pattern, text)
    if rule.match_type is MatchType.CONTAINS:
        return match_contains(rule.from_pattern, text)
    if rule.match_type is MatchType.REGEX:
        return match_regex(rule.from_pattern, text)
    return False


# ---------------------------------------------------------------------------
# Scope filtering, ordering and selection
# ---------------------------------------------------------------------------


def filter_rules_by_scope(
    rules: Iterable[NormalizationRule], scope: RuleScope
) -> list[NormalizationRule]:
    """Keep rules applicable to ``scope``; a ``BOTH`` request keeps every rule."""

    if scope is RuleScope.BOTH:
        return list(rules)
    return [r for r in rules if r.scope is RuleScope.BOTH or r.scope is scope]


def _precedence(rule: NormalizationRule) -> tuple[int, float, str]:
    # Ascending sort key: -priority, -updated_at, id
    return (-rule.priority, -rule.updated_at.timestamp(), rule.id)


def sort_rules_by_priority(rules: Iterable[NormalizationRule]) -> list[NormalizationRule]:
    return sorted(rules, key=_precedence)


def pick_best_rule(
    rules: Iterable[NormalizationRule], text: str, *, presorted: bool = False
) -> NormalizationRule | None:
    ordered = rules if presorted else sort_rules_by_priority(rules)
    for rule in ordered:
        if match_rule(rule, text):
            return rule
    return None


def resolve_category_by_rules(
    rules: Iterable[NormalizationRule] | RuleSet,
    raw_label: str | None,
    scope: RuleScope,
) -> CategoryResolution:
    """Return the winning rule's category and id, or ``(None, None)``."""

    if not raw_label:
        return CategoryResolution(None, None)
    if isinstance(rules, RuleSet):
        return rules.resolve(raw_label, scope)
    winner = pick_best_rule(filter_rules_by_scope(rules, scope), raw_label)
    if winner is None:
        return CategoryResolution(None, None)
    return CategoryResolution(winner.to_category, winner.id)


# ---------------------------------------------------------------------------
# Immutable rule snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RuleSet:
    """Immutable, pre-sorted snapshot of the active rules.

    Build one with :meth:`from_rules` and share it freely between threads;
    to change the rules, build a new snapshot and publish it through a
    :class:`~ledger_metrics.snapshot.SnapshotCache`.
    """

    rules: tuple[NormalizationRule, ...]

    @classmethod
    def from_rules(cls, rules: Iterable[NormalizationRule]) -> RuleSet:
        return cls(tuple(sort_rules_by_priority(r for r in rules if r.active)))

    @classmethod
    def empty(cls) -> RuleSet:
        return cls(())

    def __len__(self) -> int:
        return len(self.rules)

    def by_id(self) -> dict[str, NormalizationRule]:
        return {r.id: r for r in self.rules}

    def resolve(self, raw_label: str | None, scope: RuleScope) -> CategoryResolution:
        if not raw_label:
            return CategoryResolution(None, None)
        # filter_rules_by_scope keeps order, so the snapshot stays presorted
        winner = pick_best_rule(
            filter_rules_by_scope(self.rules, scope), raw_label, presorted=True
        )
        if winner is None:
            return CategoryResolution(None, None)
        return CategoryResolution(winner.to_category, winner.id)

    def resolve_record(self, record: RawRecord) -> CategoryResolution:
        return self.resolve(record_label(record), record.rule_scope)


# ---------------------------------------------------------------------------
# Backfill over a record collection
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RuleCount:
    rule_id: str
    from_pattern: str
    to_category: str
    count: int


@dataclass(frozen=True, slots=True)
class NormalizationReport:
    records: tuple[RawRecord, ...]
    eligible_count: int
    updated_count: int
    skipped_count: int
    by_rule: tuple[RuleCount, ...]
    dry_run: bool


@dataclass(frozen=True, slots=True)
class PreviewSample:
    record_id: str
    raw_label: str
    current_category: str | None
    new_category: str
    rule_id: str
    rule_pattern: str


@dataclass(frozen=True, slots=True)
class NormalizationPreview:
    eligible_count: int
    would_update_count: int
    by_rule: tuple[RuleCount, ...]
    samples: tuple[PreviewSample, ...]


def is_eligible(record: RawRecord, *, only_uncategorized: bool = True) -> bool:
    """Whether automatic normalization may (re)assign ``record``'s category."""

    if record.category_source is CategorySource.MANUAL:
        return False
    if only_uncategorized:
        return record.category is None or record.category_source is CategorySource.RAW
    return True


def _in_scope(record: RawRecord, scope: RuleScope) -> bool:
    return scope is RuleScope.BOTH or record.rule_scope is scope


def _in_range(record: RawRecord, date_range: DateRange | None) -> bool:
    if date_range is None:
        return True
    return record.due_date is not None and date_range.contains(record.due_date)


def _is_candidate(
    record: RawRecord,
    *,
    scope: RuleScope,
    date_range: DateRange | None,
    only_uncategorized: bool,
) -> bool:
    return (
        _in_scope(record, scope)
        and _in_range(record, date_range)
        and is_eligible(record, only_uncategorized=only_uncategorized)
        and bool(record_label(record))
    )


def _rule_counts(counts: dict[str, int], rule_set: RuleSet) -> tuple[RuleCount, ...]:
    by_id = rule_set.by_id()
    rows = [
        RuleCount(
            rule_id=rid,
            from_pattern=by_id[rid].from_pattern,
            to_category=by_id[rid].to_category,
            count=n,
        )
        for rid, n in counts.items()
    ]
    # Stable: equal counts keep first-hit order
    rows.sort(key=lambda rc: rc.count, reverse=True)
    return tuple(rows)


def apply_rules(
    records: Sequence[RawRecord],
    rule_set: RuleSet,
    *,
    scope: RuleScope = RuleScope.BOTH,
    date_range: DateRange | None = None,
    only_uncategorized: bool = True,
    dry_run: bool = False,
) -> NormalizationReport:
    """Backfill normalized categories over ``records``.

    Returns a report whose ``records`` mirror the input order; matched records
    carry the rule's category with ``NORMALIZED`` provenance and the winning
    rule id, all others are returned unchanged. With ``dry_run`` the input
    records are returned untouched but counts are still computed.
    """

    counts: dict[str, int] = {}
    eligible = 0
    updated = 0
    skipped = 0
    out: list[RawRecord] = []

    for record in records:
        if not _is_candidate(
            record, scope=scope, date_range=date_range, only_uncategorized=only_uncategorized
        ):
            out.append(record)
            continue
        eligible += 1
        result = rule_set.resolve_record(record)
        rule_id = result.rule_id
        if rule_id is None:
            skipped += 1
            out.append(record)
            continue
        counts[rule_id] = counts.get(rule_id, 0) + 1
        updated += 1
        if dry_run:
            out.append(record)
        else:
            out.append(
                dataclasses.replace(
                    record,
                    category=result.category,
                    category_source=CategorySource.NORMALIZED,
                    normalized_by_rule_id=rule_id,
                )
            )

    _logger.info(
        "%sUpdated %d, Skipped %d (eligible=%d, rules=%d)",
        "DRY RUN: " if dry_run else "",
        updated,
        skipped,
        eligible,
        len(rule_set),
    )
    return NormalizationReport(
        records=tuple(out),
        eligible_count=eligible,
        updated_count=updated,
        skipped_count=skipped,
        by_rule=_rule_counts(counts, rule_set),
        dry_run=dry_run,
    )


def preview_rules(
    records: Sequence[RawRecord],
    rule_set: RuleSet,
    *,
    scope: RuleScope = RuleScope.BOTH,
    date_range: DateRange | None = None,
    only_uncategorized: bool = True,
    sample_limit: int = 10,
    top_rules: int = 10,
) -> NormalizationPreview:
    """Report which records :func:`apply_rules` would update, without updating."""

    eligible = [
        r
        for r in records
        if _is_candidate(
            r, scope=scope, date_range=date_range, only_uncategorized=only_uncategorized
        )
    ]
    by_id = rule_set.by_id()
    counts: dict[str, int] = {}
    samples: list[PreviewSample] = []

    for record in eligible:
        result = rule_set.resolve_record(record)
        if result.rule_id is None or result.category is None:
            continue
        counts[result.rule_id] = counts.get(result.rule_id, 0) + 1
        if len(samples) < sample_limit:
            samples.append(
                PreviewSample(
                    record_id=record.id,
                    raw_label=record_label(record),
                    current_category=record.category,
                    new_category=result.category,
                    rule_id=result.rule_id,
                    rule_pattern=by_id[result.rule_id].from_pattern,
                )
            )

    return NormalizationPreview(
        eligible_count=len(eligible),
        would_update_count=sum(counts.values()),
        by_rule=_rule_counts(counts, rule_set)[:top_rules],
        samples=tuple(samples),
    )


__all__ = [
    "LABEL_SEPARATOR",
    "NormalizationPreview",
    "NormalizationReport",
    "PreviewSample",
    "RuleCount",
    "RuleSet",
    "apply_rules",
    "build_raw_label",
    "filter_rules_by_scope",
    "is_eligible",
    "match_rule",
    "pick_best_rule",
    "preview_rules",
    "record_label",
    "resolve_category_by_rules",
    "sort_rules_by_priority",
]
