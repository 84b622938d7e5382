"""Map exported ledger JSON into :class:`~ledger_metrics.models.RawRecord`.

Input records use the camelCase keys of the persistence layer's export::

    id, type, status, dueDate, plannedDate, actualDate,
    plannedAmount, actualAmount, grossAmount,
    rawCategory, category, categorySource, normalizedByRuleId,
    description, counterparty, notes

A payload is either a list of such objects or ``{"records": [...]}``.
Structural problems (missing ``id``, unknown ``type`` or ``status``) raise;
unparseable dates and amounts become ``None`` and are tallied in the returned
:class:`LoadResult` so the data-quality loss stays visible.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .config import to_civil_date
from .logging_setup import get_logger
from .models import (
    CategorySource,
    NormalizationRule,
    RawRecord,
    RecordKind,
    SettlementStatus,
)

_logger = get_logger("ledger_metrics.loaders")

_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d/%m/%y")
_CURRENCY_NOISE = re.compile(r"[R$\s]")
_THOUSANDS_DOTS = re.compile(r"^-?\d{1,3}(\.\d{3})+$")

Scalar = str | int | float | None


class RecordIn(BaseModel):
    """Structural shape of one exported record; values stay raw here."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )

    id: str
    type: RecordKind
    status: SettlementStatus
    due_date: Scalar = None
    planned_date: Scalar = None
    actual_date: Scalar = None
    planned_amount: Scalar = None
    actual_amount: Scalar = None
    gross_amount: Scalar = None
    raw_category: str | None = None
    category: str | None = None
    category_source: CategorySource = CategorySource.RAW
    normalized_by_rule_id: str | None = None
    description: str | None = None
    counterparty: str | None = None
    notes: str | None = None


@dataclass(slots=True)
class LoadResult:
    records: list[RawRecord] = field(default_factory=list)
    malformed_dates: int = 0
    malformed_amounts: int = 0


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = re.sub(r"\s+", " ", value).strip()
    return cleaned or None


def parse_date_value(value: Scalar, tz: ZoneInfo | None = None) -> date | None:
    """Parse ISO dates, ISO datetimes (collapsed in ``tz``) and ``dd/mm/yyyy``.

    Raises ``ValueError`` for non-empty input that matches none of them.
    """

    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if "T" in s or " " in s:
        dt = datetime.fromisoformat(s)
        return to_civil_date(dt, tz) if tz is not None else dt.date()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"unrecognized date: {s!r}")


def parse_amount_value(value: Scalar) -> Decimal | None:
    """Parse numbers and ``"1.234,56"`` / ``"R$ 1234.56"`` style strings.

    A comma is always the decimal separator. Without a comma, dots grouping
    digits in threes are thousands separators when there is more than one of
    them (``"1.234.567"``) or the value carries the ``R$`` prefix
    (``"R$ 1.234"``). A lone ``"1.500"`` stays a decimal.

    Raises ``ValueError`` for non-empty input that is not a finite number.
    """

    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"not an amount: {value!r}")
    if isinstance(value, int | float):
        amount = Decimal(str(value))
    else:
        s = _CURRENCY_NOISE.sub("", value)
        if not s:
            return None
        if "," in s:
            s = s.replace(".", "").replace(",", ".")
        elif _THOUSANDS_DOTS.match(s) and (s.count(".") > 1 or "R$" in value):
            s = s.replace(".", "")
        try:
            amount = Decimal(s)
        except InvalidOperation as exc:
            raise ValueError(f"not an amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"not a finite amount: {value!r}")
    return amount


class _Converter:
    def __init__(self, tz: ZoneInfo | None) -> None:
        self.tz = tz
        self.malformed_dates = 0
        self.malformed_amounts = 0

    def to_date(self, value: Scalar) -> date | None:
        try:
            return parse_date_value(value, self.tz)
        except ValueError:
            self.malformed_dates += 1
            return None

    def to_amount(self, value: Scalar) -> Decimal | None:
        try:
            return parse_amount_value(value)
        except ValueError:
            self.malformed_amounts += 1
            return None

    def record(self, item: RecordIn) -> RawRecord:
        return RawRecord(
            id=item.id,
            kind=item.type,
            status=item.status,
            due_date=self.to_date(item.due_date),
            planned_date=self.to_date(item.planned_date),
            actual_date=self.to_date(item.actual_date),
            planned_amount=self.to_amount(item.planned_amount),
            actual_amount=self.to_amount(item.actual_amount),
            gross_amount=self.to_amount(item.gross_amount),
            raw_category=_clean_text(item.raw_category),
            category=_clean_text(item.category),
            category_source=item.category_source,
            normalized_by_rule_id=item.normalized_by_rule_id,
            description=_clean_text(item.description),
            counterparty=_clean_text(item.counterparty),
            notes=_clean_text(item.notes),
        )


def _unwrap(payload: object, key: str) -> list[Any]:
    items = payload.get(key) if isinstance(payload, dict) else payload
    if not isinstance(items, list):
        raise ValueError(f"expected a JSON list or an object with a '{key}' list")
    return items


def records_from_json(
    items: Iterable[Mapping[str, Any]], *, tz: ZoneInfo | None = None
) -> LoadResult:
    conv = _Converter(tz)
    result = LoadResult()
    for item in items:
        result.records.append(conv.record(RecordIn.model_validate(item)))
    result.malformed_dates = conv.malformed_dates
    result.malformed_amounts = conv.malformed_amounts
    if conv.malformed_dates or conv.malformed_amounts:
        _logger.warning(
            "Ignored %d malformed date(s) and %d malformed amount(s) across %d records",
            conv.malformed_dates,
            conv.malformed_amounts,
            len(result.records),
        )
    return result


def load_records(path: Path, *, tz: ZoneInfo | None = None) -> LoadResult:
    payload = json.loads(path.read_text(encoding="utf-8"))
    return records_from_json(_unwrap(payload, "records"), tz=tz)


def record_to_json(record: RawRecord) -> dict[str, Any]:
    """Inverse of the import mapping, using the same camelCase keys.

    Amounts are written as plain decimal strings so a dump reloads exactly.
    """

    def iso(value: date | None) -> str | None:
        return value.isoformat() if value is not None else None

    def num(value: Decimal | None) -> str | None:
        return str(value) if value is not None else None

    return {
        "id": record.id,
        "type": record.kind.value,
        "status": record.status.value,
        "dueDate": iso(record.due_date),
        "plannedDate": iso(record.planned_date),
        "actualDate": iso(record.actual_date),
        "plannedAmount": num(record.planned_amount),
        "actualAmount": num(record.actual_amount),
        "grossAmount": num(record.gross_amount),
        "rawCategory": record.raw_category,
        "category": record.category,
        "categorySource": record.category_source.value,
        "normalizedByRuleId": record.normalized_by_rule_id,
        "description": record.description,
        "counterparty": record.counterparty,
        "notes": record.notes,
    }


def dump_records(records: Iterable[RawRecord]) -> list[dict[str, Any]]:
    return [record_to_json(r) for r in records]


def load_rules(path: Path) -> list[NormalizationRule]:
    """Read rules from ``path``; invalid rules raise ``pydantic.ValidationError``."""

    payload = json.loads(path.read_text(encoding="utf-8"))
    rules = [NormalizationRule.model_validate(item) for item in _unwrap(payload, "rules")]
    _logger.debug("Loaded %d rules from %s", len(rules), path)
    return rules


__all__ = [
    "LoadResult",
    "RecordIn",
    "dump_records",
    "load_records",
    "load_rules",
    "parse_amount_value",
    "parse_date_value",
    "record_to_json",
    "records_from_json",
]
