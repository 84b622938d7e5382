"""Period-over-period deltas and margins.

``None`` means "not applicable" (division by zero) and is distinct from
``0``; presentation layers must never render it as ``0%``.

Inputs may mix ``Decimal``, ``int`` and ``float``; everything is converted to
``Decimal`` through ``str`` first, so ``0.1`` stays ``Decimal("0.1")``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TypeAlias

Number: TypeAlias = Decimal | int | float


@dataclass(frozen=True, slots=True)
class Delta:
    value: Decimal
    pct: float | None


def as_decimal(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def delta_pct(current: Number, previous: Number) -> float | None:
    """Percentage change relative to ``|previous|``.

    Dividing by the absolute value keeps the sign meaningful when the previous
    value is negative: going from ``-100`` to ``-50`` is ``+50%``.
    """

    cur, prev = as_decimal(current), as_decimal(previous)
    if prev == 0:
        return None
    return float((cur - prev) / abs(prev) * 100)


def margin(profit: Number, income: Number) -> float | None:
    base = as_decimal(income)
    if base == 0:
        return None
    return float(as_decimal(profit) / base * 100)


def compute_delta(current: Number, previous: Number) -> Delta:
    cur, prev = as_decimal(current), as_decimal(previous)
    return Delta(value=cur - prev, pct=delta_pct(cur, prev))


def margin_delta_pp(current: float | None, previous: float | None) -> float | None:
    """Margin change in percentage points; ``None`` if either side is ``None``."""

    if current is None or previous is None:
        return None
    return current - previous


__all__ = [
    "Delta",
    "Number",
    "as_decimal",
    "compute_delta",
    "delta_pct",
    "margin",
    "margin_delta_pp",
]
