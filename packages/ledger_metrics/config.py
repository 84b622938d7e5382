"""Runtime settings for ``ledger_metrics``.

Settings are read from environment variables once per call to
:func:`load_settings` and returned as an immutable value; nothing here is
cached at module level. Entrypoints load a local ``.env`` first (see
``ledger_metrics.cli``).

Environment variables
---------------------
- ``LEDGER_METRICS_TZ``: civil timezone that defines calendar days
  (default ``America/Sao_Paulo``).
- ``LEDGER_METRICS_TOP_LIMIT``: default ranking size (default ``5``).
- ``LEDGER_METRICS_INVESTORS_FILE``: path of the investor directory JSON
  (default ``./data/investors.json``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIMEZONE = "America/Sao_Paulo"
DEFAULT_TOP_LIMIT = 5


@dataclass(frozen=True, slots=True)
class Settings:
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo(DEFAULT_TIMEZONE))
    top_limit: int = DEFAULT_TOP_LIMIT
    investors_file: Path = Path("data") / "investors.json"

    def today(self) -> date:
        return today_in(self.timezone)


def today_in(tz: ZoneInfo) -> date:
    """Current calendar date in ``tz``, independent of the host's local zone."""

    return datetime.now(tz).date()


def to_civil_date(value: date | datetime | None, tz: ZoneInfo) -> date | None:
    """Collapse a date or datetime to a calendar date in ``tz``.

    Aware datetimes are converted into ``tz`` first; naive datetimes are taken
    as already expressed in civil time.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    return value


def _env_timezone() -> ZoneInfo:
    name = (os.getenv("LEDGER_METRICS_TZ") or "").strip() or DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"LEDGER_METRICS_TZ is not a known timezone: {name!r}") from exc


def _env_top_limit() -> int:
    raw = (os.getenv("LEDGER_METRICS_TOP_LIMIT") or "").strip()
    if not raw:
        return DEFAULT_TOP_LIMIT
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"LEDGER_METRICS_TOP_LIMIT must be an integer: {raw!r}") from exc
    if value <= 0:
        raise ValueError("LEDGER_METRICS_TOP_LIMIT must be positive")
    return value


def load_settings() -> Settings:
    investors = (os.getenv("LEDGER_METRICS_INVESTORS_FILE") or "").strip()
    return Settings(
        timezone=_env_timezone(),
        top_limit=_env_top_limit(),
        investors_file=Path(investors).expanduser() if investors else Settings().investors_file,
    )


__all__ = [
    "DEFAULT_TIMEZONE",
    "DEFAULT_TOP_LIMIT",
    "Settings",
    "load_settings",
    "to_civil_date",
    "today_in",
]
