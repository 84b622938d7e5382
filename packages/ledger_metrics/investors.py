"""Investor directory: who owns which vehicles.

The directory is read from a JSON file shaped either as a list of investors
or as ``{"investors": [...]}``. A missing or unreadable file yields an empty
directory and a warning; metrics for unknown investors are simply absent.

:class:`InvestorStore` keeps the loaded directory in a
:class:`~ledger_metrics.snapshot.SnapshotCache`, so a reload rebuilds a new
immutable directory and swaps it in whole.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .logging_setup import get_logger
from .models import Investor
from .snapshot import SnapshotCache

_logger = get_logger("ledger_metrics.investors")


@dataclass(frozen=True, slots=True)
class InvestorDirectory:
    investors: tuple[Investor, ...] = ()

    @classmethod
    def from_investors(cls, investors: Iterable[Investor]) -> InvestorDirectory:
        return cls(tuple(investors))

    def __len__(self) -> int:
        return len(self.investors)

    def get(self, investor_id: str) -> Investor | None:
        for inv in self.investors:
            if inv.id == investor_id:
                return inv
        return None

    def owner_of(self, plate: str) -> Investor | None:
        key = plate.strip().upper().replace("-", "")
        for inv in self.investors:
            if key in inv.vehicles:
                return inv
        return None


def parse_investors(payload: object) -> InvestorDirectory:
    """Validate a decoded JSON payload into a directory.

    Raises ``ValueError`` (including pydantic's ``ValidationError``) when the
    payload is not a list of investors or an object with an ``investors`` list.
    """

    items = payload.get("investors") if isinstance(payload, dict) else payload
    if not isinstance(items, list):
        raise ValueError("investor directory must be a list or an object with 'investors'")
    return InvestorDirectory.from_investors(Investor.model_validate(item) for item in items)


def load_investor_directory(path: Path) -> InvestorDirectory:
    if not path.exists():
        _logger.warning("Investor directory not found at %s; using an empty directory", path)
        return InvestorDirectory()
    try:
        directory = parse_investors(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError) as exc:
        _logger.warning("Failed to load investor directory from %s: %s", path, exc)
        return InvestorDirectory()
    _logger.info("Loaded %d investors from %s", len(directory), path)
    return directory


class InvestorStore:
    """Reloadable holder for the investor directory at ``path``."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._cache: SnapshotCache[InvestorDirectory] = SnapshotCache(
            "investors", InvestorDirectory()
        )
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> InvestorDirectory:
        if not self._loaded:
            self.reload()
        return self._cache.get()

    def reload(self) -> InvestorDirectory:
        directory = self._cache.refresh(lambda: load_investor_directory(self._path))
        self._loaded = True
        return directory


__all__ = [
    "InvestorDirectory",
    "InvestorStore",
    "load_investor_directory",
    "parse_investors",
]
