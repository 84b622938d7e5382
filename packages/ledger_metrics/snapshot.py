"""Single-writer, rebuild-and-replace holder for derived configuration.

Readers call :meth:`SnapshotCache.get` and receive whatever snapshot was last
published; the reference swap is a single attribute assignment, so a reader
sees either the old or the new snapshot and never a partially built one.
Writers build the replacement completely off to the side and then call
:meth:`SnapshotCache.publish` (or :meth:`SnapshotCache.refresh`, which runs the
builder under the writer lock). Published values must be immutable.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sized
from typing import Generic, TypeVar

from .logging_setup import get_logger

_logger = get_logger("ledger_metrics.snapshot")

T = TypeVar("T")


class SnapshotCache(Generic[T]):
    def __init__(self, name: str, initial: T) -> None:
        self._name = name
        self._value: T = initial
        self._version = 0
        self._write_lock = threading.Lock()

    @property
    def version(self) -> int:
        return self._version

    def get(self) -> T:
        return self._value

    def _log_published(self, value: T, version: int) -> None:
        if isinstance(value, Sized):
            _logger.info("Published %s snapshot v%d (%d items)", self._name, version, len(value))
        else:
            _logger.info("Published %s snapshot v%d", self._name, version)

    def publish(self, value: T) -> int:
        with self._write_lock:
            self._value = value
            self._version += 1
            version = self._version
        self._log_published(value, version)
        return version

    def refresh(self, build: Callable[[], T]) -> T:
        """Rebuild with ``build`` and publish the result.

        Builder errors propagate and leave the current snapshot in place.
        """

        with self._write_lock:
            value = build()
            self._value = value
            self._version += 1
            version = self._version
        self._log_published(value, version)
        return value


__all__ = ["SnapshotCache"]
