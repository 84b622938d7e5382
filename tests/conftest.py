"""Pytest configuration for test isolation.

Settings are read from ``LEDGER_METRICS_*`` environment variables, so a
developer's shell (or a stray ``.env``) could change timezone or ranking
defaults under the tests. An autouse fixture clears those variables and runs
each test from its own temporary directory.

The CLI configures the package logger on every invocation, which detaches it
from the root logger. The same fixture restores the unconfigured state so
``caplog`` keeps seeing package records in later tests.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Make sure the workspace `packages/` dir is on sys.path so `ledger_metrics` is importable
_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]

from ledger_metrics import logging_setup  # noqa: E402

_ENV_VARS = (
    "LEDGER_METRICS_TZ",
    "LEDGER_METRICS_TOP_LIMIT",
    "LEDGER_METRICS_INVESTORS_FILE",
    "LEDGER_METRICS_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    yield
    logger = logging.getLogger("ledger_metrics")
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    logging_setup._CONFIGURED = False
