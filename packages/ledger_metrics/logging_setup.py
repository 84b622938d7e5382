"""Logging for ``ledger_metrics``.

Modules log through ``get_logger("ledger_metrics.<module>")`` and never add
handlers. Only an entrypoint calls :func:`configure_logging`, which writes
``ledger_metrics`` records to stderr so command output on stdout stays clean
JSON. Until then the package logger holds a ``NullHandler`` and records still
propagate to whatever the host application set up.
"""

from __future__ import annotations

import logging
import os

PACKAGE_LOGGER = "ledger_metrics"
LEVEL_ENV_VAR = "LEDGER_METRICS_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_CONFIGURED = False


def _level_number(value: int | str) -> int | None:
    if isinstance(value, int):
        return value
    name = value.strip().upper()
    if name.isdigit():
        return int(name)
    return logging.getLevelNamesMapping().get(name)


def resolve_level(level: int | str | None = None) -> int:
    """Explicit ``level``, else ``LEDGER_METRICS_LOG_LEVEL``, else ``INFO``.

    Unknown level names are skipped, not rejected.
    """

    for candidate in (level, os.getenv(LEVEL_ENV_VAR)):
        if candidate is None or candidate == "":
            continue
        number = _level_number(candidate)
        if number is not None:
            return number
    return logging.INFO


def configure_logging(level: int | str | None = None) -> None:
    """Send package records to stderr at :func:`resolve_level`; later calls are no-ops."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(PACKAGE_LOGGER)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(resolve_level(level))
    logger.propagate = False
    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if not _CONFIGURED and not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["LEVEL_ENV_VAR", "PACKAGE_LOGGER", "configure_logging", "get_logger", "resolve_level"]
