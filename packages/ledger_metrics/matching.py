"""Pattern predicates used by the category normalization rules.

Three predicates are exposed, one per :class:`~ledger_metrics.models.MatchType`:

- ``match_exact``: normalized pattern equals normalized text.
- ``match_contains``: normalized text includes the normalized pattern.
- ``match_regex``: case-insensitive search over the *raw* text.

Regex evaluation is bounded: patterns longer than :data:`MAX_PATTERN_LENGTH`
or texts longer than :data:`MAX_TEXT_LENGTH` never match, and a pattern that
fails to compile is treated as non-matching instead of raising. Authoring-time
validation uses :func:`validate_regex_pattern` to reject such patterns early.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .logging_setup import get_logger
from .text import normalize_text

MAX_PATTERN_LENGTH = 200
MAX_TEXT_LENGTH = 500

_logger = get_logger("ledger_metrics.matching")


def match_exact(pattern: str, text: str, remove_accents: bool = False) -> bool:
    return normalize_text(pattern, remove_accents) == normalize_text(text, remove_accents)


def match_contains(pattern: str, text: str, remove_accents: bool = False) -> bool:
    needle = normalize_text(pattern, remove_accents)
    if not needle:
        return False
    return needle in normalize_text(text, remove_accents)


def match_regex(pattern: str, text: str) -> bool:
    if not pattern or len(pattern) > MAX_PATTERN_LENGTH:
        return False
    if not text or len(text) > MAX_TEXT_LENGTH:
        return False
    try:
        compiled = re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        _logger.warning("Invalid regex pattern %r: %s", pattern, exc)
        return False
    return compiled.search(text) is not None


@dataclass(frozen=True, slots=True)
class RegexValidation:
    ok: bool
    reason: str | None = None


def validate_regex_pattern(pattern: str) -> RegexValidation:
    """Authoring-time check for REGEX rule patterns.

    Rules
    -----
    - Non-empty.
    - At most :data:`MAX_PATTERN_LENGTH` characters.
    - Compiles under Python's :mod:`re` with ``IGNORECASE``.
    """

    if not pattern:
        return RegexValidation(False, "Pattern cannot be empty")
    if len(pattern) > MAX_PATTERN_LENGTH:
        return RegexValidation(False, f"Pattern exceeds {MAX_PATTERN_LENGTH} characters")
    try:
        re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        return RegexValidation(False, str(exc))
    return RegexValidation(True, None)


__all__ = [
    "MAX_PATTERN_LENGTH",
    "MAX_TEXT_LENGTH",
    "RegexValidation",
    "match_contains",
    "match_exact",
    "match_regex",
    "validate_regex_pattern",
]
