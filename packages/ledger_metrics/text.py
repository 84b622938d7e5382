"""Text normalization helpers shared by the matcher, rule engine and reports.

All helpers are total: ``None`` and empty strings are accepted and map to a
stable fallback instead of raising.
"""

from __future__ import annotations

import re
import unicodedata

_WS_RE = re.compile(r"\s+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_LABEL_SPLIT_RE = re.compile(r"[-_\s]+")

UNCATEGORIZED_KEY = "sem-categoria"
UNCATEGORIZED_LABEL = "Sem Categoria"


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(text: str | None, remove_accents: bool = False) -> str:
    """Return ``text`` trimmed, lower-cased and with whitespace runs collapsed.

    When ``remove_accents`` is true, combining marks are dropped as well so
    ``"Locação"`` and ``"locacao"`` compare equal.
    """

    if not text:
        return ""
    normalized = _WS_RE.sub(" ", text.strip().lower())
    if remove_accents:
        normalized = strip_accents(normalized)
    return normalized


def normalize_class_key(name: str | None) -> str:
    """Slug a category name into a stable grouping key.

    ``"Peças & Acessórios"`` -> ``"pecas-acessorios"``; missing names group
    under :data:`UNCATEGORIZED_KEY`.
    """

    if not name:
        return UNCATEGORIZED_KEY
    key = _NON_ALNUM_RE.sub("-", strip_accents(name.lower())).strip("-")
    return key or UNCATEGORIZED_KEY


def format_class_label(name: str | None) -> str:
    if not name:
        return UNCATEGORIZED_LABEL
    words = [w for w in _LABEL_SPLIT_RE.split(name.strip()) if w]
    if not words:
        return UNCATEGORIZED_LABEL
    return " ".join(w[:1].upper() + w[1:].lower() for w in words)


__all__ = [
    "UNCATEGORIZED_KEY",
    "UNCATEGORIZED_LABEL",
    "format_class_label",
    "normalize_class_key",
    "normalize_text",
    "strip_accents",
]
