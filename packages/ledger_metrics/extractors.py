"""Entity extraction heuristics over free ledger text.

- ``extract_plate``: Brazilian vehicle plates, legacy ``AAA-0000`` and
  Mercosul ``AAA0A00`` shapes, normalized upper-case without hyphens.
- ``extract_citation_number``: traffic citation (AIT) numbers, 6 to 15 digits
  after a known marker.
- ``derive_payer``: which party bears a cost, from keyword cues.

Every heuristic is driven by the ordered data tables below; extending a table
changes behavior without touching control flow. First match wins.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from .models import PayerSide, PayerView
from .text import normalize_class_key

# ---------------------------------------------------------------------------
# Plates
# ---------------------------------------------------------------------------

_PLATE_BODY = r"([A-Z]{3})-?(\d[A-Z0-9]\d{2})\b"

# Explicit labels, tried in order before any bare scan. The AIT entry covers
# compound markers such as "AIT: 123456 placa ABC1D23".
LABELED_PLATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bPLACA[:\s]+" + _PLATE_BODY),
    re.compile(r"\bPLATE[:\s]+" + _PLATE_BODY),
    re.compile(r"\bAIT[:\s]+\d+[^\d]*?" + _PLATE_BODY),
    re.compile(r"\bVE[IÍ]CULO[:\s]+" + _PLATE_BODY),
    re.compile(r"\bVEHICLE[:\s]+" + _PLATE_BODY),
)

# Bare shapes, most specific first.
PLATE_SHAPES: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b([A-Z]{3})-?(\d)([A-Z])(\d{2})\b"),  # Mercosul
    re.compile(r"\b([A-Z]{3})-?(\d{4})\b"),  # legacy
)

# Reference codes that happen to look like plates; checked against the
# normalized candidate.
PLATE_EXCLUSIONS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^LOC\d+$"),  # rental (locação) references
    re.compile(r"^NF\d+$"),  # invoice (nota fiscal) numbers
    re.compile(r"^REF\d+$"),
    re.compile(r"^ID\d+$"),
)

NO_PLATE_KEY = "SEM PLACA"


def normalize_plate(value: str) -> str:
    return value.strip().upper().replace("-", "")


def is_excluded_plate(
    plate: str, exclusions: Sequence[re.Pattern[str]] = PLATE_EXCLUSIONS
) -> bool:
    return any(p.search(plate) for p in exclusions)


def extract_plate(
    text: str | None,
    *,
    exclusions: Sequence[re.Pattern[str]] = PLATE_EXCLUSIONS,
) -> str | None:
    if not text:
        return None
    upper = text.upper()

    for pattern in LABELED_PLATE_PATTERNS:
        m = pattern.search(upper)
        if m:
            plate = normalize_plate("".join(m.groups()))
            if not is_excluded_plate(plate, exclusions):
                return plate

    for shape in PLATE_SHAPES:
        for m in shape.finditer(upper):
            plate = normalize_plate("".join(m.groups()))
            if not is_excluded_plate(plate, exclusions):
                return plate

    return None


# ---------------------------------------------------------------------------
# Citation numbers
# ---------------------------------------------------------------------------

CITATION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bAIT[:\s]*(\d{6,15})(?!\d)", re.IGNORECASE),
    re.compile(r"\bAUTO[:\s]*(\d{6,15})(?!\d)", re.IGNORECASE),
    re.compile(r"\bN[º°.]?\s*[:]?\s*(\d{6,15})(?!\d)", re.IGNORECASE),
)


def extract_citation_number(text: str | None) -> str | None:
    if not text:
        return None
    for pattern in CITATION_PATTERNS:
        m = pattern.search(text)
        if m:
            return m.group(1)
    return None


# ---------------------------------------------------------------------------
# Payer side
# ---------------------------------------------------------------------------

# Ordered: owner-side cues are checked before operator-side cues.
PAYER_KEYWORDS: tuple[tuple[PayerSide, tuple[str, ...]], ...] = (
    (
        PayerSide.OWNER,
        (
            "LOCADOR",
            "LOCATÁRIO",
            "LOCATARIO",
            "REEMBOLSO",
            "REPASSE",
            "DESCONTO LOCADOR",
            "COBRAR LOCADOR",
            "RESPONSABILIDADE LOCADOR",
            "CONTA LOCADOR",
        ),
    ),
    (
        PayerSide.OPERATOR,
        (
            "EMPRESA",
            "CLIKCAR",
            "CLIK CAR",
            "RESPONSABILIDADE EMPRESA",
            "CONTA EMPRESA",
        ),
    ),
)

# Unattributed cost defaults to the operating entity.
PAYER_VIEWS: dict[PayerView, frozenset[PayerSide]] = {
    PayerView.ALL: frozenset(PayerSide),
    PayerView.OPERATOR: frozenset({PayerSide.OPERATOR, PayerSide.UNKNOWN}),
    PayerView.OWNER: frozenset({PayerSide.OWNER}),
}


def derive_payer(text: str | None) -> PayerSide:
    if not text:
        return PayerSide.UNKNOWN
    upper = text.upper()
    for side, keywords in PAYER_KEYWORDS:
        if any(k in upper for k in keywords):
            return side
    return PayerSide.UNKNOWN


def payer_matches_view(payer: PayerSide, view: PayerView) -> bool:
    return payer in PAYER_VIEWS[view]


# ---------------------------------------------------------------------------
# Category classes
# ---------------------------------------------------------------------------

FINES_CLASSES: tuple[str, ...] = (
    "multas-correios-detran",
    "multas",
    "multa",
    "infracoes",
    "detran",
    "correios",
)

MAINTENANCE_CLASSES: tuple[str, ...] = (
    "mecanica-eletrica-chaveiro",
    "pecas-acessorios",
    "saidas-para-mecanica",
    "lavagem",
    "funilaria-pintura",
    "funilaria",
    "pneus",
    "revisao",
    "manutencao",
    "oficina",
    "reparos",
)

RENTAL_INCOME_MARKERS: tuple[str, ...] = ("locacao", "aluguel")


def _class_matches(category: str | None, classes: Sequence[str]) -> bool:
    if not category:
        return False
    key = normalize_class_key(category)
    return any(c in key for c in classes)


def is_fines_category(category: str | None) -> bool:
    return _class_matches(category, FINES_CLASSES)


def is_maintenance_category(category: str | None) -> bool:
    return _class_matches(category, MAINTENANCE_CLASSES)


def is_rental_income_category(category: str | None) -> bool:
    return _class_matches(category, RENTAL_INCOME_MARKERS)


__all__ = [
    "CITATION_PATTERNS",
    "FINES_CLASSES",
    "LABELED_PLATE_PATTERNS",
    "MAINTENANCE_CLASSES",
    "NO_PLATE_KEY",
    "PAYER_KEYWORDS",
    "PAYER_VIEWS",
    "PLATE_EXCLUSIONS",
    "PLATE_SHAPES",
    "derive_payer",
    "extract_citation_number",
    "extract_plate",
    "is_excluded_plate",
    "is_fines_category",
    "is_maintenance_category",
    "is_rental_income_category",
    "normalize_plate",
    "payer_matches_view",
]
