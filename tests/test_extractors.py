import re

import pytest

from ledger_metrics.extractors import (
    derive_payer,
    extract_citation_number,
    extract_plate,
    is_fines_category,
    is_maintenance_category,
    is_rental_income_category,
    payer_matches_view,
)
from ledger_metrics.models import PayerSide, PayerView

# ---- Plates ---------------------------------------------------------------------


@pytest.mark.parametrize(
    ("text", "plate"),
    [
        ("Multa veículo ABC-1234", "ABC1234"),
        ("multa abc1234 radar", "ABC1234"),
        ("Pneu dianteiro BRA2E19", "BRA2E19"),
        ("Pneu dianteiro bra-2e19", "BRA2E19"),
        ("Placa: XYZ9876 revisão", "XYZ9876"),
        ("Vehicle: QWE1A23", "QWE1A23"),
        ("AIT: 123456789 placa RTY4B56", "RTY4B56"),
    ],
)
def test_extract_plate_shapes(text, plate):
    assert extract_plate(text) == plate


def test_excluded_reference_code_is_not_a_plate():
    assert extract_plate("LOC-3422 referência locação") is None
    assert extract_plate("NF-1234 peças") is None


def test_exclusion_skips_to_the_next_candidate():
    assert extract_plate("LOC-3422 carro ABC-1234") == "ABC1234"


def test_labeled_plate_wins_over_earlier_bare_match():
    assert extract_plate("DEF5678 substituído; placa: GHI9012") == "GHI9012"


def test_mercosul_shape_is_tried_before_legacy():
    assert extract_plate("ABC1234 e BRA2E19") == "BRA2E19"


def test_no_plate():
    assert extract_plate("Tarifa bancária") is None
    assert extract_plate(None) is None
    assert extract_plate("ABCD12345") is None


def test_exclusions_are_data():
    extra = (re.compile(r"^ABC\d+$"),)
    assert extract_plate("ABC-1234", exclusions=extra) is None
    assert extract_plate("LOC-3422", exclusions=extra) == "LOC3422"


# ---- Citation numbers -----------------------------------------------------------


@pytest.mark.parametrize(
    ("text", "number"),
    [
        ("Multa AIT: 1234567 ABC1234", "1234567"),
        ("auto 987654321 detran", "987654321"),
        ("Infração nº 55544433", "55544433"),
        ("AIT 12345 curto; AUTO 1234567", "1234567"),
        ("AIT 1234567890123456", None),
        ("Sem número", None),
        (None, None),
    ],
)
def test_extract_citation_number(text, number):
    assert extract_citation_number(text) == number


def test_citation_marker_priority():
    assert extract_citation_number("AUTO 111111 AIT 222222") == "222222"


# ---- Payer side -----------------------------------------------------------------


@pytest.mark.parametrize(
    ("text", "payer"),
    [
        ("Multa - cobrar locador", PayerSide.OWNER),
        ("Reembolso multa locatário", PayerSide.OWNER),
        ("Multa conta empresa", PayerSide.OPERATOR),
        ("Pago pela Clikcar", PayerSide.OPERATOR),
        ("Multa radar", PayerSide.UNKNOWN),
        ("", PayerSide.UNKNOWN),
        # owner-side cues are checked first
        ("Empresa repassa ao locador", PayerSide.OWNER),
    ],
)
def test_derive_payer(text, payer):
    assert derive_payer(text) is payer


def test_payer_views():
    assert payer_matches_view(PayerSide.UNKNOWN, PayerView.OPERATOR)
    assert payer_matches_view(PayerSide.OPERATOR, PayerView.OPERATOR)
    assert not payer_matches_view(PayerSide.OWNER, PayerView.OPERATOR)
    assert payer_matches_view(PayerSide.OWNER, PayerView.OWNER)
    assert not payer_matches_view(PayerSide.UNKNOWN, PayerView.OWNER)
    assert all(payer_matches_view(p, PayerView.ALL) for p in PayerSide)


# ---- Category classes -----------------------------------------------------------


def test_category_classifiers():
    assert is_fines_category("Multas / Correios / Detran")
    assert is_fines_category("multa")
    assert not is_fines_category("Combustível")
    assert not is_fines_category(None)
    assert is_maintenance_category("Peças & Acessórios")
    assert is_maintenance_category("Funilaria e Pintura")
    assert not is_maintenance_category("Aluguel escritório")
    assert is_rental_income_category("Locação semanal")
    assert is_rental_income_category("Aluguel")
    assert not is_rental_income_category("Venda de veículo")
