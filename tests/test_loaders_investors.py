import json
import logging
from datetime import date
from decimal import Decimal
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from ledger_metrics.investors import (
    InvestorDirectory,
    InvestorStore,
    load_investor_directory,
    parse_investors,
)
from ledger_metrics.loaders import (
    dump_records,
    load_records,
    load_rules,
    parse_amount_value,
    parse_date_value,
    records_from_json,
)
from ledger_metrics.models import CategorySource, MatchType, RecordKind, SettlementStatus

SAO_PAULO = ZoneInfo("America/Sao_Paulo")


def _write(path: Path, payload: object) -> Path:
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
    return path


# ---- Scalar parsing -------------------------------------------------------------


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2026-01-15", date(2026, 1, 15)),
        ("15/01/2026", date(2026, 1, 15)),
        ("15/01/26", date(2026, 1, 15)),
        ("2026-01-15T10:00:00", date(2026, 1, 15)),
        ("", None),
        (None, None),
    ],
)
def test_parse_date_value(value, expected):
    assert parse_date_value(value) == expected


def test_parse_date_value_collapses_datetimes_in_timezone():
    assert parse_date_value("2026-01-10T01:30:00+00:00", SAO_PAULO) == date(2026, 1, 9)
    assert parse_date_value("2026-01-10T01:30:00+00:00") == date(2026, 1, 10)


@pytest.mark.parametrize("value", ["amanhã", "2026-13-40", "32/01/2026"])
def test_parse_date_value_rejects_garbage(value):
    with pytest.raises(ValueError):
        parse_date_value(value)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (150, Decimal("150")),
        (99.9, Decimal("99.9")),
        ("1234.56", Decimal("1234.56")),
        ("1.234,56", Decimal("1234.56")),
        ("R$ 1.234,56", Decimal("1234.56")),
        ("-30,00", Decimal("-30.00")),
        ("R$ 1.234", Decimal("1234")),
        ("1.234.567", Decimal("1234567")),
        ("-1.234.567,89", Decimal("-1234567.89")),
        ("1.500", Decimal("1.500")),
        ("  ", None),
        (None, None),
    ],
)
def test_parse_amount_value(value, expected):
    assert parse_amount_value(value) == expected


@pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", True])
def test_parse_amount_value_rejects_non_finite_and_garbage(value):
    with pytest.raises(ValueError):
        parse_amount_value(value)


# ---- Records --------------------------------------------------------------------


def test_records_from_json_maps_camel_case_fields():
    result = records_from_json(
        [
            {
                "id": "r1",
                "type": "PAYABLE",
                "status": "SETTLED",
                "dueDate": "2026-01-10",
                "actualDate": "2026-01-12",
                "plannedAmount": "1.500,00",
                "actualAmount": 1490.5,
                "rawCategory": "  Peças  & Acessórios ",
                "categorySource": "MANUAL",
                "category": "Pneus",
                "description": "Pneu ABC1234",
                "unknownField": "ignored",
            }
        ]
    )
    (rec,) = result.records
    assert rec.kind is RecordKind.PAYABLE
    assert rec.status is SettlementStatus.SETTLED
    assert rec.due_date == date(2026, 1, 10)
    assert rec.actual_date == date(2026, 1, 12)
    assert rec.planned_amount == Decimal("1500.00")
    assert rec.actual_amount == Decimal("1490.5")
    assert rec.raw_category == "Peças & Acessórios"
    assert rec.category_source is CategorySource.MANUAL
    assert result.malformed_dates == 0 and result.malformed_amounts == 0


def test_malformed_values_are_tallied_and_logged(caplog: pytest.LogCaptureFixture):
    items = [
        {"id": "a", "type": "RECEIVABLE", "status": "PENDING", "dueDate": "ontem"},
        {"id": "b", "type": "PAYABLE", "status": "PENDING", "plannedAmount": "abc"},
        {"id": "c", "type": "PAYABLE", "status": "PENDING", "grossAmount": "NaN"},
    ]
    with caplog.at_level(logging.WARNING, logger="ledger_metrics"):
        result = records_from_json(items)
    assert len(result.records) == 3
    assert result.records[0].due_date is None
    assert result.records[1].planned_amount is None
    assert result.malformed_dates == 1
    assert result.malformed_amounts == 2
    assert any("malformed" in r.getMessage() for r in caplog.records)


def test_structural_errors_raise():
    with pytest.raises(ValidationError):
        records_from_json([{"id": "a", "type": "TRANSFER", "status": "PENDING"}])
    with pytest.raises(ValidationError):
        records_from_json([{"type": "PAYABLE", "status": "PENDING"}])


def test_load_records_accepts_list_or_wrapped_payload(tmp_path: Path):
    item = {"id": "a", "type": "PAYABLE", "status": "PENDING", "dueDate": "2026-01-01"}
    listed = load_records(_write(tmp_path / "list.json", [item]))
    wrapped = load_records(_write(tmp_path / "wrapped.json", {"records": [item]}))
    assert [r.id for r in listed.records] == [r.id for r in wrapped.records] == ["a"]
    with pytest.raises(ValueError):
        load_records(_write(tmp_path / "bad.json", {"rows": [item]}))


def test_dump_records_writes_camel_case_json():
    (rec,) = records_from_json(
        [
            {
                "id": "a",
                "type": "PAYABLE",
                "status": "PENDING",
                "dueDate": "2026-01-01",
                "plannedAmount": "10,50",
            }
        ]
    ).records
    (out,) = dump_records([rec])
    assert out["dueDate"] == "2026-01-01"
    assert out["plannedAmount"] == "10.50"
    assert out["categorySource"] == "RAW"
    assert out["actualDate"] is None
    assert records_from_json([out]).records == [rec]


@pytest.mark.parametrize("amount", ["1234567.891", "1.234", "0.10", "-42"])
def test_dumped_amounts_reload_exactly(amount):
    item = {"id": "a", "type": "RECEIVABLE", "status": "PENDING", "grossAmount": amount}
    (rec,) = records_from_json([item]).records
    (out,) = dump_records([rec])
    assert out["grossAmount"] == amount
    (again,) = records_from_json([out]).records
    assert again.gross_amount == Decimal(amount)
    assert str(again.gross_amount) == amount


# ---- Rules ----------------------------------------------------------------------


def test_load_rules(tmp_path: Path):
    path = _write(
        tmp_path / "rules.json",
        {
            "rules": [
                {
                    "id": "fuel",
                    "fromPattern": "posto",
                    "matchType": "CONTAINS",
                    "toCategory": "Combustível",
                    "updatedAt": "2026-01-01T00:00:00Z",
                },
                {
                    "id": "ait",
                    "from_pattern": r"AIT\s*\d+",
                    "match_type": "REGEX",
                    "to_category": "Multas",
                    "updated_at": "2026-01-02T00:00:00Z",
                },
            ]
        },
    )
    rules = load_rules(path)
    assert [r.id for r in rules] == ["fuel", "ait"]
    assert rules[1].match_type is MatchType.REGEX


def test_load_rules_rejects_invalid_rule(tmp_path: Path):
    broken = {
        "id": "x",
        "fromPattern": "(",
        "matchType": "REGEX",
        "toCategory": "A",
        "updatedAt": "2026-01-01T00:00:00Z",
    }
    path = _write(tmp_path / "rules.json", [broken])
    with pytest.raises(ValidationError):
        load_rules(path)


# ---- Investors ------------------------------------------------------------------

INVESTORS = {
    "investors": [
        {"id": "inv1", "name": "Ana", "vehicles": ["ABC-1234", "xyz9876"]},
        {"id": "inv2", "name": "Bruno", "vehicles": []},
    ]
}


def test_parse_investors():
    directory = parse_investors(INVESTORS)
    assert len(directory) == 2
    assert directory.get("inv1").vehicles == ("ABC1234", "XYZ9876")
    assert directory.get("nope") is None
    assert directory.owner_of("abc-1234").id == "inv1"
    assert directory.owner_of("DEF5678") is None
    assert len(parse_investors(INVESTORS["investors"])) == 2
    with pytest.raises(ValueError):
        parse_investors("not a directory")


def test_missing_directory_file_is_empty_with_warning(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
):
    with caplog.at_level(logging.WARNING, logger="ledger_metrics"):
        directory = load_investor_directory(tmp_path / "missing.json")
    assert directory == InvestorDirectory()
    assert any("not found" in r.getMessage() for r in caplog.records)


def test_broken_directory_file_is_empty_with_warning(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
):
    path = tmp_path / "investors.json"
    path.write_text("{not json", encoding="utf-8")
    with caplog.at_level(logging.WARNING, logger="ledger_metrics"):
        directory = load_investor_directory(path)
    assert len(directory) == 0
    assert any("Failed to load" in r.getMessage() for r in caplog.records)


def test_investor_store_loads_lazily_and_reloads(tmp_path: Path):
    path = tmp_path / "investors.json"
    store = InvestorStore(path)
    assert len(store.get()) == 0

    _write(path, INVESTORS)
    assert len(store.get()) == 0
    before = store.get()
    assert len(store.reload()) == 2
    assert len(store.get()) == 2
    assert len(before) == 0
