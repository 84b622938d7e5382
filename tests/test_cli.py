import json
import logging
from datetime import date
from pathlib import Path

import pytest
from typer.testing import CliRunner

from ledger_metrics.cli import app, resolve_date_range
from ledger_metrics.models import DateRange
from ledger_metrics.periods import DatePreset

runner = CliRunner()

JAN = ["--from", "2026-01-01", "--to", "2026-01-31"]

RECORDS = [
    {
        "id": "e1",
        "type": "PAYABLE",
        "status": "SETTLED",
        "dueDate": "2026-01-05",
        "actualDate": "2026-01-05",
        "plannedAmount": 100,
        "description": "Posto Shell",
        "rawCategory": "Diversos",
    },
    {
        "id": "e2",
        "type": "PAYABLE",
        "status": "PENDING",
        "dueDate": "2026-01-20",
        "plannedAmount": "50,00",
        "description": "Pneu ABC1234",
        "rawCategory": "Pneus",
    },
    {
        "id": "f1",
        "type": "PAYABLE",
        "status": "PENDING",
        "dueDate": "2026-01-12",
        "plannedAmount": 30,
        "description": "Multa AIT 1234567 ABC1234 cobrar locador",
        "rawCategory": "Multas",
    },
    {
        "id": "i1",
        "type": "RECEIVABLE",
        "status": "SETTLED",
        "dueDate": "2026-01-10",
        "actualDate": "2026-01-10",
        "plannedAmount": 400,
        "description": "Locação semanal ABC1234",
        "rawCategory": "Locação",
    },
]

RULES = {
    "rules": [
        {
            "id": "fuel",
            "fromPattern": "posto shell",
            "toCategory": "Combustível",
            "scope": "EXPENSE",
            "updatedAt": "2026-01-01T00:00:00Z",
        }
    ]
}


@pytest.fixture(autouse=True)
def _quiet_logs(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LEDGER_METRICS_LOG_LEVEL", "WARNING")


@pytest.fixture
def files(tmp_path: Path) -> dict[str, Path]:
    paths = {
        "records": tmp_path / "records.json",
        "rules": tmp_path / "rules.json",
        "investors": tmp_path / "investors.json",
    }
    paths["records"].write_text(json.dumps(RECORDS, ensure_ascii=False), encoding="utf-8")
    paths["rules"].write_text(json.dumps(RULES, ensure_ascii=False), encoding="utf-8")
    paths["investors"].write_text(
        json.dumps([{"id": "inv1", "name": "Ana", "vehicles": ["ABC-1234"]}]),
        encoding="utf-8",
    )
    return paths


def _json(result) -> dict:
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


# ---- Date range resolution ------------------------------------------------------


def test_resolve_date_range():
    today = date(2026, 3, 15)
    assert resolve_date_range("2026-01-01", "2026-01-31", DatePreset.TODAY, today=today) == (
        DateRange(date(2026, 1, 1), date(2026, 1, 31))
    )
    assert resolve_date_range(None, None, DatePreset.TODAY, today=today) == DateRange(today, today)
    with pytest.raises(ValueError):
        resolve_date_range("2026-01-01", None, None, today=today)
    with pytest.raises(ValueError):
        resolve_date_range(None, None, None, today=today)


# ---- Commands -------------------------------------------------------------------


def test_summary_prints_json_report(files):
    out = _json(runner.invoke(app, ["summary", "--records", str(files["records"]), *JAN]))
    assert out["total"] == 180.0
    assert out["count"] == 3
    assert out["prev_total"] == 0.0
    assert out["delta_pct"] is None
    assert out["date_range"] == {"from": "2026-01-01", "to": "2026-01-31"}


def test_summary_fines_owner_view(files):
    args = ["summary", "--records", str(files["records"]), *JAN, "--scope", "fines"]
    out = _json(runner.invoke(app, [*args, "--payer-view", "OWNER"]))
    assert out["total"] == 30.0 and out["count"] == 1


def test_missing_records_file_exits_with_error(tmp_path: Path):
    result = runner.invoke(app, ["summary", "--records", str(tmp_path / "nope.json"), *JAN])
    assert result.exit_code == 1
    assert "Error: File not found" in result.output


def test_missing_range_exits_with_error(files):
    result = runner.invoke(app, ["summary", "--records", str(files["records"])])
    assert result.exit_code == 1
    assert "provide --from/--to or --preset" in result.output


def test_series_with_repeated_metrics(files):
    args = ["series", "--records", str(files["records"]), *JAN]
    out = _json(runner.invoke(app, [*args, "--metric", "income", "--metric", "expense"]))
    assert out["granularity"] == "day"
    assert out["metrics"] == ["income", "expense", "profit"]
    assert len(out["points"]) == 31
    assert out["points"][9]["values"]["income"] == 400.0


def test_top_applies_rules_before_ranking(files):
    args = ["top", "--records", str(files["records"]), *JAN, "--rules", str(files["rules"])]
    out = _json(runner.invoke(app, args))
    assert [i["key"] for i in out["items"]] == ["combustivel", "pneus", "multas"]
    assert out["limit"] == 5


def test_top_by_plate(files):
    args = ["top", "--records", str(files["records"]), *JAN, "--scope", "fines"]
    out = _json(runner.invoke(app, [*args, "--by", "plate", "--limit", "1"]))
    (item,) = out["items"]
    assert item["key"] == "ABC1234"
    assert item["citation_numbers"] == ["1234567"]


def test_top_limit_from_dotenv(files, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    # registers the variable with monkeypatch so the value loaded from .env is undone
    monkeypatch.setenv("LEDGER_METRICS_TOP_LIMIT", "5")
    monkeypatch.delenv("LEDGER_METRICS_TOP_LIMIT")
    (tmp_path / ".env").write_text("LEDGER_METRICS_TOP_LIMIT=1\n", encoding="utf-8")
    out = _json(runner.invoke(app, ["top", "--records", str(files["records"]), *JAN]))
    assert out["limit"] == 1
    assert len(out["items"]) == 1


def test_dashboard(files):
    args = ["dashboard", "--records", str(files["records"]), *JAN, "--today", "2026-01-15"]
    out = _json(runner.invoke(app, args))
    assert out["income"]["current"] == 400.0
    assert out["expense"]["current"] == 100.0
    assert out["margin"]["current"] == pytest.approx(75.0)
    assert out["margin"]["previous"] is None
    assert out["cash"]["payable"] == 80.0
    assert out["cash"]["overdue_payable"] == 30.0


def test_fines_listing(files):
    out = _json(runner.invoke(app, ["fines", "--records", str(files["records"]), *JAN]))
    assert out["total"] == 1
    (fine,) = out["items"]
    assert fine["id"] == "f1"
    assert fine["payer"] == "OWNER"
    assert fine["occurred_on"] == "2026-01-12"


def test_investors(files):
    args = ["investors", "--records", str(files["records"]), *JAN]
    out = _json(runner.invoke(app, [*args, "--directory", str(files["investors"])]))
    (inv,) = out["investors"]
    assert inv["investor_id"] == "inv1"
    (vehicle,) = inv["vehicles"]
    assert vehicle["rental_income"] == 400.0
    assert vehicle["maintenance_cost"] == 50.0
    assert vehicle["fines_cost"] == 30.0
    assert vehicle["net_result"] == 320.0


def test_unknown_investor(files):
    args = ["investors", "--records", str(files["records"]), *JAN]
    result = runner.invoke(
        app, [*args, "--directory", str(files["investors"]), "--investor", "nobody"]
    )
    assert result.exit_code == 1
    assert "unknown investor: nobody" in result.output


def test_normalize_preview(files):
    args = ["normalize", "--records", str(files["records"]), "--rules", str(files["rules"])]
    out = _json(runner.invoke(app, args))
    preview = out["preview"]
    assert preview["would_update_count"] == 1
    assert preview["samples"][0]["record_id"] == "e1"
    assert preview["samples"][0]["new_category"] == "Combustível"


def test_normalize_apply_writes_output(files, tmp_path: Path):
    target = tmp_path / "normalized.json"
    args = ["normalize", "--records", str(files["records"]), "--rules", str(files["rules"])]
    out = _json(runner.invoke(app, [*args, "--apply", "--output", str(target)]))
    assert out["applied"]["updated_count"] == 1
    assert out["output"] == str(target)
    written = {r["id"]: r for r in json.loads(target.read_text(encoding="utf-8"))}
    assert written["e1"]["category"] == "Combustível"
    assert written["e1"]["categorySource"] == "NORMALIZED"
    assert written["e1"]["normalizedByRuleId"] == "fuel"
    assert written["e2"]["categorySource"] == "RAW"


def test_normalize_rejects_invalid_rules(files, tmp_path: Path):
    bad = tmp_path / "bad_rules.json"
    bad.write_text(json.dumps([{"id": "x", "fromPattern": ""}]), encoding="utf-8")
    args = ["normalize", "--records", str(files["records"]), "--rules", str(bad)]
    result = runner.invoke(app, args)
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_log_level_option_overrides_environment(files):
    args = ["--log-level", "debug", "summary", "--records", str(files["records"]), *JAN]
    result = runner.invoke(app, args)
    assert result.exit_code == 0, result.output
    assert logging.getLogger("ledger_metrics").level == logging.DEBUG


def test_log_level_defaults_to_environment(files):
    _json(runner.invoke(app, ["summary", "--records", str(files["records"]), *JAN]))
    assert logging.getLogger("ledger_metrics").level == logging.WARNING
