"""CLI for the ``ledger_metrics`` package.

Every command reads an exported JSON file of ledger records (and optionally a
JSON file of normalization rules), canonicalizes the records and prints one
report as JSON on stdout. Environment variables (``LEDGER_METRICS_TZ`` and
friends, see :mod:`ledger_metrics.config`) are loaded from a local ``.env``
using ``python-dotenv`` before any command runs.

Handlers are plain ``cmd_*`` functions returning an exit status; failures are
written to stderr as ``Error: ...`` and return ``1``.
"""

from __future__ import annotations

import dataclasses
import json
import sys
from collections.abc import Callable, Sequence
from datetime import date
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from pydantic import BaseModel
from typer.models import OptionInfo

from .aggregate import (
    exec_dashboard,
    investor_metrics,
    list_fines,
    rank,
    summarize,
    time_series,
)
from .canonical import canonicalize_all
from .config import Settings, load_settings
from .investors import InvestorStore
from .loaders import dump_records, load_records, load_rules
from .logging_setup import configure_logging
from .models import (
    CanonicalRecord,
    DateBasis,
    DateRange,
    Granularity,
    MetricScope,
    PayerView,
    RankKey,
    RuleScope,
    SortBy,
)
from .periods import DatePreset, parse_date_string, preset_range
from .rules import RuleSet, apply_rules, preview_rules
from .snapshot import SnapshotCache

# ---- Helpers shared by command handlers --------------------------------------


def resolve_date_range(
    start: str | None,
    end: str | None,
    preset: DatePreset | None,
    *,
    today: date,
) -> DateRange:
    """Explicit ``--from``/``--to`` win over ``--preset``; one of them is required."""

    if start or end:
        s, e = parse_date_string(start), parse_date_string(end)
        if s is None or e is None:
            raise ValueError("--from and --to must both be valid YYYY-MM-DD dates")
        return DateRange(s, e)
    if preset is None:
        raise ValueError("provide --from/--to or --preset")
    return preset_range(preset, today)


_RULES: SnapshotCache[RuleSet] = SnapshotCache("rules", RuleSet.empty())


def _load_rule_set(rules_path: Path | None) -> RuleSet | None:
    if rules_path is None:
        return None
    return _RULES.refresh(lambda: RuleSet.from_rules(load_rules(rules_path)))


def _load_canonical(
    records_path: Path, rules_path: Path | None, settings: Settings
) -> list[CanonicalRecord]:
    raw = load_records(records_path, tz=settings.timezone).records
    return canonicalize_all(
        raw,
        rule_set=_load_rule_set(rules_path),
        tz=settings.timezone,
        context=records_path.name,
    )


def _emit(payload: BaseModel | dict[str, Any]) -> None:
    data = payload.model_dump(mode="json") if isinstance(payload, BaseModel) else payload
    print(json.dumps(data, ensure_ascii=False, indent=2))


def _fail(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def _run(records_path: Path, build: Callable[[], BaseModel | dict[str, Any]]) -> int:
    """Run ``build`` and print its report, mapping input errors to exit 1."""

    try:
        _emit(build())
    except FileNotFoundError as e:
        return _fail(f"File not found: {e.filename or records_path}")
    except PermissionError as e:
        return _fail(f"Permission denied: {e.filename or records_path}")
    except ValueError as e:
        # json.JSONDecodeError and pydantic.ValidationError are ValueErrors
        return _fail(str(e))
    return 0


# ---- Command handlers ----------------------------------------------------------


def cmd_summary(
    records_path: Path,
    *,
    start: str | None = None,
    end: str | None = None,
    preset: DatePreset | None = None,
    scope: MetricScope = MetricScope.EXPENSE,
    payer_view: PayerView = PayerView.ALL,
    basis: DateBasis = DateBasis.CANONICAL,
    rules_path: Path | None = None,
) -> int:
    def build() -> BaseModel:
        settings = load_settings()
        dr = resolve_date_range(start, end, preset, today=settings.today())
        records = _load_canonical(records_path, rules_path, settings)
        return summarize(
            records, dr, scope, payer_view=payer_view, basis=basis, tz=settings.timezone
        )

    return _run(records_path, build)


def cmd_series(
    records_path: Path,
    *,
    metrics: Sequence[MetricScope],
    start: str | None = None,
    end: str | None = None,
    preset: DatePreset | None = None,
    granularity: Granularity | None = None,
    basis: DateBasis = DateBasis.CANONICAL,
    payer_view: PayerView = PayerView.ALL,
    rules_path: Path | None = None,
) -> int:
    def build() -> BaseModel:
        settings = load_settings()
        dr = resolve_date_range(start, end, preset, today=settings.today())
        records = _load_canonical(records_path, rules_path, settings)
        return time_series(
            records,
            dr,
            list(metrics) or [MetricScope.INCOME, MetricScope.EXPENSE],
            granularity=granularity,
            basis=basis,
            payer_view=payer_view,
            tz=settings.timezone,
        )

    return _run(records_path, build)


def cmd_top(
    records_path: Path,
    *,
    start: str | None = None,
    end: str | None = None,
    preset: DatePreset | None = None,
    scope: MetricScope = MetricScope.EXPENSE,
    rank_key: RankKey = RankKey.CATEGORY,
    sort_by: SortBy = SortBy.VALUE,
    limit: int | None = None,
    payer_view: PayerView = PayerView.ALL,
    rules_path: Path | None = None,
) -> int:
    def build() -> BaseModel:
        settings = load_settings()
        dr = resolve_date_range(start, end, preset, today=settings.today())
        records = _load_canonical(records_path, rules_path, settings)
        return rank(
            records,
            dr,
            scope,
            rank_key=rank_key,
            sort_by=sort_by,
            limit=limit or settings.top_limit,
            payer_view=payer_view,
            tz=settings.timezone,
        )

    return _run(records_path, build)


def cmd_dashboard(
    records_path: Path,
    *,
    start: str | None = None,
    end: str | None = None,
    preset: DatePreset | None = None,
    granularity: Granularity | None = None,
    limit: int | None = None,
    today: str | None = None,
    rules_path: Path | None = None,
) -> int:
    def build() -> BaseModel:
        settings = load_settings()
        ref = parse_date_string(today) if today else settings.today()
        if ref is None:
            raise ValueError("--today must be a valid YYYY-MM-DD date")
        dr = resolve_date_range(start, end, preset, today=ref)
        records = _load_canonical(records_path, rules_path, settings)
        return exec_dashboard(
            records,
            dr,
            today=ref,
            granularity=granularity,
            driver_limit=limit or settings.top_limit,
            tz=settings.timezone,
        )

    return _run(records_path, build)


def cmd_fines(
    records_path: Path,
    *,
    start: str | None = None,
    end: str | None = None,
    preset: DatePreset | None = None,
    payer_view: PayerView = PayerView.ALL,
    page: int = 1,
    page_size: int = 20,
    rules_path: Path | None = None,
) -> int:
    def build() -> BaseModel:
        settings = load_settings()
        dr = resolve_date_range(start, end, preset, today=settings.today())
        records = _load_canonical(records_path, rules_path, settings)
        return list_fines(records, dr, payer_view=payer_view, page=page, page_size=page_size)

    return _run(records_path, build)


def cmd_investors(
    records_path: Path,
    *,
    investor_id: str | None = None,
    start: str | None = None,
    end: str | None = None,
    preset: DatePreset | None = None,
    investors_path: Path | None = None,
    rules_path: Path | None = None,
) -> int:
    def build() -> dict[str, Any]:
        settings = load_settings()
        dr = resolve_date_range(start, end, preset, today=settings.today())
        directory = InvestorStore(investors_path or settings.investors_file).get()
        if investor_id is not None:
            investor = directory.get(investor_id)
            if investor is None:
                raise ValueError(f"unknown investor: {investor_id}")
            selected = [investor]
        else:
            selected = list(directory.investors)
        records = _load_canonical(records_path, rules_path, settings)
        reports = [investor_metrics(records, inv, dr) for inv in selected]
        return {
            "investors": [r.model_dump(mode="json") for r in reports],
            "dateRange": dr.to_strings(),
        }

    return _run(records_path, build)


def cmd_normalize(
    records_path: Path,
    rules_path: Path,
    *,
    scope: RuleScope = RuleScope.BOTH,
    start: str | None = None,
    end: str | None = None,
    include_categorized: bool = False,
    apply: bool = False,
    output: Path | None = None,
    sample_limit: int = 10,
) -> int:
    """Preview (default) or apply normalization rules to exported records.

    With ``apply`` the updated records are written to ``output`` as JSON (or
    printed when no output path is given) together with the run counts.
    """

    def build() -> dict[str, Any]:
        settings = load_settings()
        dr = None
        if start or end:
            dr = resolve_date_range(start, end, None, today=settings.today())
        rule_set = _load_rule_set(rules_path) or RuleSet.empty()
        records = load_records(records_path, tz=settings.timezone).records
        only_uncategorized = not include_categorized
        if not apply:
            preview = preview_rules(
                records,
                rule_set,
                scope=scope,
                date_range=dr,
                only_uncategorized=only_uncategorized,
                sample_limit=sample_limit,
            )
            return {"preview": dataclasses.asdict(preview)}
        report = apply_rules(
            records,
            rule_set,
            scope=scope,
            date_range=dr,
            only_uncategorized=only_uncategorized,
        )
        summary = {
            "eligible_count": report.eligible_count,
            "updated_count": report.updated_count,
            "skipped_count": report.skipped_count,
            "by_rule": [dataclasses.asdict(rc) for rc in report.by_rule],
        }
        if output is not None:
            output.write_text(
                json.dumps(dump_records(report.records), ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            return {"applied": summary, "output": str(output)}
        return {"applied": summary, "records": dump_records(report.records)}

    return _run(records_path, build)


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Compute ledger metrics (summaries, series, rankings, dashboards) from "
        "exported JSON records. Loads LEDGER_METRICS_* settings from a local .env."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
RECORDS_OPTION: OptionInfo = typer.Option(
    "--records",
    help="Path to a JSON file of exported ledger records",
    dir_okay=False,
)
RULES_OPTION: OptionInfo = typer.Option(
    "--rules",
    help="Path to a JSON file of normalization rules applied before aggregating",
    dir_okay=False,
)
FROM_OPTION: OptionInfo = typer.Option("--from", help="Range start (YYYY-MM-DD, inclusive)")
TO_OPTION: OptionInfo = typer.Option("--to", help="Range end (YYYY-MM-DD, inclusive)")
PRESET_OPTION: OptionInfo = typer.Option(
    "--preset", help="Named range relative to today; ignored when --from/--to are given"
)
PAYER_OPTION: OptionInfo = typer.Option("--payer-view", help="Filter by derived payer side")
GRANULARITY_OPTION: OptionInfo = typer.Option(
    "--granularity", help="Bucket size; chosen from the range length when omitted"
)
LOG_LEVEL_OPTION: OptionInfo = typer.Option(
    "--log-level", help="Log level for stderr output (default LEDGER_METRICS_LOG_LEVEL or INFO)"
)


@app.command("summary")
def summary_cmd(
    records: Annotated[Path, RECORDS_OPTION],
    start: Annotated[str | None, FROM_OPTION] = None,
    end: Annotated[str | None, TO_OPTION] = None,
    preset: Annotated[DatePreset | None, PRESET_OPTION] = None,
    scope: Annotated[MetricScope, typer.Option(help="income, expense or fines")] = (
        MetricScope.EXPENSE
    ),
    payer_view: Annotated[PayerView, PAYER_OPTION] = PayerView.ALL,
    basis: Annotated[DateBasis, typer.Option(help="canonical or cash dates")] = (
        DateBasis.CANONICAL
    ),
    rules: Annotated[Path | None, RULES_OPTION] = None,
) -> None:
    """Total and count for a range compared with the previous period."""

    raise typer.Exit(
        cmd_summary(
            records,
            start=start,
            end=end,
            preset=preset,
            scope=scope,
            payer_view=payer_view,
            basis=basis,
            rules_path=rules,
        )
    )


@app.command("series")
def series_cmd(
    records: Annotated[Path, RECORDS_OPTION],
    metric: Annotated[
        list[MetricScope] | None,
        typer.Option(help="Metric to plot; repeat for several (default income and expense)"),
    ] = None,
    start: Annotated[str | None, FROM_OPTION] = None,
    end: Annotated[str | None, TO_OPTION] = None,
    preset: Annotated[DatePreset | None, PRESET_OPTION] = None,
    granularity: Annotated[Granularity | None, GRANULARITY_OPTION] = None,
    basis: Annotated[DateBasis, typer.Option(help="canonical or cash dates")] = (
        DateBasis.CANONICAL
    ),
    payer_view: Annotated[PayerView, PAYER_OPTION] = PayerView.ALL,
    rules: Annotated[Path | None, RULES_OPTION] = None,
) -> None:
    """Bucketed time series with one point per bucket, empty buckets included."""

    raise typer.Exit(
        cmd_series(
            records,
            metrics=metric or [],
            start=start,
            end=end,
            preset=preset,
            granularity=granularity,
            basis=basis,
            payer_view=payer_view,
            rules_path=rules,
        )
    )


@app.command("top")
def top_cmd(
    records: Annotated[Path, RECORDS_OPTION],
    start: Annotated[str | None, FROM_OPTION] = None,
    end: Annotated[str | None, TO_OPTION] = None,
    preset: Annotated[DatePreset | None, PRESET_OPTION] = None,
    scope: Annotated[MetricScope, typer.Option(help="income, expense or fines")] = (
        MetricScope.EXPENSE
    ),
    by: Annotated[RankKey, typer.Option(help="Group by category or vehicle plate")] = (
        RankKey.CATEGORY
    ),
    sort_by: Annotated[SortBy, typer.Option(help="Sort by count or value")] = SortBy.VALUE,
    limit: Annotated[
        int | None, typer.Option(min=1, help="Items to keep (LEDGER_METRICS_TOP_LIMIT)")
    ] = None,
    payer_view: Annotated[PayerView, PAYER_OPTION] = PayerView.ALL,
    rules: Annotated[Path | None, RULES_OPTION] = None,
) -> None:
    """Top categories or vehicles for a range."""

    raise typer.Exit(
        cmd_top(
            records,
            start=start,
            end=end,
            preset=preset,
            scope=scope,
            rank_key=by,
            sort_by=sort_by,
            limit=limit,
            payer_view=payer_view,
            rules_path=rules,
        )
    )


@app.command("dashboard")
def dashboard_cmd(
    records: Annotated[Path, RECORDS_OPTION],
    start: Annotated[str | None, FROM_OPTION] = None,
    end: Annotated[str | None, TO_OPTION] = None,
    preset: Annotated[DatePreset | None, PRESET_OPTION] = None,
    granularity: Annotated[Granularity | None, GRANULARITY_OPTION] = None,
    limit: Annotated[int | None, typer.Option(min=1, help="Expense drivers to list")] = None,
    today: Annotated[
        str | None, typer.Option(help="Reference date for overdue checks (YYYY-MM-DD)")
    ] = None,
    rules: Annotated[Path | None, RULES_OPTION] = None,
) -> None:
    """Cash-basis executive dashboard compared with the previous period."""

    raise typer.Exit(
        cmd_dashboard(
            records,
            start=start,
            end=end,
            preset=preset,
            granularity=granularity,
            limit=limit,
            today=today,
            rules_path=rules,
        )
    )


@app.command("fines")
def fines_cmd(
    records: Annotated[Path, RECORDS_OPTION],
    start: Annotated[str | None, FROM_OPTION] = None,
    end: Annotated[str | None, TO_OPTION] = None,
    preset: Annotated[DatePreset | None, PRESET_OPTION] = None,
    payer_view: Annotated[PayerView, PAYER_OPTION] = PayerView.ALL,
    page: Annotated[int, typer.Option(min=1)] = 1,
    page_size: Annotated[int, typer.Option(min=1, max=500)] = 20,
    rules: Annotated[Path | None, RULES_OPTION] = None,
) -> None:
    """Paged list of fines, newest first."""

    raise typer.Exit(
        cmd_fines(
            records,
            start=start,
            end=end,
            preset=preset,
            payer_view=payer_view,
            page=page,
            page_size=page_size,
            rules_path=rules,
        )
    )


@app.command("investors")
def investors_cmd(
    records: Annotated[Path, RECORDS_OPTION],
    investor: Annotated[str | None, typer.Option(help="Only this investor id")] = None,
    start: Annotated[str | None, FROM_OPTION] = None,
    end: Annotated[str | None, TO_OPTION] = None,
    preset: Annotated[DatePreset | None, PRESET_OPTION] = None,
    directory: Annotated[
        Path | None,
        typer.Option(help="Investor directory JSON (LEDGER_METRICS_INVESTORS_FILE)"),
    ] = None,
    rules: Annotated[Path | None, RULES_OPTION] = None,
) -> None:
    """Per-vehicle rental income, maintenance and fines for investors."""

    raise typer.Exit(
        cmd_investors(
            records,
            investor_id=investor,
            start=start,
            end=end,
            preset=preset,
            investors_path=directory,
            rules_path=rules,
        )
    )


@app.command("normalize")
def normalize_cmd(
    records: Annotated[Path, RECORDS_OPTION],
    rules: Annotated[Path, RULES_OPTION],
    scope: Annotated[RuleScope, typer.Option(help="EXPENSE, INCOME or BOTH")] = RuleScope.BOTH,
    start: Annotated[str | None, FROM_OPTION] = None,
    end: Annotated[str | None, TO_OPTION] = None,
    include_categorized: Annotated[
        bool, typer.Option(help="Also re-normalize records that already have a category")
    ] = False,
    apply: Annotated[bool, typer.Option(help="Apply instead of previewing")] = False,
    output: Annotated[
        Path | None, typer.Option(help="Write updated records here when applying")
    ] = None,
) -> None:
    """Preview or apply category normalization rules (manual categories are kept)."""

    raise typer.Exit(
        cmd_normalize(
            records,
            rules,
            scope=scope,
            start=start,
            end=end,
            include_categorized=include_categorized,
            apply=apply,
            output=output,
        )
    )


@app.callback()
def _root(log_level: Annotated[str | None, LOG_LEVEL_OPTION] = None) -> None:
    """Load ``.env`` from the current directory and configure logging."""

    # override=False keeps variables already set in the environment
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)


if __name__ == "__main__":  # pragma: no cover
    app()
