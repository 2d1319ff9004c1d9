"""Command‑line interface for the loan ledger.

This module uses the ``click`` library to implement a multi‑command
interface over a JSON state file holding ``loans``, ``payments`` and
``draws``. Users can recompute the payment ledger, view a payoff summary or
run a what-if projection. Results can be printed to the terminal or
exported to JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click

from .aggregate import MODES, aggregate_timeline
from .config import BaseConfig
from .data_models import AccrualConvention, ExtraEvery, ExtraPaymentRule, LoanDataError, Projection
from .formatter import (
    print_buckets,
    print_loan_summary,
    print_payments,
    print_projection_summary,
    print_timeline,
)
from .logging_config import get_logger, setup_logging
from .projection import compare_projections
from .state import BASELINES, PROJECTION_MODES, LedgerState, loan_summary, run_projection, summary_to_record
from .utils import decimal_from_str, parse_iso

logger = get_logger(__name__)

EVERY_CHOICES = [e.value for e in ExtraEvery]


def parse_amount(value: str):
    """Parse a positive amount with an optional ``k``/``m`` suffix ("1.5k")."""
    text = value.strip().lower().replace(",", "")
    factor = 1
    if text.endswith("k"):
        factor = 1_000
        text = text[:-1]
    elif text.endswith("m"):
        factor = 1_000_000
        text = text[:-1]
    try:
        amount = decimal_from_str(text) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")
    if amount <= 0:
        raise click.BadParameter(f"Amount must be positive: {value}")
    return amount


def parse_date_option(value: str, label: str) -> date:
    parsed = parse_iso(value)
    if parsed is None:
        raise click.BadParameter(f"{label} must be a YYYY-MM-DD date; got {value}")
    return parsed


def parse_extra_strings(values: Tuple[str, ...]) -> List[ExtraPaymentRule]:
    """Turn ``once:AMOUNT:DATE`` and ``EVERY:AMOUNT[:START]`` items into rules."""
    rules: List[ExtraPaymentRule] = []
    for item in values:
        parts = item.split(":")
        kind = parts[0].strip().lower()
        if kind == "once":
            if len(parts) != 3:
                raise click.BadParameter(f"One-time extra must be in once:AMOUNT:YYYY-MM-DD format; got {item}")
            when = parse_date_option(parts[2], "Extra payment date")
            rules.append(ExtraPaymentRule.once(parse_amount(parts[1]), when))
        elif kind in EVERY_CHOICES:
            if len(parts) not in (2, 3):
                raise click.BadParameter(f"Recurring extra must be in EVERY:AMOUNT[:YYYY-MM-DD] format; got {item}")
            start = parse_date_option(parts[2], "Extra payment start") if len(parts) == 3 else None
            rules.append(ExtraPaymentRule.recurring(parse_amount(parts[1]), kind, start))
        else:
            raise click.BadParameter(
                f"Extra payment kind must be 'once' or one of {', '.join(EVERY_CHOICES)}; got {parts[0]}"
            )
    return rules


def load_state(path: str) -> LedgerState:
    try:
        with Path(path).open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"State file is not valid JSON: {exc}")
    if not isinstance(raw, dict):
        raise click.BadParameter("State file must hold a JSON object with loans, payments and draws")
    try:
        return LedgerState.from_record(raw)
    except LoanDataError as exc:
        raise click.BadParameter(str(exc))


def find_loan(state: LedgerState, loan_id: str):
    try:
        return state.find_loan(loan_id)
    except LoanDataError as exc:
        raise click.BadParameter(str(exc))


def write_json(path: Path, data: Dict[str, Any]) -> None:
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_timeline_to_csv(path: Path, projection: Projection) -> None:
    """Export a projection timeline to a CSV file."""
    header = ["Date", "Payment", "Interest", "Principal", "Extra", "Draw", "Balance", "Paid", "InterestPaid", "PrincipalPaid"]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for row in projection.timeline:
            writer.writerow(
                [
                    row.date.isoformat(),
                    float(row.payment),
                    float(row.interest),
                    float(row.principal),
                    float(row.extra),
                    float(row.draw),
                    float(row.balance),
                    float(row.paid),
                    float(row.interest_paid),
                    float(row.principal_paid),
                ]
            )


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """A command‑line loan servicing ledger with payoff and what-if tools."""
    config = BaseConfig()
    setup_logging(config)
    ctx.obj = config


@cli.command()
@click.argument("state_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--accrual", "accrual", type=click.Choice([a.value for a in AccrualConvention]), help="Interest accrual convention (defaults to LOAN_LEDGER_ACCRUAL)")
@click.option("--output", "output", type=str, help="Write the recalculated state to this .json file")
@click.pass_obj
def recalc(config: BaseConfig, state_file: str, accrual: Optional[str], output: Optional[str]) -> None:
    """Recompute the interest/principal split of every payment."""
    state = load_state(state_file)
    convention = AccrualConvention.parse(accrual) if accrual else config.ACCRUAL
    state.recalculate(accrual=convention)
    logger.info("Recalculated %d loan(s) from %s", len(state.loans), state_file)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Recalculated state must be written to a .json file")
        write_json(path, state.to_record())
        click.echo(f"State written to {path}")
    else:
        print_payments(state.payments)


@cli.command()
@click.argument("state_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--loan", "loan_id", required=True, help="Loan id")
@click.option("--as-of", "as_of", help="Valuation date for the payoff amount (YYYY-MM-DD, default today)")
@click.option("--output", "output", type=str, help="Output file path (.json)")
@click.pass_obj
def payoff(config: BaseConfig, state_file: str, loan_id: str, as_of: Optional[str], output: Optional[str]) -> None:
    """Show balance, scheduled payment and estimated payoff of a loan."""
    state = load_state(state_file)
    loan = find_loan(state, loan_id)
    valuation = parse_date_option(as_of, "--as-of") if as_of else date.today()
    state.recalculate(loan, accrual=config.ACCRUAL)
    summary_data = loan_summary(state, loan, valuation)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension")
        write_json(path, {"summary": summary_to_record(summary_data)})
        click.echo(f"Summary exported to {path}")
    else:
        print_loan_summary(summary_data)


@cli.command()
@click.argument("state_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--loan", "loan_id", required=True, help="Loan id")
@click.option("--extra", "extra", multiple=True, help="Extra payment: once:AMOUNT:YYYY-MM-DD or day|week|month|year:AMOUNT[:YYYY-MM-DD]")
@click.option("--mode", "mode", type=click.Choice(list(PROJECTION_MODES)), default="period", help="period: monthly 30/360; daily: event-level daily accrual")
@click.option("--as-of", "as_of", help="Start of a daily projection (YYYY-MM-DD, default today)")
@click.option("--aggregate", "aggregate", type=click.Choice(list(MODES)), help="Roll the timeline up by month or year")
@click.option("--compare/--no-compare", "compare", default=True, help="Compare against the baseline projection")
@click.option("--baseline", "baseline_kind", type=click.Choice(list(BASELINES)), default="scheduled", help="scheduled: same projection without extras; standard: balance re-amortized over the remaining term")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
@click.pass_obj
def project(
    config: BaseConfig,
    state_file: str,
    loan_id: str,
    extra: Tuple[str, ...],
    mode: str,
    as_of: Optional[str],
    aggregate: Optional[str],
    compare: bool,
    baseline_kind: str,
    output: Optional[str],
) -> None:
    """Project the loan to payoff, optionally with extra payments."""
    state = load_state(state_file)
    loan = find_loan(state, loan_id)
    rules = parse_extra_strings(extra) if extra else []
    start = parse_date_option(as_of, "--as-of") if as_of else date.today()
    state.recalculate(loan, accrual=config.ACCRUAL)
    scenario, baseline = run_projection(state, loan, rules, mode, start, baseline_kind)
    compare = compare and (bool(rules) or baseline_kind == "standard")
    comparison = compare_projections(baseline, scenario) if compare else None

    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            data = {"projection": scenario.to_record()}
            if comparison:
                data["comparison"] = comparison
            if aggregate:
                data["buckets"] = [b.to_record() for b in aggregate_timeline(scenario.timeline, aggregate)]
            write_json(path, data)
            click.echo(f"Projection exported to {path}")
        elif path.suffix.lower() == ".csv":
            export_timeline_to_csv(path, scenario)
            click.echo(f"Projection exported to {path}")
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        return

    print_projection_summary(scenario, comparison)
    if aggregate:
        print_buckets(aggregate_timeline(scenario.timeline, aggregate))
        return
    # Limit timeline length printed to avoid flooding the terminal
    max_rows = 120
    if len(scenario.timeline) > max_rows:
        click.echo(f"Timeline has {len(scenario.timeline)} rows; showing first {max_rows} rows.")
        print_timeline(scenario.timeline[:max_rows])
    else:
        print_timeline(scenario.timeline)


if __name__ == "__main__":
    cli()
