"""Output helpers for the loan ledger CLI.

This module renders payment ledgers, projections and roll-ups as simple
tab-separated tables. We rely only on built-in printing and string
formatting; colouring and paging are left to the terminal.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from .aggregate import format_duration
from .data_models import Bucket, Payment, Projection, TimelineRow


def print_loan_summary(summary: Dict[str, Any]) -> None:
    """Print the servicing snapshot of one loan."""
    print("Loan summary")
    print("-" * 72)
    print(f"Loan               : {summary['loan_id']} ({summary['loan_type']})")
    print(f"Current balance    : {summary['balance']:.2f}")
    print(f"Scheduled payment  : {summary['scheduled_payment']:.2f}")
    if summary.get("escrow_per_period"):
        print(f"  of which escrow  : {summary['escrow_per_period']:.2f}")
    print(f"Per-diem interest  : {summary['per_diem']:.4f}")
    print(f"Payoff amount      : {summary['payoff_amount']:.2f}")
    print(f"Installments made  : {summary['scheduled_done']}")
    print(f"Maturity date      : {summary['maturity_date'] or '-'}")
    print(f"Est. payoff date   : {summary['payoff_date'] or '-'}")
    print("-" * 72)


def print_payments(payments: Iterable[Payment]) -> None:
    """Print a payment ledger with its interest/principal split."""
    headers = ["Id", "Loan", "Date", "Amount", "Interest", "Principal", "Scheduled"]
    print("\t".join(headers))
    for p in payments:
        row = [
            str(p.id),
            str(p.loan_ref),
            p.payment_date.isoformat() if p.payment_date else "-",
            f"{p.amount:.2f}",
            f"{p.interest_portion:.2f}",
            f"{p.principal_portion:.2f}",
            "Yes" if p.is_scheduled_installment else "No",
        ]
        print("\t".join(row))


def print_projection_summary(projection: Projection, comparison: Optional[Dict[str, Any]] = None) -> None:
    """Print projection totals and, when given, savings against a baseline."""
    totals = projection.totals
    print("Projection")
    print("-" * 72)
    print(f"Payments           : {len(projection.timeline)}")
    print(f"Total paid         : {totals.total_paid:.2f}")
    print(f"Total interest     : {totals.total_interest:.2f}")
    print(f"Total principal    : {totals.total_principal:.2f}")
    if projection.paid_off:
        print(f"Payoff date        : {projection.payoff_date.isoformat()}")
    else:
        print(f"Payoff date        : not reached (balance left {projection.balance_end:.2f})")
    if comparison:
        print(f"Baseline interest  : {comparison['baseline_total_interest']:.2f}")
        print(f"Interest saved     : {comparison['interest_saved']:.2f}")
        print(f"Total paid saved   : {comparison['total_paid_saved']:.2f}")
        if comparison.get("days_saved"):
            print(f"Time saved         : {format_duration(comparison['days_saved'])}")
    print("-" * 72)


def print_timeline(timeline: Iterable[TimelineRow]) -> None:
    headers = ["Date", "Payment", "Interest", "Principal", "Extra", "Balance", "CumInterest"]
    print("\t".join(headers))
    for row in timeline:
        print(
            "\t".join(
                [
                    row.date.isoformat(),
                    f"{row.payment:.2f}",
                    f"{row.interest:.2f}",
                    f"{row.principal:.2f}",
                    f"{row.extra:.2f}",
                    f"{row.balance:.2f}",
                    f"{row.interest_paid:.2f}",
                ]
            )
        )


def print_buckets(buckets: Iterable[Bucket]) -> None:
    print("\t".join(["Period", "Paid", "Interest", "Principal", "EndBal"]))
    for b in buckets:
        print(f"{b.period}\t{b.paid:.2f}\t{b.interest:.2f}\t{b.principal:.2f}\t{b.balance:.2f}")
