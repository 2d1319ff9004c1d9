"""The in-memory servicing state and the operations callers run on it.

A state is the three collections a caller persists (loans, payments and
draws). Every mutation goes through :meth:`LedgerState.recalculate`, which
replays the affected loan's whole history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .amortization import escrow_per_period, payoff_amount, per_diem, scheduled_payment_for
from .data_models import AccrualConvention, Draw, ExtraPaymentRule, Loan, LoanDataError, Payment, Projection
from .ledger import current_balance, recalc_all_loans, recalc_loan_payments, scheduled_installments_done
from .payoff import compute_payoff_date, maturity_date
from .projection import compute_standard_amortization, project_to_payoff, project_with_extras
from .utils import days_between

PROJECTION_MODES = ("period", "daily")
# "scheduled": same projection without extras; "standard": balance re-amortized over the remaining term
BASELINES = ("scheduled", "standard")


@dataclass
class LedgerState:
    loans: List[Loan] = field(default_factory=list)
    payments: List[Payment] = field(default_factory=list)
    draws: List[Draw] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "LedgerState":
        return cls(
            loans=[Loan.from_record(r) for r in record.get("loans") or []],
            payments=[Payment.from_record(r) for r in record.get("payments") or []],
            draws=[Draw.from_record(r) for r in record.get("draws") or []],
            extra={k: v for k, v in record.items() if k not in ("loans", "payments", "draws")},
        )

    def to_record(self) -> Dict[str, Any]:
        record = dict(self.extra)
        record["loans"] = [loan.to_record() for loan in self.loans]
        record["payments"] = [p.to_record() for p in self.payments]
        record["draws"] = [d.to_record() for d in self.draws]
        return record

    def find_loan(self, loan_id: Any) -> Loan:
        for loan in self.loans:
            if str(loan.id) == str(loan_id):
                return loan
        raise LoanDataError(f"Unknown loan id: {loan_id}")

    def payments_for(self, loan: Loan) -> List[Payment]:
        return [p for p in self.payments if p.loan_ref == loan.id]

    def recalculate(self, loan: Optional[Loan] = None, accrual: AccrualConvention = AccrualConvention.THIRTY_360) -> None:
        """Recompute the portions of one loan, or of every loan."""
        if loan is None:
            self.payments = recalc_all_loans(self.loans, self.payments, self.draws, accrual)
        else:
            self.payments = recalc_loan_payments(loan, self.payments, self.draws, accrual)

    def next_id(self, rows: Iterable[Any]) -> int:
        numeric = [row.id for row in rows if isinstance(row.id, int)]
        return max(numeric, default=0) + 1


def loan_summary(state: LedgerState, loan: Loan, as_of: date) -> Dict[str, Any]:
    """Balance, installment, per-diem and payoff estimates of one loan."""
    payments = state.payments_for(loan)
    balance = current_balance(loan, payments, state.draws)
    dated = [p.payment_date for p in payments if p.payment_date]
    last_payment = max(dated) if dated else loan.origination_date
    days_since = days_between(last_payment, as_of) if last_payment else 0
    payoff = compute_payoff_date(loan, balance, loan.first_due_date(), payments)
    maturity = maturity_date(loan)
    return {
        "loan_id": loan.id,
        "loan_type": loan.loan_type.value,
        "balance": balance,
        "scheduled_payment": scheduled_payment_for(loan, balance),
        "escrow_per_period": escrow_per_period(loan),
        "per_diem": per_diem(loan.apr, balance),
        "payoff_amount": payoff_amount(balance, loan.apr, days_since),
        "scheduled_done": scheduled_installments_done(payments, loan.id),
        "maturity_date": maturity.isoformat() if maturity else None,
        "payoff_date": payoff.isoformat() if payoff else None,
    }


def run_projection(
    state: LedgerState,
    loan: Loan,
    extras: Iterable[ExtraPaymentRule],
    mode: str,
    as_of: date,
    baseline_kind: str = "scheduled",
) -> Tuple[Projection, Projection]:
    """Return ``(scenario, baseline)`` projections from the current balance.

    ``period`` projects month by month from the next unpaid due date;
    ``daily`` projects event by event from ``as_of`` including future draws.
    The ``scheduled`` baseline is the same projection without extras; the
    ``standard`` one re-amortizes the balance over the remaining term from
    ``as_of``.
    """
    if mode not in PROJECTION_MODES:
        raise LoanDataError(f"Projection mode must be one of {PROJECTION_MODES}; got {mode!r}")
    if baseline_kind not in BASELINES:
        raise LoanDataError(f"Baseline must be one of {BASELINES}; got {baseline_kind!r}")
    extras = list(extras)
    payments = state.payments_for(loan)
    balance = current_balance(loan, payments, state.draws)
    if mode == "period":
        done = scheduled_installments_done(payments, loan.id)
        due = loan.first_due_date()
        scenario = project_with_extras(loan, balance, due, extras, done)
        baseline = project_with_extras(loan, balance, due, (), done) if extras else scenario
    else:
        # draws after as_of are replayed by the projection, not the opening balance
        posted = [d for d in state.draws if d.draw_date is None or d.draw_date <= as_of]
        future = [d for d in state.draws if d.draw_date is not None and d.draw_date > as_of]
        balance = current_balance(loan, payments, posted)
        scenario = project_to_payoff(loan, balance, as_of, extras, future)
        baseline = project_to_payoff(loan, balance, as_of, (), future) if extras else scenario
    if baseline_kind == "standard":
        baseline = compute_standard_amortization(loan, balance, as_of)
    return scenario, baseline


def summary_to_record(summary: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-ready copy of :func:`loan_summary` with decimals as floats."""
    return {key: float(value) if isinstance(value, Decimal) else value for key, value in summary.items()}
