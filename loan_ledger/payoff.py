"""Payoff date estimation and the contractual due-date calendar."""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable, List, Optional

from .amortization import fixed_pi_for_loan, periods_for_months
from .data_models import Loan, Payment
from .ledger import scheduled_installments_done
from .logging_config import get_logger
from .utils import ZERO, add_months, advance_by_frequency, parse_iso, round2

logger = get_logger(__name__)

MAX_PAYOFF_PERIODS = 2000
MAX_DUE_DATES = 2400


def _periods_to_payoff(balance, apr, payment) -> Optional[int]:
    """Monthly 30/360 periods the fixed payment needs to clear ``balance``.

    ``None`` when the payment does not cover the interest or the ceiling is
    reached first. Both cases mean the loan never pays off at this payment,
    so no period count is reported for them rather than a date at the cap.
    """
    periods = 0
    running = balance
    for _ in range(MAX_PAYOFF_PERIODS):
        interest = round2(running * apr / 12)
        principal = max(ZERO, round2(payment - interest))
        periods += 1
        if principal <= 0:
            return None
        if principal >= running:
            return periods
        running = round2(running - principal)
    return None


def compute_payoff_date(
    loan: Loan,
    balance: Any,
    next_due_date: Any = None,
    payments: Iterable[Payment] = (),
) -> Optional[date]:
    """Estimate the date of the final installment.

    The fixed P&I is run forward from ``balance``. When the result is within
    one period of the contractual remaining term (term minus scheduled
    installments already posted) the contractual date is kept, so cent
    rounding does not move the estimate back and forth.

    Returns ``None`` when nothing is owed, when no due date is known, or when
    the installment cannot amortize the balance.
    """
    balance = round2(balance)
    if balance <= 0:
        return None
    first_due = parse_iso(next_due_date) if next_due_date else loan.first_due_date()
    if first_due is None:
        return None

    done = scheduled_installments_done(payments, loan.id)
    remaining_scheduled = max(1, loan.term_months - done)
    needed = _periods_to_payoff(balance, loan.apr, fixed_pi_for_loan(loan))
    if needed is None:
        logger.debug("Loan %s: fixed installment cannot retire balance %s", loan.id, balance)
        return None

    final_periods = remaining_scheduled if abs(needed - remaining_scheduled) <= 1 else max(1, needed)
    return add_months(first_due, done + final_periods - 1)


def list_due_dates(loan: Loan, end_date: Any) -> List[date]:
    """Scheduled due dates from the loan's anchor through ``end_date``."""
    end = parse_iso(end_date)
    anchor = loan.first_due_date()
    if end is None or anchor is None:
        return []
    dates: List[date] = []
    for index in range(MAX_DUE_DATES):
        due = advance_by_frequency(anchor, loan.payment_frequency, index)
        if due > end:
            break
        dates.append(due)
    return dates


def maturity_date(loan: Loan) -> Optional[date]:
    """Contractual date of the last installment."""
    anchor = loan.first_due_date()
    if anchor is None or loan.term_months <= 0:
        return None
    periods = periods_for_months(loan.term_months, loan.periods_per_year)
    return advance_by_frequency(anchor, loan.payment_frequency, periods - 1)
