"""Scheduled payment math.

The level installment of amortizing loans follows the annuity formula:

    payment = P * (r * (1 + r)^n) / ((1 + r)^n - 1)

where ``P`` is the principal, ``r`` the periodic rate (``apr / periods per
year``) and ``n`` the number of payments. With a zero rate the payment is
``P / n``. Revolving lines pay interest only and credit cards pay a
balance-driven minimum; each loan type maps to one payment rule below.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict

from .data_models import Loan, LoanType, PaymentFrequency
from .utils import EPS, ZERO, round2, to_decimal

CARD_MINIMUM_RATE = Decimal("0.02")
CARD_MINIMUM_FLOOR = Decimal("25")


def amortized_payment(principal: Any, apr: Any, n_periods: int, periods_per_year: int) -> Decimal:
    """Return the level payment that retires ``principal`` in ``n_periods``.

    The result is floored at zero and rounded to cents; ``n_periods <= 0``
    gives zero.
    """
    if n_periods <= 0:
        return ZERO
    principal = to_decimal(principal)
    rate = to_decimal(apr) / Decimal(periods_per_year)
    if abs(rate) < EPS:
        return round2(principal / Decimal(n_periods))
    factor = (1 + rate) ** n_periods
    payment = principal * (rate * factor) / (factor - 1)
    return round2(max(ZERO, payment))


def periods_for_months(months: int, periods_per_year: int) -> int:
    """Number of payment periods in ``months``, at least one."""
    exact = Decimal(int(months or 0) * periods_per_year) / Decimal(12)
    return max(1, int(exact.to_integral_value(rounding=ROUND_HALF_UP)))


def fixed_pi_for_loan(loan: Loan) -> Decimal:
    """Principal-and-interest installment from the ORIGINAL principal and term.

    The value does not depend on the current balance, so extra principal
    shortens the loan instead of lowering the installment.
    """
    ppy = loan.periods_per_year
    n = periods_for_months(loan.term_months, ppy)
    return amortized_payment(loan.original_principal, loan.apr, n, ppy)


def _amortizing_rule(balance: Decimal, apr: Decimal, n_periods: int, ppy: int) -> Decimal:
    return amortized_payment(balance, apr, n_periods, ppy)


def _interest_only_rule(balance: Decimal, apr: Decimal, n_periods: int, ppy: int) -> Decimal:
    return round2(apr / Decimal(ppy) * balance)


def _card_minimum_rule(balance: Decimal, apr: Decimal, n_periods: int, ppy: int) -> Decimal:
    # $25 / 2 % are monthly figures
    monthly_min = max(round2(balance * CARD_MINIMUM_RATE), CARD_MINIMUM_FLOOR)
    return round2(monthly_min * 12 / Decimal(ppy))


PAYMENT_RULES: Dict[LoanType, Callable[[Decimal, Decimal, int, int], Decimal]] = {
    LoanType.MORTGAGE: _amortizing_rule,
    LoanType.CAR_LOAN: _amortizing_rule,
    LoanType.PERSONAL_LOAN: _amortizing_rule,
    LoanType.REVOLVING_LOC: _interest_only_rule,
    LoanType.CREDIT_CARD: _card_minimum_rule,
}


def principal_interest_payment_for(
    loan_type: LoanType,
    balance: Any,
    apr: Any,
    remaining_months: int,
    frequency: PaymentFrequency = PaymentFrequency.MONTHLY,
) -> Decimal:
    """P&I payment for ``loan_type`` computed off the given balance."""
    ppy = frequency.periods_per_year
    n_periods = periods_for_months(remaining_months, ppy)
    rule = PAYMENT_RULES[loan_type]
    return rule(to_decimal(balance), to_decimal(apr), n_periods, ppy)


def scheduled_pi_for(loan: Loan, balance: Any) -> Decimal:
    """P&I due per period: fixed for amortizing loans, balance-driven otherwise."""
    if loan.loan_type.is_amortizing:
        return fixed_pi_for_loan(loan)
    return principal_interest_payment_for(
        loan.loan_type, balance, loan.apr, loan.term_months, loan.payment_frequency
    )


def escrow_per_period(loan: Loan) -> Decimal:
    return round2(loan.escrow_monthly * 12 / Decimal(loan.periods_per_year))


def scheduled_payment_for(loan: Loan, balance: Any) -> Decimal:
    """Full installment: scheduled P&I plus periodized escrow."""
    return round2(scheduled_pi_for(loan, balance) + escrow_per_period(loan))


def per_diem(apr: Any, balance: Any) -> Decimal:
    """Interest accruing per calendar day (actual/365)."""
    return to_decimal(apr) / Decimal(365) * to_decimal(balance)


def payoff_amount(balance: Any, apr: Any, days_since: int) -> Decimal:
    """Balance plus per-diem interest for ``days_since`` days, never negative."""
    accrued = per_diem(apr, balance) * max(0, days_since)
    return max(ZERO, round2(to_decimal(balance) + accrued))
