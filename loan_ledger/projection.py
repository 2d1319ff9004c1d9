"""What-if projections from the current balance.

Two projections are provided:

``project_with_extras``
    Period by period on the 30/360 convention used by the ledger: each month
    charges ``balance * apr / 12`` and receives the scheduled installment plus
    the extra principal falling due in that period.

``project_to_payoff``
    Event by event with daily (actual/365) accrual between a loan's scheduled
    payment dates, future draws and extra payments.

Both stop once the balance is cleared or after
``max(remaining periods + 120, 2400)`` installments or 100 years. A
projection that stops without clearing the balance has no payoff date.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .amortization import (
    amortized_payment,
    fixed_pi_for_loan,
    periods_for_months,
    principal_interest_payment_for,
    scheduled_pi_for,
)
from .data_models import Draw, ExtraEvery, ExtraPaymentRule, Loan, Projection, TimelineRow, Totals
from .logging_config import get_logger
from .utils import (
    EPS,
    ZERO,
    add_days,
    add_months,
    add_years,
    advance_by_frequency,
    days_between,
    months_between,
    parse_iso,
    round2,
)

logger = get_logger(__name__)

MAX_YEARS = 100
MIN_ITERATIONS = 2400
ITERATION_SLACK = 120

# same-day ordering
_DRAW, _EXTRA, _BASE = 0, 1, 2


def iteration_ceiling(remaining_periods: int) -> int:
    return max(remaining_periods + ITERATION_SLACK, MIN_ITERATIONS)


def _month_offset_on_or_after(anchor: date, when: date) -> int:
    """Smallest ``k >= 0`` with ``add_months(anchor, k) >= when``."""
    k = max(0, months_between(anchor, when))
    while add_months(anchor, k) < when:
        k += 1
    return k


def materialize_extras(
    rules: Iterable[ExtraPaymentRule],
    anchor: date,
    start: date,
    end: date,
    min_offset: int = 0,
) -> Dict[date, Decimal]:
    """Expand extra payment rules into a ``{date: amount}`` map.

    One-time rules and monthly/yearly rules land on the anchor's billing
    days ``add_months(anchor, k)`` with ``k >= min_offset``: a one-time extra
    moves to the first due date on or after its date, and a recurring one
    starts at the first due date on or after its start. Daily and weekly
    rules step from their own start; a series that began before ``start``
    keeps its phase. Occurrences before ``start`` or after ``end`` are
    dropped and same-day amounts add up.
    """
    extras: Dict[date, Decimal] = {}

    def add(when: date, amount: Decimal) -> None:
        extras[when] = round2(extras.get(when, ZERO) + amount)

    for rule in rules:
        if rule is None or rule.amount <= 0:
            continue
        amount = round2(rule.amount)
        if rule.is_once:
            if rule.date is None or rule.date < start or rule.date > end:
                continue
            offset = max(min_offset, _month_offset_on_or_after(anchor, rule.date))
            landing = add_months(anchor, offset)
            if landing <= end:
                add(landing, amount)
            continue

        limit = rule.every.per_year * MAX_YEARS + 1
        if rule.every in (ExtraEvery.MONTH, ExtraEvery.YEAR):
            step = 1 if rule.every is ExtraEvery.MONTH else 12
            first = max(rule.start or start, start)
            offset = max(min_offset, _month_offset_on_or_after(anchor, first))
            for _ in range(limit):
                when = add_months(anchor, offset)
                if when > end:
                    break
                add(when, amount)
                offset += step
        else:
            step = 1 if rule.every is ExtraEvery.DAY else 7
            first = rule.start or start
            if first < start:
                skipped = -(-days_between(first, start) // step)
                first = add_days(first, skipped * step)
            for i in range(limit):
                when = add_days(first, i * step)
                if when > end:
                    break
                add(when, amount)
    return extras


def remaining_periods_at(loan: Loan, start: date) -> Optional[int]:
    """Installments left on the contract as of ``start``.

    A month only counts as elapsed once its day of month has been reached.
    ``None`` when the loan has no origination date.
    """
    if not loan.term_months or loan.origination_date is None:
        return None
    origination = loan.origination_date
    elapsed = months_between(origination, start) - (1 if start.day < origination.day else 0)
    months_left = max(0, loan.term_months - elapsed)
    if months_left == 0:
        return 0
    return periods_for_months(months_left, loan.periods_per_year)


class _Running:
    """Cumulative totals shared by the projections."""

    def __init__(self) -> None:
        self.paid = ZERO
        self.interest = ZERO
        self.principal = ZERO

    def add(self, interest: Decimal, principal: Decimal) -> None:
        self.interest = round2(self.interest + interest)
        self.principal = round2(self.principal + principal)
        self.paid = round2(self.paid + interest + principal)

    def row(self, when: date, payment, interest, principal, extra, balance, draw=ZERO) -> TimelineRow:
        return TimelineRow(
            date=when,
            payment=round2(payment),
            interest=round2(interest),
            principal=round2(principal),
            extra=round2(extra),
            balance=balance,
            paid=self.paid,
            interest_paid=self.interest,
            principal_paid=self.principal,
            draw=round2(draw),
        )

    def totals(self) -> Totals:
        return Totals(total_paid=self.paid, total_interest=self.interest, total_principal=self.principal)


def _finish(timeline: List[TimelineRow], balance: Decimal, running: _Running, label: str, loan: Loan) -> Projection:
    payoff = timeline[-1].date if timeline and balance <= EPS else None
    if payoff is None and balance > EPS:
        logger.debug("%s for loan %s stopped with balance %s", label, loan.id, balance)
    return Projection(timeline=timeline, payoff_date=payoff, totals=running.totals(), balance_end=balance)


def project_with_extras(
    loan: Loan,
    balance_start: Any,
    next_due_date: Any = None,
    extras: Iterable[ExtraPaymentRule] = (),
    scheduled_done: int = 0,
) -> Projection:
    """Month-by-month 30/360 projection from the next unpaid due date.

    The first projected due date is ``next_due_date`` (or the loan's anchor)
    advanced by ``scheduled_done`` months. Each period charges interest on
    the opening balance, receives the scheduled P&I and any extra principal
    falling due on or before that date, and caps principal at the balance.
    """
    balance = round2(balance_start)
    anchor = parse_iso(next_due_date) if next_due_date else loan.first_due_date()
    if balance <= 0 or anchor is None:
        return Projection.empty(max(ZERO, balance))

    first_due = add_months(anchor, scheduled_done)
    remaining = max(1, loan.term_months - scheduled_done)
    horizon = add_years(first_due, MAX_YEARS)
    window_start = add_months(anchor, scheduled_done - 1)
    pending = sorted(materialize_extras(extras, anchor, window_start, horizon).items())

    running = _Running()
    timeline: List[TimelineRow] = []
    cursor = 0
    for index in range(iteration_ceiling(remaining)):
        # always step from the anchor so month-end due dates keep their day
        due = add_months(anchor, scheduled_done + index)
        if due > horizon:
            break
        extra = ZERO
        while cursor < len(pending) and pending[cursor][0] <= due:
            extra = round2(extra + pending[cursor][1])
            cursor += 1

        interest = round2(balance * loan.apr / 12)
        installment = scheduled_pi_for(loan, balance)
        interest_paid = min(interest, installment)
        base_principal = max(ZERO, round2(installment - interest))
        principal = min(round2(base_principal + extra), balance)
        extra_applied = max(ZERO, round2(principal - base_principal))

        balance = round2(balance - principal)
        running.add(interest_paid, principal)
        timeline.append(
            running.row(due, interest_paid + principal, interest_paid, principal, extra_applied, balance)
        )
        if balance <= EPS:
            break

    return _finish(timeline, balance, running, "Period projection", loan)


def _base_installment(loan: Loan, balance: Decimal, fixed_pi: Optional[Decimal]) -> Decimal:
    if fixed_pi is not None:
        return fixed_pi
    return principal_interest_payment_for(
        loan.loan_type, balance, loan.apr, loan.term_months, loan.payment_frequency
    )


def project_to_payoff(
    loan: Loan,
    balance_start: Any,
    start_date: Any,
    extras: Iterable[ExtraPaymentRule] = (),
    draws: Iterable[Draw] = (),
    max_years: int = MAX_YEARS,
) -> Projection:
    """Event-level projection with daily interest accrual.

    Scheduled payments fall every period of the loan's frequency after
    ``start_date``. Amortizing loans (or loans flagged ``fixed_payment``)
    pay the original fixed P&I; revolving lines and cards pay their
    balance-driven minimum recomputed at each payment. Interest accrues at
    ``apr / 365`` per day between events and is paid from scheduled
    payments; extras and draws move the balance on their own dates.
    Same-day events apply draws, then extras, then the scheduled payment.

    Extras falling between scheduled dates reduce the balance immediately
    and are reported on the next row, so the timeline has one row per
    scheduled payment or draw.
    """
    start = parse_iso(start_date)
    balance = round2(balance_start)
    if start is None or balance <= 0:
        return Projection.empty(max(ZERO, balance))

    end = add_years(start, max_years)
    remaining = remaining_periods_at(loan, start)
    if not remaining:
        remaining = periods_for_months(loan.term_months, loan.periods_per_year)
    uses_fixed = loan.fixed_payment or loan.loan_type.is_amortizing
    fixed_pi = fixed_pi_for_loan(loan) if uses_fixed else None

    events: List[Tuple[date, int, Decimal]] = []
    for i in range(1, iteration_ceiling(remaining) + 1):
        when = advance_by_frequency(start, loan.payment_frequency, i)
        if when > end:
            break
        events.append((when, _BASE, ZERO))
    for draw in draws:
        if draw.loan_ref == loan.id and draw.draw_date and start < draw.draw_date <= end:
            events.append((draw.draw_date, _DRAW, round2(draw.amount)))
    # monthly extras share the base series add_months(start, k), k >= 1
    for when, amount in materialize_extras(extras, start, start, end, min_offset=1).items():
        events.append((when, _EXTRA, amount))
    events.sort(key=lambda e: (e[0], e[1]))

    running = _Running()
    timeline: List[TimelineRow] = []
    interest_due = ZERO
    last = start
    # off-cycle extras waiting to be reported on the next row
    unreported_principal = ZERO
    unreported_extra = ZERO

    for when, kind, amount in events:
        days = days_between(last, when)
        if days:
            interest_due = round2(interest_due + round2(balance * loan.apr / 365 * days))
        last = when

        if kind == _DRAW:
            balance = round2(balance + amount)
            timeline.append(running.row(when, ZERO, ZERO, ZERO, ZERO, balance, draw=amount))
            continue

        if kind == _EXTRA:
            principal = min(amount, balance)
            balance = round2(balance - principal)
            running.add(ZERO, principal)
            unreported_principal = round2(unreported_principal + principal)
            unreported_extra = round2(unreported_extra + principal)
            if balance <= EPS:
                running.add(interest_due, ZERO)
                timeline.append(
                    running.row(when, interest_due + unreported_principal, interest_due,
                                unreported_principal, unreported_extra, balance)
                )
                interest_due = ZERO
                break
            continue

        installment = _base_installment(loan, balance, fixed_pi)
        interest_paid = min(installment, interest_due)
        interest_due = round2(interest_due - interest_paid)
        principal = min(max(ZERO, round2(installment - interest_paid)), balance)
        balance = round2(balance - principal)
        if balance <= EPS and interest_due > 0:
            interest_paid = round2(interest_paid + interest_due)
            interest_due = ZERO
        running.add(interest_paid, principal)
        row_principal = round2(principal + unreported_principal)
        timeline.append(
            running.row(when, interest_paid + row_principal, interest_paid, row_principal,
                        unreported_extra, balance)
        )
        unreported_principal = ZERO
        unreported_extra = ZERO
        if balance <= EPS:
            break

    return _finish(timeline, balance, running, "Daily projection", loan)


def compute_standard_amortization(
    loan: Loan,
    balance_start: Any,
    start_date: Any,
    max_years: int = MAX_YEARS,
) -> Projection:
    """Re-amortize the current balance over the remaining contractual term."""
    start = parse_iso(start_date)
    balance = round2(balance_start)
    if start is None or balance <= 0:
        return Projection.empty(max(ZERO, balance))

    ppy = loan.periods_per_year
    remaining = remaining_periods_at(loan, start)
    if not remaining:
        remaining = periods_for_months(loan.term_months, ppy)
    rate = loan.apr / Decimal(ppy)
    payment = amortized_payment(balance, loan.apr, remaining, ppy)

    running = _Running()
    timeline: List[TimelineRow] = []
    for i in range(min(remaining, ppy * max_years)):
        when = advance_by_frequency(start, loan.payment_frequency, i + 1)
        interest = round2(balance * rate)
        actual = payment
        if round2(balance + interest) <= payment:
            actual = round2(balance + interest)
        principal = min(max(ZERO, round2(actual - interest)), balance)
        balance = round2(max(ZERO, balance - principal))
        running.add(interest, principal)
        timeline.append(running.row(when, interest + principal, interest, principal, ZERO, balance))
        if balance <= EPS:
            break

    return _finish(timeline, balance, running, "Standard amortization", loan)


def compare_projections(baseline: Projection, scenario: Projection) -> Dict[str, Any]:
    """Savings of ``scenario`` over ``baseline``.

    ``days_saved`` is only reported when both projections pay off.
    """
    days_saved = None
    if baseline.payoff_date and scenario.payoff_date:
        days_saved = (baseline.payoff_date - scenario.payoff_date).days
    return {
        "baseline_total_interest": float(baseline.totals.total_interest),
        "interest_saved": float(round2(baseline.totals.total_interest - scenario.totals.total_interest)),
        "total_paid_saved": float(round2(baseline.totals.total_paid - scenario.totals.total_paid)),
        "payments_saved": len(baseline.timeline) - len(scenario.timeline),
        "days_saved": days_saved,
    }
