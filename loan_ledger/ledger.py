"""Ledger recalculation: replay a loan's history to split each payment.

Payments and draws of one loan are merged, ordered by date and folded
through a small state machine. Under the default 30/360 convention the
state is the current billing :class:`Period`: its interest is fixed from the
balance when the period opens, scheduled payments pay that interest (plus
per-diem late interest once past the grace window) before principal, and a
period closes only after it is satisfied and an event reaches its due date.
Unscheduled payments are principal-only curtailments.

The replay is the source of truth for ``InterestPortion`` and
``PrincipalPortion``: callers re-run it over the whole history after any
change instead of patching individual rows.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from .amortization import scheduled_pi_for
from .data_models import AccrualConvention, Draw, Loan, Payment
from .logging_config import get_logger
from .utils import EPS, ZERO, add_days, add_months, days_between, round2

logger = get_logger(__name__)

Event = Union[Payment, Draw]


@dataclass
class Period:
    """Billing cycle ending on ``due``.

    ``required_principal`` is what the scheduled installment leaves for
    principal after this period's interest; the period is satisfied once
    the interest is cleared and at least that much principal was paid.
    """

    index: int
    start: date
    due: date
    period_interest: Decimal
    required_principal: Decimal
    interest_outstanding: Decimal
    principal_paid: Decimal = ZERO
    satisfied: bool = False

    @classmethod
    def open(cls, loan: Loan, anchor: date, index: int, balance: Decimal) -> "Period":
        interest = round2(balance * loan.apr / 12)
        scheduled = scheduled_pi_for(loan, balance)
        return cls(
            index=index,
            start=add_months(anchor, index - 1),
            due=add_months(anchor, index),
            period_interest=interest,
            required_principal=max(ZERO, scheduled - interest),
            interest_outstanding=interest,
        )

    def grace_date(self, grace_days: int) -> date:
        return add_days(self.due, grace_days)

    def record_principal(self, amount: Decimal) -> None:
        self.principal_paid = round2(self.principal_paid + amount)
        if (
            not self.satisfied
            and self.interest_outstanding <= EPS
            and self.principal_paid + EPS >= self.required_principal
        ):
            self.satisfied = True


class ThirtyThreeSixtyReplay:
    """Monthly 30/360 servicing with grace days and per-diem late interest."""

    def __init__(self, loan: Loan, anchor: date) -> None:
        self.loan = loan
        self.anchor = anchor
        self.balance = round2(loan.original_principal)
        self.period = Period.open(loan, anchor, 0, self.balance)
        self.last_event = self.period.start

    def _advance(self, when: date) -> None:
        while self.period.satisfied and when >= self.period.due:
            self.period = Period.open(self.loan, self.anchor, self.period.index + 1, self.balance)
            self.last_event = self.period.start

    def _charge_late_interest(self, when: date) -> None:
        if self.period.satisfied:
            return
        grace_date = self.period.grace_date(self.loan.grace_days)
        if when <= grace_date:
            return
        late_from = max(self.last_event, grace_date)
        late_days = days_between(late_from, when)
        if late_days > 0:
            late_interest = round2(self.balance * self.loan.apr / 360 * late_days)
            self.period.interest_outstanding = round2(self.period.interest_outstanding + late_interest)

    def apply_payment(self, payment: Payment, when: date) -> Tuple[Decimal, Decimal]:
        self._advance(when)
        amount = max(ZERO, payment.amount)
        interest = ZERO
        if payment.is_scheduled_installment:
            self._charge_late_interest(when)
            interest = min(amount, self.period.interest_outstanding)
            self.period.interest_outstanding = round2(self.period.interest_outstanding - interest)
            remaining = max(ZERO, round2(amount - interest))
            principal = min(remaining, self.balance)
        else:
            principal = min(amount, self.balance)
        self.balance = round2(max(ZERO, self.balance - principal))
        if payment.is_scheduled_installment:
            self.period.record_principal(principal)
        self.last_event = when
        return interest, principal

    def apply_draw(self, draw: Draw, when: date) -> None:
        self._advance(when)
        # Period interest stays as fixed at period start
        self.balance = round2(self.balance + max(ZERO, draw.amount))
        self.last_event = when


class ActualThreeSixtyFiveReplay:
    """Daily accrual from the origination date on the running balance.

    Interest accrues between consecutive events at ``apr / 365`` per day and
    is carried until a scheduled payment pays it.
    """

    def __init__(self, loan: Loan, start: date) -> None:
        self.loan = loan
        self.balance = round2(loan.original_principal)
        self.interest_due = ZERO
        self.last_event = start

    def _accrue(self, when: date) -> None:
        days = days_between(self.last_event, when)
        if days:
            accrued = round2(self.balance * self.loan.apr / 365 * days)
            self.interest_due = round2(self.interest_due + accrued)
        self.last_event = max(self.last_event, when)

    def apply_payment(self, payment: Payment, when: date) -> Tuple[Decimal, Decimal]:
        self._accrue(when)
        amount = max(ZERO, payment.amount)
        interest = ZERO
        if payment.is_scheduled_installment:
            interest = min(amount, self.interest_due)
            self.interest_due = round2(self.interest_due - interest)
            principal = min(max(ZERO, round2(amount - interest)), self.balance)
        else:
            principal = min(amount, self.balance)
        self.balance = round2(max(ZERO, self.balance - principal))
        return interest, principal

    def apply_draw(self, draw: Draw, when: date) -> None:
        self._accrue(when)
        self.balance = round2(self.balance + max(ZERO, draw.amount))


def _event_date(event: Event) -> Optional[date]:
    return event.payment_date if isinstance(event, Payment) else event.draw_date


def _build_replay(loan: Loan, accrual: AccrualConvention):
    anchor = loan.first_due_date()
    if accrual is AccrualConvention.ACTUAL_365:
        start = loan.origination_date or (add_months(anchor, -1) if anchor else None)
        return ActualThreeSixtyFiveReplay(loan, start) if start else None
    return ThirtyThreeSixtyReplay(loan, anchor) if anchor else None


def recalc_loan_payments(
    loan: Loan,
    payments: Sequence[Payment],
    draws: Iterable[Draw] = (),
    accrual: AccrualConvention = AccrualConvention.THIRTY_360,
) -> List[Payment]:
    """Return ``payments`` with this loan's portions recomputed.

    Rows of other loans are returned as the same objects. Events are replayed
    in date order; same-day events keep collection order, payments first and
    then draws. Payments or draws without a usable date are skipped and their
    rows returned unchanged.
    """
    replay = _build_replay(loan, accrual)
    if replay is None:
        logger.warning("Loan %s has no due-date anchor; payments left unchanged", loan.id)
        return list(payments)

    events: List[Event] = [p for p in payments if p.loan_ref == loan.id]
    events.extend(d for d in draws if d.loan_ref == loan.id)
    dated = [e for e in events if _event_date(e) is not None]
    if len(dated) != len(events):
        logger.warning(
            "Loan %s: %d event(s) without a valid date skipped", loan.id, len(events) - len(dated)
        )
    dated.sort(key=_event_date)

    updated = {}
    for event in dated:
        when = _event_date(event)
        if isinstance(event, Payment):
            interest, principal = replay.apply_payment(event, when)
            updated[id(event)] = replace(
                event,
                interest_portion=round2(interest),
                principal_portion=round2(principal),
                escrow_portion=ZERO,
            )
        else:
            replay.apply_draw(event, when)

    logger.debug(
        "Recalculated loan %s (%s): %d payment(s), ending balance %s",
        loan.id,
        accrual.value,
        len(updated),
        replay.balance,
    )
    return [updated.get(id(p), p) for p in payments]


def recalc_all_loans(
    loans: Iterable[Loan],
    payments: Sequence[Payment],
    draws: Sequence[Draw] = (),
    accrual: AccrualConvention = AccrualConvention.THIRTY_360,
) -> List[Payment]:
    out = list(payments)
    for loan in loans:
        out = recalc_loan_payments(loan, out, draws, accrual)
    return out


def current_balance(loan: Loan, payments: Iterable[Payment], draws: Iterable[Draw] = ()) -> Decimal:
    """Outstanding principal implied by the recalculated ledger."""
    principal_paid = sum((p.principal_portion for p in payments if p.loan_ref == loan.id), ZERO)
    drawn = sum((d.amount for d in draws if d.loan_ref == loan.id), ZERO)
    return max(ZERO, round2(loan.original_principal - principal_paid + drawn))


def scheduled_installments_done(payments: Iterable[Payment], loan_id: Any) -> int:
    return sum(1 for p in payments if p.loan_ref == loan_id and p.is_scheduled_installment)
