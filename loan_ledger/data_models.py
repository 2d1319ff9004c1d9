"""Data models for the loan ledger.

This module defines the enums and dataclasses shared by the engine: the loan
terms, the payment and draw ledgers, what-if extra payment rules and the
projection results. Each record type converts to and from the plain
dictionaries used by callers (``OriginalPrincipal``, ``PaymentDate``, ...),
so collections can be loaded from and written back to JSON unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .utils import ZERO, add_months, parse_iso, to_decimal


class LoanDataError(ValueError):
    """Raised when a caller-supplied record cannot be turned into a model."""


class PaymentFrequency(str, Enum):
    MONTHLY = "Monthly"
    BIWEEKLY = "Biweekly"
    WEEKLY = "Weekly"
    QUARTERLY = "Quarterly"
    ANNUAL = "Annual"

    @property
    def periods_per_year(self) -> int:
        return _PERIODS_PER_YEAR[self]

    @classmethod
    def parse(cls, value: Any) -> "PaymentFrequency":
        """Return the matching frequency, falling back to ``MONTHLY``."""
        try:
            return cls(value)
        except ValueError:
            return cls.MONTHLY


_PERIODS_PER_YEAR = {
    PaymentFrequency.MONTHLY: 12,
    PaymentFrequency.BIWEEKLY: 26,
    PaymentFrequency.WEEKLY: 52,
    PaymentFrequency.QUARTERLY: 4,
    PaymentFrequency.ANNUAL: 1,
}


class LoanType(str, Enum):
    MORTGAGE = "Mortgage"
    CAR_LOAN = "Car Loan"
    PERSONAL_LOAN = "Personal Loan"
    REVOLVING_LOC = "Revolving LOC"
    CREDIT_CARD = "Credit Card"

    @property
    def is_amortizing(self) -> bool:
        return self in (LoanType.MORTGAGE, LoanType.CAR_LOAN, LoanType.PERSONAL_LOAN)

    @classmethod
    def parse(cls, value: Any) -> "LoanType":
        try:
            return cls(value)
        except ValueError:
            return cls.MORTGAGE


class AccrualConvention(str, Enum):
    """How the ledger replay charges interest on historical payments."""

    THIRTY_360 = "30/360"
    ACTUAL_365 = "actual/365"

    @classmethod
    def parse(cls, value: Any) -> "AccrualConvention":
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.THIRTY_360


class ExtraEvery(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @property
    def per_year(self) -> int:
        return {"day": 365, "week": 52, "month": 12, "year": 1}[self.value]


def _require_id(record: Mapping[str, Any], kind: str) -> Any:
    if record.get("id") is None:
        raise LoanDataError(f"{kind} record is missing an id: {dict(record)!r}")
    return record["id"]


def _amount(record: Mapping[str, Any], key: str) -> Decimal:
    value = record.get(key)
    if value is None or value == "":
        return ZERO
    amount = None if isinstance(value, bool) else to_decimal(value, default=None)  # type: ignore[arg-type]
    if amount is None or not amount.is_finite():
        raise LoanDataError(f"{key} must be numeric; got {value!r}")
    return amount


def _iso_or_none(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _split_extra(record: Mapping[str, Any], known: tuple) -> Dict[str, Any]:
    return {k: v for k, v in record.items() if k not in known}


_LOAN_KEYS = (
    "id",
    "OriginalPrincipal",
    "APR",
    "TermMonths",
    "PaymentFrequency",
    "LoanType",
    "OriginationDate",
    "NextPaymentDate",
    "GraceDays",
    "EscrowMonthly",
    "FixedPayment",
)


@dataclass
class Loan:
    """Terms of a single loan.

    Attributes
    ----------
    original_principal: Decimal
        Amount financed at origination.
    apr: Decimal
        Nominal annual rate as a decimal fraction (``0.065`` for 6.5 %).
    term_months: int
        Contractual term in months, whatever the payment frequency.
    next_payment_date: date
        Current due-date pointer. When missing, the first due date is one
        month after ``origination_date``.
    fixed_payment: bool
        Pins the projected installment of non-amortizing loans to the
        original amortization instead of the balance-driven minimum.
    extra: dict
        Any other keys of the source record, carried through untouched.
    """

    id: Any
    original_principal: Decimal
    apr: Decimal
    term_months: int
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    loan_type: LoanType = LoanType.MORTGAGE
    origination_date: Optional[date] = None
    next_payment_date: Optional[date] = None
    grace_days: int = 0
    escrow_monthly: Decimal = ZERO
    fixed_payment: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def periods_per_year(self) -> int:
        return self.payment_frequency.periods_per_year

    def first_due_date(self) -> Optional[date]:
        """The due-date anchor of the ledger, or ``None`` if it has none."""
        if self.next_payment_date:
            return self.next_payment_date
        if self.origination_date:
            return add_months(self.origination_date, 1)
        return None

    def validate(self) -> None:
        """Raise ``LoanDataError`` unless the terms are usable by the engine."""
        if self.apr < 0:
            raise LoanDataError("APR must be zero or positive")
        if self.term_months < 1:
            raise LoanDataError("TermMonths must be at least 1")
        if self.original_principal < 0:
            raise LoanDataError("OriginalPrincipal must be zero or positive")

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Loan":
        try:
            term = int(record.get("TermMonths") or 0)
            grace = max(0, int(record.get("GraceDays") or 0))
        except (TypeError, ValueError) as exc:
            raise LoanDataError(f"Invalid loan term or grace days: {exc}") from exc
        return cls(
            id=_require_id(record, "Loan"),
            original_principal=_amount(record, "OriginalPrincipal"),
            apr=_amount(record, "APR"),
            term_months=term,
            payment_frequency=PaymentFrequency.parse(record.get("PaymentFrequency")),
            loan_type=LoanType.parse(record.get("LoanType")),
            origination_date=parse_iso(record.get("OriginationDate")),
            next_payment_date=parse_iso(record.get("NextPaymentDate")),
            grace_days=grace,
            escrow_monthly=_amount(record, "EscrowMonthly"),
            fixed_payment=bool(record.get("FixedPayment", False)),
            extra=_split_extra(record, _LOAN_KEYS),
        )

    def to_record(self) -> Dict[str, Any]:
        record = dict(self.extra)
        record.update(
            {
                "id": self.id,
                "OriginalPrincipal": float(self.original_principal),
                "APR": float(self.apr),
                "TermMonths": self.term_months,
                "PaymentFrequency": self.payment_frequency.value,
                "LoanType": self.loan_type.value,
                "OriginationDate": _iso_or_none(self.origination_date),
                "NextPaymentDate": _iso_or_none(self.next_payment_date),
                "GraceDays": self.grace_days,
                "EscrowMonthly": float(self.escrow_monthly),
                "FixedPayment": self.fixed_payment,
            }
        )
        return record


_PAYMENT_KEYS = (
    "id",
    "LoanRef",
    "PaymentDate",
    "Amount",
    "IsScheduledInstallment",
    "InterestPortion",
    "PrincipalPortion",
    "EscrowPortion",
)


@dataclass
class Payment:
    """A posted payment.

    ``interest_portion``, ``principal_portion`` and ``escrow_portion`` are
    derived by the ledger replay and overwritten on every recalculation.
    An unscheduled payment (``is_scheduled_installment=False``) is a
    principal-only curtailment.
    """

    id: Any
    loan_ref: Any
    payment_date: Optional[date]
    amount: Decimal
    is_scheduled_installment: bool = True
    interest_portion: Decimal = ZERO
    principal_portion: Decimal = ZERO
    escrow_portion: Decimal = ZERO
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Payment":
        return cls(
            id=_require_id(record, "Payment"),
            loan_ref=record.get("LoanRef"),
            payment_date=parse_iso(record.get("PaymentDate")),
            amount=_amount(record, "Amount"),
            is_scheduled_installment=record.get("IsScheduledInstallment") is not False,
            interest_portion=_amount(record, "InterestPortion"),
            principal_portion=_amount(record, "PrincipalPortion"),
            escrow_portion=_amount(record, "EscrowPortion"),
            extra=_split_extra(record, _PAYMENT_KEYS),
        )

    def to_record(self) -> Dict[str, Any]:
        record = dict(self.extra)
        record.update(
            {
                "id": self.id,
                "LoanRef": self.loan_ref,
                "PaymentDate": _iso_or_none(self.payment_date),
                "Amount": float(self.amount),
                "IsScheduledInstallment": self.is_scheduled_installment,
                "InterestPortion": float(self.interest_portion),
                "PrincipalPortion": float(self.principal_portion),
                "EscrowPortion": float(self.escrow_portion),
            }
        )
        return record


_DRAW_KEYS = ("id", "LoanRef", "DrawDate", "Amount")


@dataclass
class Draw:
    """A balance-increasing advance on a revolving loan."""

    id: Any
    loan_ref: Any
    draw_date: Optional[date]
    amount: Decimal
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Draw":
        return cls(
            id=_require_id(record, "Draw"),
            loan_ref=record.get("LoanRef"),
            draw_date=parse_iso(record.get("DrawDate")),
            amount=_amount(record, "Amount"),
            extra=_split_extra(record, _DRAW_KEYS),
        )

    def to_record(self) -> Dict[str, Any]:
        record = dict(self.extra)
        record.update(
            {
                "id": self.id,
                "LoanRef": self.loan_ref,
                "DrawDate": _iso_or_none(self.draw_date),
                "Amount": float(self.amount),
            }
        )
        return record


@dataclass
class ExtraPaymentRule:
    """A what-if extra principal payment.

    Attributes
    ----------
    kind: str
        ``"once"`` for a single payment on ``date`` or ``"recurring"`` for a
        payment repeating ``every`` day/week/month/year from ``start``.
    amount: Decimal
        Principal applied per occurrence. Rules with a non-positive amount
        are ignored by the projections.
    """

    kind: str
    amount: Decimal
    date: Optional[date] = None
    every: ExtraEvery = ExtraEvery.MONTH
    start: Optional[date] = None

    @property
    def is_once(self) -> bool:
        return self.kind == "once"

    @classmethod
    def once(cls, amount: Any, when: Any) -> "ExtraPaymentRule":
        return cls(kind="once", amount=to_decimal(amount), date=parse_iso(when))

    @classmethod
    def recurring(cls, amount: Any, every: Any = "month", start: Any = None) -> "ExtraPaymentRule":
        try:
            step = ExtraEvery(every)
        except ValueError as exc:
            raise LoanDataError(f"Extra payment 'every' must be day/week/month/year; got {every!r}") from exc
        return cls(kind="recurring", amount=to_decimal(amount), every=step, start=parse_iso(start))

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ExtraPaymentRule":
        if record.get("kind") == "once":
            return cls.once(_amount(record, "amount"), record.get("date"))
        return cls.recurring(_amount(record, "amount"), record.get("every") or "month", record.get("start"))

    def to_record(self) -> Dict[str, Any]:
        if self.is_once:
            return {"kind": "once", "amount": float(self.amount), "date": _iso_or_none(self.date)}
        return {
            "kind": "recurring",
            "amount": float(self.amount),
            "every": self.every.value,
            "start": _iso_or_none(self.start),
        }


@dataclass
class TimelineRow:
    """One projected payment (or draw) with running totals."""

    date: date
    payment: Decimal
    interest: Decimal
    principal: Decimal
    extra: Decimal
    balance: Decimal
    paid: Decimal
    interest_paid: Decimal
    principal_paid: Decimal
    draw: Decimal = ZERO

    def to_record(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "payment": float(self.payment),
            "interest": float(self.interest),
            "principal": float(self.principal),
            "extra": float(self.extra),
            "draw": float(self.draw),
            "balance": float(self.balance),
            "paid": float(self.paid),
            "interestPaid": float(self.interest_paid),
            "principalPaid": float(self.principal_paid),
        }


@dataclass
class Totals:
    total_paid: Decimal = ZERO
    total_interest: Decimal = ZERO
    total_principal: Decimal = ZERO

    def to_record(self) -> Dict[str, float]:
        return {
            "totalPaid": float(self.total_paid),
            "totalInterest": float(self.total_interest),
            "totalPrincipal": float(self.total_principal),
        }


@dataclass
class Projection:
    """Result of a what-if projection.

    ``payoff_date`` is ``None`` both for an empty projection and for one that
    hit its iteration ceiling; in the latter case ``balance_end`` is still
    positive.
    """

    timeline: List[TimelineRow]
    payoff_date: Optional[date]
    totals: Totals
    balance_end: Decimal

    @property
    def paid_off(self) -> bool:
        return self.payoff_date is not None

    @classmethod
    def empty(cls, balance: Decimal = ZERO) -> "Projection":
        return cls(timeline=[], payoff_date=None, totals=Totals(), balance_end=balance)

    def to_record(self) -> Dict[str, Any]:
        return {
            "timeline": [row.to_record() for row in self.timeline],
            "payoffDate": _iso_or_none(self.payoff_date),
            "totals": self.totals.to_record(),
            "balanceEnd": float(self.balance_end),
        }


@dataclass
class Bucket:
    """Monthly or yearly roll-up of a projection timeline."""

    period: str
    paid: Decimal
    interest: Decimal
    principal: Decimal
    balance: Decimal

    def to_record(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "paid": float(self.paid),
            "interest": float(self.interest),
            "principal": float(self.principal),
            "balance": float(self.balance),
        }
