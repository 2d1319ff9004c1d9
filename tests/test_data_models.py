"""Tests for record conversion of loans, payments, draws and extra rules."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from loan_ledger.data_models import (
    AccrualConvention,
    ExtraEvery,
    ExtraPaymentRule,
    Loan,
    LoanDataError,
    LoanType,
    Payment,
    PaymentFrequency,
)


class TestEnums:
    def test_unknown_frequency_falls_back_to_monthly(self):
        assert PaymentFrequency.parse("Fortnightly") is PaymentFrequency.MONTHLY
        assert PaymentFrequency.parse("Biweekly").periods_per_year == 26

    def test_unknown_loan_type_falls_back_to_mortgage(self):
        assert LoanType.parse("Boat") is LoanType.MORTGAGE
        assert not LoanType.parse("Credit Card").is_amortizing

    def test_accrual_parse(self):
        assert AccrualConvention.parse("Actual/365") is AccrualConvention.ACTUAL_365
        assert AccrualConvention.parse(None) is AccrualConvention.THIRTY_360


class TestLoanRecord:
    def test_unknown_keys_survive_a_round_trip(self):
        record = {
            "id": 7,
            "LoanID": "LN-7",
            "BorrowerName": "Avery",
            "OriginalPrincipal": 1000,
            "APR": 0.05,
            "TermMonths": 12,
            "NextPaymentDate": "2024-02-01",
        }
        loan = Loan.from_record(record)
        assert loan.extra == {"LoanID": "LN-7", "BorrowerName": "Avery"}
        out = loan.to_record()
        assert out["BorrowerName"] == "Avery"
        assert out["NextPaymentDate"] == "2024-02-01"
        assert out["PaymentFrequency"] == "Monthly"

    def test_first_due_falls_back_to_origination(self):
        loan = Loan.from_record({"id": 1, "OriginalPrincipal": 1, "TermMonths": 1, "OriginationDate": "2024-01-31"})
        assert loan.first_due_date() == date(2024, 2, 29)

    def test_missing_id(self):
        with pytest.raises(LoanDataError):
            Loan.from_record({"OriginalPrincipal": 1000})

    def test_non_numeric_amount(self):
        with pytest.raises(LoanDataError):
            Loan.from_record({"id": 1, "OriginalPrincipal": "lots"})

    def test_validate_rejects_negative_apr(self):
        loan = Loan.from_record({"id": 1, "OriginalPrincipal": 1000, "APR": -0.01, "TermMonths": 12})
        with pytest.raises(LoanDataError):
            loan.validate()


class TestPaymentRecord:
    def test_scheduled_unless_explicitly_false(self):
        assert Payment.from_record({"id": 1, "Amount": 10}).is_scheduled_installment
        assert not Payment.from_record({"id": 1, "Amount": 10, "IsScheduledInstallment": False}).is_scheduled_installment

    def test_invalid_date_is_none(self):
        payment = Payment.from_record({"id": 1, "Amount": 10, "PaymentDate": "soon"})
        assert payment.payment_date is None
        assert payment.to_record()["PaymentDate"] is None

    def test_boolean_amount_is_rejected(self):
        with pytest.raises(LoanDataError):
            Payment.from_record({"id": 1, "Amount": True})


class TestExtraPaymentRule:
    def test_once_record(self):
        rule = ExtraPaymentRule.from_record({"kind": "once", "amount": 500, "date": "2024-03-01"})
        assert rule.is_once
        assert rule.amount == Decimal("500")
        assert rule.to_record() == {"kind": "once", "amount": 500.0, "date": "2024-03-01"}

    def test_recurring_defaults_to_monthly(self):
        rule = ExtraPaymentRule.from_record({"kind": "recurring", "amount": 100})
        assert rule.every is ExtraEvery.MONTH
        assert rule.start is None

    def test_bad_step(self):
        with pytest.raises(LoanDataError):
            ExtraPaymentRule.from_record({"kind": "recurring", "amount": 100, "every": "fortnight"})
