"""Tests for payoff date estimation and the due-date calendar."""

from __future__ import annotations

from datetime import date

from conftest import make_loan, make_payment

from loan_ledger.ledger import current_balance, recalc_loan_payments
from loan_ledger.payoff import compute_payoff_date, list_due_dates, maturity_date


class TestComputePayoffDate:
    def test_new_mortgage_pays_off_at_maturity(self, standard_mortgage):
        assert compute_payoff_date(standard_mortgage, 100000) == date(2054, 1, 1)

    def test_on_schedule_payments_keep_the_contract_date(self, standard_mortgage):
        payments = recalc_loan_payments(
            standard_mortgage,
            [make_payment(1, "2024-02-01", 599.55), make_payment(2, "2024-03-01", 599.55)],
        )
        balance = current_balance(standard_mortgage, payments)
        assert compute_payoff_date(standard_mortgage, balance, payments=payments) == date(2054, 1, 1)

    def test_large_curtailment_moves_payoff_earlier(self, standard_mortgage):
        assert compute_payoff_date(standard_mortgage, 50000) < date(2050, 1, 1)

    def test_explicit_next_due_date(self, standard_mortgage):
        assert compute_payoff_date(standard_mortgage, 100000, "2024-03-01") == date(2054, 2, 1)

    def test_nothing_owed(self, standard_mortgage):
        assert compute_payoff_date(standard_mortgage, 0) is None

    def test_payment_below_interest_never_pays_off(self):
        loan = make_loan(OriginalPrincipal=1000, APR=0.12, NextPaymentDate="2024-02-01")
        assert compute_payoff_date(loan, 1000000) is None

    def test_no_due_date(self):
        loan = make_loan(OriginationDate=None, NextPaymentDate=None)
        assert compute_payoff_date(loan, 1000) is None


    def test_month_end_payoff_keeps_its_day(self):
        loan = make_loan(
            OriginalPrincipal=1200, APR=0, TermMonths=12, OriginationDate="2023-12-31", NextPaymentDate="2024-01-31"
        )
        payments = [make_payment(1, "2024-01-31", 100)]
        assert compute_payoff_date(loan, 1100, payments=payments) == date(2024, 12, 31)


class TestDueDates:
    def test_list_due_dates_through_end(self, standard_mortgage):
        assert list_due_dates(standard_mortgage, "2024-05-01") == [
            date(2024, 2, 1),
            date(2024, 3, 1),
            date(2024, 4, 1),
            date(2024, 5, 1),
        ]

    def test_month_end_anchor_does_not_drift(self):
        loan = make_loan(NextPaymentDate="2024-01-31")
        assert list_due_dates(loan, "2024-04-30") == [
            date(2024, 1, 31),
            date(2024, 2, 29),
            date(2024, 3, 31),
            date(2024, 4, 30),
        ]

    def test_biweekly_due_dates(self):
        loan = make_loan(NextPaymentDate="2024-01-05", PaymentFrequency="Biweekly")
        assert list_due_dates(loan, "2024-02-02") == [date(2024, 1, 5), date(2024, 1, 19), date(2024, 2, 2)]

    def test_invalid_end_date(self, standard_mortgage):
        assert list_due_dates(standard_mortgage, "someday") == []

    def test_maturity_date(self, standard_mortgage):
        assert maturity_date(standard_mortgage) == date(2054, 1, 1)

    def test_origination_is_the_fallback_anchor(self):
        loan = make_loan(OriginationDate="2024-01-15", NextPaymentDate=None, TermMonths=12)
        assert maturity_date(loan) == date(2025, 1, 15)
