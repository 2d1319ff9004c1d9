"""Tests for the ledger replay that splits payments into interest and principal."""

from __future__ import annotations

import logging
from decimal import Decimal

from conftest import make_draw, make_loan, make_payment

from loan_ledger.data_models import AccrualConvention, Loan
from loan_ledger.ledger import (
    current_balance,
    recalc_all_loans,
    recalc_loan_payments,
    scheduled_installments_done,
)


def portions(payments):
    return [(p.interest_portion, p.principal_portion) for p in payments]


class TestMortgageReplay:
    """$332k mortgage paid early, on time, and with a curtailment."""

    def test_first_period_interest_is_a_month_of_interest(self, mortgage, mortgage_payments):
        result = recalc_loan_payments(mortgage, mortgage_payments)
        first = result[0]
        assert Decimal("1700") < first.interest_portion < Decimal("1850")
        assert first.interest_portion == Decimal("1798.33")
        assert first.principal_portion == Decimal("300.14")

    def test_interest_declines_as_principal_is_paid(self, mortgage, mortgage_payments):
        result = recalc_loan_payments(mortgage, mortgage_payments)
        assert result[1].interest_portion < result[0].interest_portion
        assert result[1].interest_portion == Decimal("1796.71")
        assert result[2].interest_portion == Decimal("1795.07")

    def test_unscheduled_payment_is_all_principal(self, mortgage, mortgage_payments):
        result = recalc_loan_payments(mortgage, mortgage_payments)
        assert result[3].interest_portion == Decimal("0")
        assert result[3].principal_portion == Decimal("1000.00")

    def test_recalc_is_idempotent(self, mortgage, mortgage_payments):
        once = recalc_loan_payments(mortgage, mortgage_payments)
        twice = recalc_loan_payments(mortgage, once)
        assert portions(once) == portions(twice)

    def test_portions_never_exceed_amount(self, mortgage, mortgage_payments):
        for p in recalc_loan_payments(mortgage, mortgage_payments):
            assert p.interest_portion + p.principal_portion <= p.amount
            if p.is_scheduled_installment:
                assert p.interest_portion + p.principal_portion == p.amount

    def test_escrow_portion_is_reset(self, mortgage):
        payments = [make_payment(1, "2025-10-06", 2098.47, EscrowPortion=100)]
        result = recalc_loan_payments(mortgage, payments)
        assert result[0].escrow_portion == Decimal("0")

    def test_current_balance_and_installment_count(self, mortgage, mortgage_payments):
        result = recalc_loan_payments(mortgage, mortgage_payments)
        assert current_balance(mortgage, result) == Decimal("330094.70")
        assert scheduled_installments_done(result, mortgage.id) == 3

    def test_collection_order_is_preserved(self, mortgage, mortgage_payments):
        shuffled = list(reversed(mortgage_payments))
        result = recalc_loan_payments(mortgage, shuffled)
        assert [p.id for p in result] == [4, 3, 2, 1]
        assert result[3].interest_portion == Decimal("1798.33")


class TestGraceWindow:
    def _loan(self) -> Loan:
        return make_loan(
            OriginalPrincipal=120000,
            APR=0.06,
            OriginationDate="2023-12-15",
            NextPaymentDate="2024-01-15",
            GraceDays=10,
        )

    def test_payment_on_last_grace_day_has_no_late_interest(self):
        result = recalc_loan_payments(self._loan(), [make_payment(1, "2024-01-25", 719.46)])
        assert result[0].interest_portion == Decimal("600.00")
        assert result[0].principal_portion == Decimal("119.46")

    def test_one_day_late_adds_per_diem_on_360(self):
        result = recalc_loan_payments(self._loan(), [make_payment(1, "2024-01-26", 719.46)])
        # 120000 * 6 % / 360 for one day
        assert result[0].interest_portion == Decimal("620.00")
        assert result[0].principal_portion == Decimal("99.46")


class TestActualDayAccrual:
    def test_ten_days_of_interest(self):
        loan = make_loan(
            OriginalPrincipal=1000,
            APR=0.10,
            TermMonths=12,
            OriginationDate="2024-01-01",
            NextPaymentDate="2024-02-01",
            GraceDays=0,
        )
        payments = [make_payment(1, "2024-01-11", 100), make_payment(2, "2024-01-21", 100)]
        result = recalc_loan_payments(loan, payments, accrual=AccrualConvention.ACTUAL_365)
        assert result[0].interest_portion == Decimal("2.74")
        assert result[0].principal_portion == Decimal("97.26")
        assert result[1].interest_portion == Decimal("2.47")
        assert result[1].principal_portion == Decimal("97.53")


class TestDrawsAndScope:
    def test_draw_raises_next_period_interest(self, credit_line):
        payments = [
            make_payment(1, "2024-02-01", 100, loan_ref=3),
            make_payment(2, "2024-03-01", 200, loan_ref=3),
        ]
        draws = [make_draw(1, "2024-01-15", 5000, loan_ref=3)]
        result = recalc_loan_payments(credit_line, payments, draws)
        # interest of the open period is fixed when it opens
        assert portions(result)[0] == (Decimal("100.00"), Decimal("0"))
        assert portions(result)[1] == (Decimal("150.00"), Decimal("50.00"))
        assert current_balance(credit_line, result, draws) == Decimal("14950.00")

    def test_other_loans_are_untouched(self, mortgage):
        other = make_payment(9, "2025-10-06", 500, loan_ref=2)
        mine = make_payment(1, "2025-10-06", 2098.47)
        result = recalc_loan_payments(mortgage, [other, mine])
        assert result[0] is other
        assert result[1].interest_portion == Decimal("1798.33")

    def test_recalc_all_loans_covers_every_loan(self, mortgage, credit_line):
        payments = [make_payment(1, "2025-10-06", 2098.47), make_payment(2, "2024-02-01", 100, loan_ref=3)]
        result = recalc_all_loans([mortgage, credit_line], payments)
        assert result[0].interest_portion == Decimal("1798.33")
        assert result[1].interest_portion == Decimal("100.00")


class TestBadInput:
    def test_undated_payment_is_skipped(self, mortgage, caplog):
        undated = make_payment(2, "not-a-date", 2098.47)
        with caplog.at_level(logging.WARNING):
            result = recalc_loan_payments(mortgage, [make_payment(1, "2025-10-06", 2098.47), undated])
        assert result[1] is undated
        assert result[0].interest_portion == Decimal("1798.33")
        assert "without a valid date" in caplog.text

    def test_loan_without_anchor_leaves_payments(self, caplog):
        loan = make_loan(OriginationDate=None, NextPaymentDate=None)
        payments = [make_payment(1, "2025-10-06", 2098.47)]
        with caplog.at_level(logging.WARNING):
            result = recalc_loan_payments(loan, payments)
        assert result == payments
        assert "no due-date anchor" in caplog.text

    def test_overpayment_caps_principal_at_balance(self):
        loan = make_loan(OriginalPrincipal=1000, APR=0, TermMonths=12, NextPaymentDate="2024-02-01")
        result = recalc_loan_payments(loan, [make_payment(1, "2024-02-01", 5000)])
        assert result[0].principal_portion == Decimal("1000.00")
        assert current_balance(loan, result) == Decimal("0")
