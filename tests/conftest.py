"""Pytest configuration and shared fixtures for the loan ledger tests.

Fixtures build loans and payments from the same dictionaries callers
persist, and point configuration at a temporary data directory so no test
touches the real database or log files.
"""

from __future__ import annotations

import logging

import pytest

from loan_ledger.data_models import Draw, Loan, Payment


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep config, database and logs inside the test's temp directory."""
    monkeypatch.setenv("LOAN_LEDGER_DATA_DIR", str(tmp_path / "instance"))
    monkeypatch.setenv("LOAN_LEDGER_LOG_TO_FILE", "0")
    monkeypatch.setenv("LOAN_LEDGER_DEV_MODE", "1")
    monkeypatch.delenv("LOAN_LEDGER_DATABASE_URL", raising=False)
    monkeypatch.delenv("LOAN_LEDGER_ACCRUAL", raising=False)
    yield
    # handlers installed by setup_logging may hold streams closed by CliRunner
    root = logging.getLogger("loan_ledger")
    for handler in list(root.handlers):
        handler.close()
    root.handlers.clear()


def make_loan(**overrides) -> Loan:
    record = {
        "id": 1,
        "OriginalPrincipal": 332000,
        "APR": 0.065,
        "TermMonths": 360,
        "PaymentFrequency": "Monthly",
        "LoanType": "Mortgage",
        "OriginationDate": "2025-09-10",
        "NextPaymentDate": "2025-10-10",
        "GraceDays": 15,
        "EscrowMonthly": 0,
    }
    record.update(overrides)
    return Loan.from_record(record)


def make_payment(pid, when, amount, loan_ref=1, scheduled=True, **extra) -> Payment:
    record = {
        "id": pid,
        "LoanRef": loan_ref,
        "PaymentDate": when,
        "Amount": amount,
        "IsScheduledInstallment": scheduled,
    }
    record.update(extra)
    return Payment.from_record(record)


def make_draw(did, when, amount, loan_ref=1) -> Draw:
    return Draw.from_record({"id": did, "LoanRef": loan_ref, "DrawDate": when, "Amount": amount})


@pytest.fixture
def mortgage() -> Loan:
    """$332k, 6.5 %, 30 years, first due 2025-10-10 with 15 grace days."""
    return make_loan()


@pytest.fixture
def mortgage_payments():
    return [
        make_payment(1, "2025-10-06", 2098.47),
        make_payment(2, "2025-11-01", 2098.47),
        make_payment(3, "2025-12-05", 2098.47),
        make_payment(4, "2025-12-12", 1000, scheduled=False),
    ]


@pytest.fixture
def zero_apr_loan() -> Loan:
    return make_loan(
        OriginalPrincipal=1200,
        APR=0,
        TermMonths=12,
        OriginationDate="2024-01-01",
        NextPaymentDate="2024-02-01",
        GraceDays=0,
    )


@pytest.fixture
def standard_mortgage() -> Loan:
    """$100k at 6 % over 30 years, first due 2024-02-01."""
    return make_loan(
        OriginalPrincipal=100000,
        APR=0.06,
        OriginationDate="2024-01-01",
        NextPaymentDate="2024-02-01",
        GraceDays=10,
    )


@pytest.fixture
def credit_line() -> Loan:
    return make_loan(
        id=3,
        LoanType="Revolving LOC",
        OriginalPrincipal=10000,
        APR=0.12,
        TermMonths=120,
        OriginationDate="2024-01-01",
        NextPaymentDate="2024-02-01",
        GraceDays=5,
    )


@pytest.fixture
def sample_state_record():
    return {
        "loans": [
            {
                "id": 1,
                "LoanID": "LN-0100",
                "BorrowerName": "Sample",
                "OriginalPrincipal": 332000,
                "APR": 0.065,
                "TermMonths": 360,
                "PaymentFrequency": "Monthly",
                "LoanType": "Mortgage",
                "OriginationDate": "2025-09-10",
                "NextPaymentDate": "2025-10-10",
                "GraceDays": 15,
                "EscrowMonthly": 0,
            }
        ],
        "payments": [
            {"id": 1, "LoanRef": 1, "PaymentDate": "2025-10-06", "Amount": 2098.47, "IsScheduledInstallment": True, "Method": "ACH"},
            {"id": 2, "LoanRef": 1, "PaymentDate": "2025-11-01", "Amount": 2098.47, "IsScheduledInstallment": True},
        ],
        "draws": [],
        "selectedId": 1,
    }

