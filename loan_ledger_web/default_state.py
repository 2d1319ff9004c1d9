"""Sample servicing state seeded into an empty store."""

from __future__ import annotations

import copy
from typing import Any, Dict

DEFAULT_ADMIN_SETTINGS = {
    "graceDaysDefault": 5,
    "frequencies": ["Monthly", "Biweekly", "Weekly", "Quarterly", "Annual"],
}

DEFAULT_LOANS = [
    {
        "id": 1, "LoanID": "LN-0001", "BorrowerName": "Test Borrower", "LoanType": "Mortgage",
        "OriginalPrincipal": 100000, "OriginationDate": "2024-01-15", "TermMonths": 360, "APR": 0.065,
        "PaymentFrequency": "Monthly", "NextPaymentDate": "2024-02-15", "EscrowMonthly": 300,
        "GraceDays": 5, "Status": "Active", "Notes": "Sample row",
    },
    {
        "id": 2, "LoanID": "LN-0020", "BorrowerName": "James Garcia", "LoanType": "Mortgage",
        "OriginalPrincipal": 250000, "OriginationDate": "2023-06-01", "TermMonths": 180, "APR": 0.059,
        "PaymentFrequency": "Monthly", "NextPaymentDate": "2024-09-15", "EscrowMonthly": 450,
        "GraceDays": 7, "Status": "Active", "Notes": "Conventional",
    },
    {
        "id": 3, "LoanID": "LN-0042", "BorrowerName": "Avery Chen", "LoanType": "Revolving LOC",
        "OriginalPrincipal": 150000, "OriginationDate": "2022-11-10", "TermMonths": 120, "APR": 0.072,
        "PaymentFrequency": "Monthly", "NextPaymentDate": "2024-09-20", "EscrowMonthly": 0,
        "GraceDays": 5, "Status": "Active", "Notes": "Open draw period",
    },
    {
        "id": 4, "LoanID": "LN-0100", "BorrowerName": "LS", "LoanType": "Mortgage",
        "OriginalPrincipal": 332000, "OriginationDate": "2025-09-03", "TermMonths": 360, "APR": 0.065,
        "PaymentFrequency": "Monthly", "NextPaymentDate": "2025-10-03", "EscrowMonthly": 0,
        "GraceDays": 15, "Status": "Active", "Notes": "Fixed payment", "FixedPayment": True,
    },
]

DEFAULT_PAYMENTS = [
    {
        "id": 101, "LoanRef": 1, "PaymentID": "PMT-0001", "PaymentDate": "2024-02-15", "Amount": 700,
        "Method": "ACH", "Reference": "Sample", "IsScheduledInstallment": True,
    },
    {
        "id": 102, "LoanRef": 1, "PaymentID": "PMT-0002", "PaymentDate": "2024-03-15", "Amount": 700,
        "Method": "ACH", "Reference": "", "IsScheduledInstallment": True,
    },
    {
        "id": 201, "LoanRef": 2, "PaymentID": "PMT-1001", "PaymentDate": "2024-08-15", "Amount": 2100,
        "Method": "ACH", "Reference": "", "IsScheduledInstallment": True,
    },
]


def build_default_state() -> Dict[str, Any]:
    """Return a fresh copy of the sample state; portions are left to the ledger."""
    return copy.deepcopy(
        {
            "loans": DEFAULT_LOANS,
            "payments": DEFAULT_PAYMENTS,
            "draws": [],
            "selectedId": DEFAULT_LOANS[0]["id"],
            "admin": DEFAULT_ADMIN_SETTINGS,
        }
    )
