"""Fixed account slots and their seed records.

The seed table is only used when no persisted store exists yet.
"""

import copy
from typing import Any


# Slot ids in display order
SLOT_IDS = (
    "juliePersonalFinances",
    "davidPersonalFinances",
    "llcBank",
    "llcSavings",
    "helocLoan",
    "memberLoan",
    "mortgageLoan",
    "propertyAsset",
    "rent",
)

SLOT_KINDS = {
    "juliePersonalFinances": "personal",
    "davidPersonalFinances": "personal",
    "llcBank": "asset",
    "llcSavings": "asset",
    "helocLoan": "liability",
    "memberLoan": "liability",
    "mortgageLoan": "liability",
    "propertyAsset": "asset",
    "rent": "revenue",
}


def _tx(date: str, description: str, debit: float, credit: float) -> dict[str, Any]:
    return {"date": date, "description": description, "debit": debit, "credit": credit}


_SEED_ACCOUNTS: dict[str, dict[str, Any]] = {
    "juliePersonalFinances": {
        "name": "Julie's Finances",
        "subtitle": "Transactions related to the LLC.",
        "balance": None,
        "type": "personal",
        "transactions": [
            _tx("2025-01-15", "Loan to LLC (from HELOC)", 0, 50000),
            _tx("2025-03-05", "Loan to LLC (Roof Share)", 0, 7500),
            _tx("2025-04-05", "Distribution from LLC", 1000, 0),
            _tx("2025-04-06", "Payment to HELOC Lender", 0, 500),
            _tx("2025-04-06", "Share of Mortgage Payment", 0, 750),
        ],
    },
    "davidPersonalFinances": {
        "name": "David's Finances",
        "subtitle": "Transactions related to the LLC.",
        "balance": None,
        "type": "personal",
        "transactions": [
            _tx("2025-03-05", "Loan to LLC (Roof Share)", 0, 7500),
            _tx("2025-04-05", "Distribution from LLC", 1000, 0),
            _tx("2025-04-06", "Share of Mortgage Payment", 0, 750),
        ],
    },
    "llcBank": {
        "name": "LLC Checking",
        "subtitle": "Central hub for all business income and expenses.",
        "balance": 31500,
        "type": "asset",
        "transactions": [
            _tx("2025-01-15", "Loan from Julie (HELOC)", 50000, 0),
            _tx("2025-03-05", "Loan from Members (Roof)", 15000, 0),
            _tx("2025-03-10", "Payment to Roofer", 0, 15000),
            _tx("2025-04-01", "Rental Income Received", 3500, 0),
            _tx("2025-04-05", "Distribution to Members", 0, 2000),
        ],
    },
    "llcSavings": {
        "name": "LLC Savings",
        "subtitle": "Reserve funds for future capital expenditures.",
        "balance": 0,
        "type": "asset",
        "transactions": [
            _tx("2025-05-01", "Initial Transfer from Checking", 0, 0),
        ],
    },
    "helocLoan": {
        "name": "HELOC Loan",
        "subtitle": "Liability from Julie's HELOC for the down payment.",
        "balance": 50000,
        "type": "liability",
        "transactions": [
            _tx("2025-01-15", "Loan from Julie", 0, 50000),
        ],
        "financingTerms": {
            "principal": 50000,
            "interestRate": 6.5,
            "termYears": 15,
            "breakdown": {"Total": 50000, "Julie": 50000, "David": 0},
        },
    },
    "memberLoan": {
        "name": "Member Loan (Roof)",
        "subtitle": "A formal liability owed by the LLC to its members.",
        "balance": 15000,
        "type": "liability",
        "transactions": [
            _tx("2025-03-05", "Loan proceeds for roof", 0, 15000),
        ],
        "financingTerms": {
            "principal": 15000,
            "interestRate": 5.0,
            "termYears": 10,
            "breakdown": {"Total": 15000, "Julie": 7500, "David": 7500},
        },
    },
    "mortgageLoan": {
        "name": "672 Elm St. Mortgage",
        "subtitle": "Primary mortgage for the investment property.",
        "balance": 200000,
        "type": "liability",
        "transactions": [
            _tx("2025-01-20", "Initial Mortgage Loan", 0, 200000),
        ],
        "financingTerms": {
            "principal": 200000,
            "interestRate": 7.1,
            "termYears": 30,
        },
    },
    "propertyAsset": {
        "name": "672 Elm St",
        "subtitle": "The capitalized value of the building and improvements.",
        "balance": 265000,
        "type": "asset",
        "transactions": [
            _tx("2025-01-20", "Property Acquisition (Building Value)", 250000, 0),
            _tx("2025-03-10", "Capital Improvement (New Roof)", 15000, 0),
        ],
    },
    "rent": {
        "name": "Rent Roll",
        "subtitle": "Monthly rental income from all units.",
        "balance": None,
        "type": "revenue",
        "totalMonthlyRent": 5000,
        "transactions": [],
        "baseTenants": [
            {"id": 0, "floor": "1st Floor", "renter": "NA"},
            {"id": 1, "floor": "2nd Floor", "renter": "Gina"},
            {"id": 2, "floor": "2nd Floor", "renter": "ECC"},
            {"id": 3, "floor": "3rd Floor", "renter": "Timoth"},
            {"id": 4, "floor": "3rd Floor", "renter": "Angua"},
            {"id": 5, "floor": "Barn", "renter": "Steve"},
        ],
        "monthlyRecords": [
            {
                "month": "2025-08",
                "tenants": [
                    {"id": 0, "monthlyRent": "TBD", "due": 0, "received": 0},
                    {"id": 1, "monthlyRent": 1300, "due": 1300, "received": 1300},
                    {"id": 2, "monthlyRent": 1250, "due": 1250, "received": 1250},
                    {"id": 3, "monthlyRent": 1200, "due": 1200, "received": 0},
                    {"id": 4, "monthlyRent": 0, "due": 0, "received": 0},
                    {"id": 5, "monthlyRent": 1250, "due": 1250, "received": 1250},
                ],
            }
        ],
    },
}


def default_accounts() -> dict[str, dict[str, Any]]:
    """Return a fresh copy of the seed records for all slots."""
    return {slot_id: copy.deepcopy(_SEED_ACCOUNTS[slot_id]) for slot_id in SLOT_IDS}


def default_account(slot_id: str) -> dict[str, Any]:
    """Return a fresh copy of one slot's seed record."""
    return copy.deepcopy(_SEED_ACCOUNTS[slot_id])


def is_slot_id(value: object) -> bool:
    return isinstance(value, str) and value in SLOT_KINDS
