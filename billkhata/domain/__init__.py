"""Core domain models and pure derivations for room finances.

This package provides:
- Bill, BillShare, MealRecord, Deposit, Expense, Member: records from the API
- MemberSummary, MonthlySummary: derived month roll-ups (never persisted)

Usage:
    from billkhata.domain import Bill, MonthlySummary
"""

from billkhata.domain.models import (
    Bill,
    BillShare,
    Deposit,
    Expense,
    MealFinalization,
    MealRecord,
    MealTaker,
    Member,
    MemberSummary,
    MonthlySummary,
)

__all__ = [
    "Bill",
    "BillShare",
    "Deposit",
    "Expense",
    "MealFinalization",
    "MealRecord",
    "MealTaker",
    "Member",
    "MemberSummary",
    "MonthlySummary",
]
