"""Fund totals, refund/due balances and the monthly summary."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

from billkhata.domain.bills import member_bill_totals, room_bill_totals
from billkhata.domain.meals import meal_rate, meal_takers, total_meal_count
from billkhata.domain.models import (
    ZERO,
    Bill,
    Deposit,
    Expense,
    MealRecord,
    Member,
    MemberSummary,
    MonthlySummary,
)

BalanceLabel = Literal["Refund", "Due"]


@dataclass(frozen=True)
class FundBalance:
    """A member's standing against the meal fund."""

    member_id: str
    member_name: str
    deposits: Decimal
    meals: Decimal
    meal_cost: Decimal
    bill_payments: Decimal
    balance: Decimal


def approved_total(records: Iterable[Deposit] | Iterable[Expense], member_id: str | None = None) -> Decimal:
    """Sum of Approved amounts, optionally for one member."""
    total = ZERO
    for record in records:
        if record.status != "Approved":
            continue
        if member_id is not None and record.user_id != member_id:
            continue
        total += record.amount
    return total


def shopping_cost(expenses: Iterable[Expense]) -> Decimal:
    """Approved expenses that count toward meal cost (bill payments excluded)."""
    return approved_total(expense for expense in expenses if expense.category == "Shopping")


def refund_or_due(deposits: Decimal, meal_count: Decimal, rate: Decimal) -> Decimal:
    """Positive: the room owes the member. Negative: the member owes the room."""
    return deposits - meal_count * rate


def balance_label(value: Decimal) -> BalanceLabel:
    return "Refund" if value >= 0 else "Due"


def monthly_summary(
    bills: Sequence[Bill],
    meals: Sequence[MealRecord],
    deposits: Sequence[Deposit],
    expenses: Sequence[Expense],
) -> MonthlySummary:
    """Room-wide roll-up for one period; inputs are already filtered to it."""
    bill_totals = room_bill_totals(bills)
    total_deposits = approved_total(deposits)
    total_meal_cost = approved_total(expenses)
    total_meals = total_meal_count(meals)
    maximum, minimum = meal_takers(meals)
    return MonthlySummary(
        total_bills=bill_totals.total_bills,
        total_paid=bill_totals.shares.paid,
        total_pending=bill_totals.shares.pending,
        total_unpaid=bill_totals.shares.unpaid,
        total_deposits=total_deposits,
        total_meal_cost=total_meal_cost,
        meal_rate=meal_rate(total_meal_cost, total_meals),
        total_due=total_deposits - total_meal_cost,
        total_meals=total_meals,
        max_meal_taker=maximum,
        min_meal_taker=minimum,
    )


def member_summary(
    member: Member,
    bills: Sequence[Bill],
    meals: Sequence[MealRecord],
    deposits: Sequence[Deposit],
    rate: Decimal,
) -> MemberSummary:
    bill_totals = member_bill_totals(bills, member.id)
    meals_taken = total_meal_count(meals, member.id)
    member_deposits = approved_total(deposits, member.id)
    return MemberSummary(
        member_id=member.id,
        member_name=member.name,
        bills_due=bill_totals.bills_due,
        paid=bill_totals.paid,
        pending=bill_totals.pending,
        unpaid=bill_totals.unpaid,
        total_meals=meals_taken,
        deposits=member_deposits,
        refund_or_due=refund_or_due(member_deposits, meals_taken, rate),
    )


def member_breakdown(
    members: Iterable[Member],
    bills: Sequence[Bill],
    meals: Sequence[MealRecord],
    deposits: Sequence[Deposit],
    rate: Decimal,
) -> list[MemberSummary]:
    return [member_summary(member, bills, meals, deposits, rate) for member in members]


def fund_balances(
    members: Iterable[Member],
    meals: Sequence[MealRecord],
    deposits: Sequence[Deposit],
    expenses: Sequence[Expense],
) -> list[FundBalance]:
    """
    Per-member balance against the shared fund.

    The rate here uses shopping expenses only; bill shares paid out of the
    fund are charged to the member who paid them.
    """
    rate = meal_rate(shopping_cost(expenses), total_meal_count(meals))
    balances: list[FundBalance] = []
    for member in members:
        member_deposits = approved_total(deposits, member.id)
        meals_taken = total_meal_count(meals, member.id)
        bill_payments = approved_total(
            (expense for expense in expenses if expense.category == "BillPayment"),
            member.id,
        )
        meal_cost = meals_taken * rate
        balances.append(
            FundBalance(
                member_id=member.id,
                member_name=member.name,
                deposits=member_deposits,
                meals=meals_taken,
                meal_cost=meal_cost,
                bill_payments=bill_payments,
                balance=member_deposits - meal_cost - bill_payments,
            )
        )
    return balances
