"""Tests for meal counts, meal rate, refund/due and the monthly summary."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest

from billkhata.domain.funds import (
    approved_total,
    balance_label,
    fund_balances,
    member_breakdown,
    monthly_summary,
    refund_or_due,
    shopping_cost,
)
from billkhata.domain.meals import (
    MealQuantityError,
    day_breakdown,
    meal_rate,
    meal_takers,
    meals_on_day,
    total_meal_count,
    validate_meal_quantity,
)
from billkhata.domain.models import (
    ApprovalStatus,
    Bill,
    BillShare,
    Deposit,
    Expense,
    ExpenseCategory,
    MealRecord,
    Member,
)
from billkhata.domain.money import format_taka, round_money

MARCH = dt.datetime(2024, 3, 5)


def _meal(user_id: str, name: str, lunch: str, dinner: str = "0", day: int = 5) -> MealRecord:
    return MealRecord(
        user_id=user_id,
        user_name=name,
        date=dt.datetime(2024, 3, day),
        lunch=Decimal(lunch),
        dinner=Decimal(dinner),
    )


def _deposit(user_id: str, amount: str, status: ApprovalStatus = "Approved") -> Deposit:
    return Deposit(
        id=f"d-{user_id}-{amount}",
        user_id=user_id,
        amount=Decimal(amount),
        payment_method="bKash",
        status=status,
        created_at=MARCH,
    )


def _expense(
    amount: str,
    status: ApprovalStatus = "Approved",
    category: ExpenseCategory = "Shopping",
    user_id: str = "u1",
) -> Expense:
    return Expense(
        id=f"e-{amount}-{category}",
        user_id=user_id,
        amount=Decimal(amount),
        items="rice, lentils",
        status=status,
        created_at=MARCH,
        category=category,
    )


def test_meal_rate_scenario() -> None:
    meals = [_meal("u1", "Karim", "1", "1"), _meal("u2", "Rahim", "2", "1")]
    assert total_meal_count(meals) == Decimal("5")
    rate = meal_rate(approved_total([_expense("200"), _expense("27.5")]), total_meal_count(meals))
    assert round_money(rate) == Decimal("45.50")
    assert format_taka(rate) == "৳45.50"


def test_meal_rate_is_zero_without_meals() -> None:
    for cost in ("0", "227.5", "100000"):
        assert meal_rate(Decimal(cost), Decimal("0")) == 0


def test_refund_or_due_scenarios() -> None:
    rate = Decimal("60")
    refund = refund_or_due(Decimal("1500"), Decimal("20"), rate)
    due = refund_or_due(Decimal("800"), Decimal("20"), rate)
    assert refund == Decimal("300")
    assert balance_label(refund) == "Refund"
    assert due == Decimal("-400")
    assert balance_label(due) == "Due"
    assert balance_label(Decimal("0")) == "Refund"


def test_approved_total_ignores_pending_and_rejected() -> None:
    deposits = [_deposit("u1", "500"), _deposit("u1", "300", "Pending"), _deposit("u2", "200", "Rejected")]
    assert approved_total(deposits) == Decimal("500")
    assert approved_total(deposits, "u2") == 0


def test_shopping_cost_excludes_bill_payments() -> None:
    expenses = [_expense("400"), _expense("250", category="BillPayment"), _expense("99", status="Pending")]
    assert shopping_cost(expenses) == Decimal("400")


def test_meal_takers_ties_go_to_first_seen() -> None:
    meals = [
        _meal("u1", "Karim", "2"),
        _meal("u2", "Rahim", "1", "1"),
        _meal("u3", "Jamal", "1"),
        _meal("u4", "Nasir", "0.5", "0.5"),
    ]
    maximum, minimum = meal_takers(meals)
    assert (maximum.name, maximum.count) == ("Karim", Decimal("2"))
    assert (minimum.name, minimum.count) == ("Jamal", Decimal("1"))


def test_meal_takers_default_to_na() -> None:
    maximum, minimum = meal_takers([])
    assert maximum.name == minimum.name == "N/A"
    assert maximum.count == 0


@pytest.mark.parametrize("value", ["0", "0.25", "1.75", "2"])
def test_validate_meal_quantity_accepts_quarter_steps(value: str) -> None:
    assert validate_meal_quantity(Decimal(value)) == Decimal(value)


@pytest.mark.parametrize("value", ["-0.25", "2.25", "0.3", "NaN"])
def test_validate_meal_quantity_rejects_invalid(value: str) -> None:
    with pytest.raises(MealQuantityError):
        validate_meal_quantity(Decimal(value), "lunch")


def test_day_breakdown() -> None:
    meals = [
        _meal("u1", "Karim", "1", "0.5", day=5),
        _meal("u2", "Rahim", "0", "1", day=5),
        _meal("u1", "Karim", "1", day=6),
    ]
    today = meals_on_day(meals, dt.date(2024, 3, 5))
    breakdown = day_breakdown(today)
    assert breakdown.lunch == (("Karim", Decimal("1")),)
    assert breakdown.dinner == (("Karim", Decimal("0.5")), ("Rahim", Decimal("1")))
    assert breakdown.breakfast == ()
    assert breakdown.total == Decimal("2.5")


def test_monthly_summary_and_member_breakdown() -> None:
    bills = [
        Bill(
            id="b1",
            khata_id="k1",
            title="Rent",
            total_amount=Decimal("900"),
            due_date=MARCH,
            category="Rent",
            shares=(
                BillShare("u1", "Karim", Decimal("450"), "Paid"),
                BillShare("u2", "Rahim", Decimal("450"), "Pending Approval"),
            ),
        )
    ]
    meals = [_meal("u1", "Karim", "10", "10"), _meal("u2", "Rahim", "10", "10")]
    deposits = [_deposit("u1", "1500"), _deposit("u2", "800"), _deposit("u2", "999", "Pending")]
    expenses = [_expense("2400")]

    summary = monthly_summary(bills, meals, deposits, expenses)
    assert summary.total_bills == Decimal("900")
    assert summary.total_paid == Decimal("450")
    assert summary.total_pending == Decimal("450")
    assert summary.total_unpaid == 0
    assert summary.total_deposits == Decimal("2300")
    assert summary.total_meal_cost == Decimal("2400")
    assert summary.meal_rate == Decimal("60")
    assert summary.total_due == Decimal("-100")
    assert summary.total_meals == Decimal("40")

    members = [Member(id="u1", name="Karim"), Member(id="u2", name="Rahim")]
    rows = member_breakdown(members, bills, meals, deposits, summary.meal_rate)
    assert [(row.member_id, row.refund_or_due) for row in rows] == [("u1", Decimal("300")), ("u2", Decimal("-400"))]
    assert rows[0].bills_due == rows[0].paid + rows[0].pending + rows[0].unpaid == Decimal("450")


def test_aggregation_is_idempotent() -> None:
    meals = (_meal("u1", "Karim", "2"), _meal("u2", "Rahim", "1"))
    deposits = (_deposit("u1", "300"),)
    expenses = (_expense("90"),)
    first = monthly_summary((), meals, deposits, expenses)
    second = monthly_summary((), meals, deposits, expenses)
    assert first == second


def test_fund_balances_charge_bill_payments_to_the_payer() -> None:
    members = [Member(id="u1", name="Karim"), Member(id="u2", name="Rahim")]
    meals = [_meal("u1", "Karim", "5", "5"), _meal("u2", "Rahim", "5", "5")]
    deposits = [_deposit("u1", "1000"), _deposit("u2", "1000")]
    expenses = [_expense("1000"), _expense("300", category="BillPayment", user_id="u2")]

    balances = {row.member_id: row for row in fund_balances(members, meals, deposits, expenses)}
    assert balances["u1"].meal_cost == Decimal("500")
    assert balances["u1"].balance == Decimal("500")
    assert balances["u2"].bill_payments == Decimal("300")
    assert balances["u2"].balance == Decimal("200")
