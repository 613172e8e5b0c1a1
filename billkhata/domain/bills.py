"""Bill status roll-ups and list classification."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

from billkhata.domain.models import ZERO, Bill, BillShare, Member
from billkhata.domain.money import percent

BillListStatus = Literal["Pending Payment", "Approved", "Overdue"]
BillListFilter = Literal["All", "Pending Payment", "Approved", "Overdue"]
BILL_LIST_FILTERS: tuple[BillListFilter, ...] = ("All", "Pending Payment", "Approved", "Overdue")


@dataclass(frozen=True)
class BillTotals:
    """Share amounts bucketed by status. ``bills_due`` is always the sum of the three buckets."""

    paid: Decimal = ZERO
    pending: Decimal = ZERO
    unpaid: Decimal = ZERO

    @property
    def bills_due(self) -> Decimal:
        return self.paid + self.pending + self.unpaid

    def add(self, share: BillShare) -> BillTotals:
        if share.status == "Paid":
            return BillTotals(self.paid + share.amount, self.pending, self.unpaid)
        if share.status == "Pending Approval":
            return BillTotals(self.paid, self.pending + share.amount, self.unpaid)
        return BillTotals(self.paid, self.pending, self.unpaid + share.amount)


@dataclass(frozen=True)
class RoomBillTotals:
    total_bills: Decimal
    shares: BillTotals


@dataclass(frozen=True)
class PaymentOverview:
    total_amount: Decimal
    total_bills: int
    fully_paid: int
    pending: int
    paid_percent: int
    pending_percent: int


@dataclass(frozen=True)
class MemberPaymentRow:
    member_id: str
    member_name: str
    total_due: Decimal
    paid: Decimal
    pending: Decimal
    pending_count: int

    @property
    def all_paid(self) -> bool:
        return self.pending_count == 0


@dataclass(frozen=True)
class PendingSharePayment:
    """A share a member marked as paid, waiting for a manager."""

    bill: Bill
    share: BillShare

    @property
    def key(self) -> tuple[str, str]:
        return (self.bill.id, self.share.user_id)


def member_bill_totals(bills: Iterable[Bill], member_id: str | None) -> BillTotals:
    """Sum one member's share amounts across ``bills`` by status."""
    totals = BillTotals()
    if member_id is None:
        return totals
    for bill in bills:
        for share in bill.shares:
            if share.user_id == member_id:
                totals = totals.add(share)
    return totals


def room_bill_totals(bills: Iterable[Bill]) -> RoomBillTotals:
    total_bills = ZERO
    totals = BillTotals()
    for bill in bills:
        total_bills += bill.total_amount
        for share in bill.shares:
            totals = totals.add(share)
    return RoomBillTotals(total_bills=total_bills, shares=totals)


def is_fully_paid(bill: Bill) -> bool:
    return all(share.status == "Paid" for share in bill.shares)


def is_overdue(bill: Bill, now: dt.datetime) -> bool:
    if bill.due_date is None or bill.due_date >= now:
        return False
    return any(share.status != "Paid" for share in bill.shares)


def classify_bill(bill: Bill, now: dt.datetime) -> BillListStatus:
    """
    Status used by the manager's "All Bills" filter.

    A bill with no shares has nothing left to pay, so it is never overdue and
    counts as Approved.
    """
    if is_overdue(bill, now):
        return "Overdue"
    if is_fully_paid(bill):
        return "Approved"
    return "Pending Payment"


def filter_bills_by_status(bills: Iterable[Bill], status: BillListFilter, now: dt.datetime) -> list[Bill]:
    if status == "All":
        return list(bills)
    return [bill for bill in bills if classify_bill(bill, now) == status]


def bill_progress(bill: Bill) -> int:
    """Percent of shares paid; 0 for a bill without shares."""
    paid = sum(1 for share in bill.shares if share.status == "Paid")
    return percent(paid, len(bill.shares))


def payment_overview(bills: Sequence[Bill]) -> PaymentOverview:
    total_bills = len(bills)
    fully_paid = sum(1 for bill in bills if is_fully_paid(bill))
    pending = total_bills - fully_paid
    return PaymentOverview(
        total_amount=sum((bill.total_amount for bill in bills), ZERO),
        total_bills=total_bills,
        fully_paid=fully_paid,
        pending=pending,
        paid_percent=percent(fully_paid, total_bills),
        pending_percent=percent(pending, total_bills),
    )


def member_payment_rows(bills: Sequence[Bill], members: Iterable[Member]) -> list[MemberPaymentRow]:
    rows: list[MemberPaymentRow] = []
    for member in members:
        totals = BillTotals()
        pending_count = 0
        for bill in bills:
            share = bill.share_for(member.id)
            if share is None:
                continue
            totals = totals.add(share)
            if share.status != "Paid":
                pending_count += 1
        rows.append(
            MemberPaymentRow(
                member_id=member.id,
                member_name=member.name,
                total_due=totals.bills_due,
                paid=totals.paid,
                pending=totals.pending + totals.unpaid,
                pending_count=pending_count,
            )
        )
    return rows


def pending_share_approvals(bills: Iterable[Bill]) -> list[PendingSharePayment]:
    return [
        PendingSharePayment(bill=bill, share=share)
        for bill in bills
        for share in bill.shares
        if share.status == "Pending Approval"
    ]


def bill_balance_warning(bill: Bill, tolerance: Decimal = Decimal("1")) -> bool:
    """True when the shares do not add up to the bill total within ``tolerance``."""
    return abs(bill.balance_gap()) > tolerance


def due_date_status(due: dt.date, today: dt.date) -> tuple[str, bool]:
    """Human text for a due date and whether it is overdue."""
    if isinstance(due, dt.datetime):
        due = due.date()
    if isinstance(today, dt.datetime):
        today = today.date()
    diff_days = (due - today).days
    if diff_days < 0:
        return f"Overdue by {abs(diff_days)} day(s)", True
    if diff_days == 0:
        return "Due today", False
    return f"{diff_days} day(s) left", False
