"""Data models for room finances: bills, meals, deposits, expenses and members."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Literal

PaymentStatus = Literal["Unpaid", "Pending Approval", "Paid", "Overdue"]
ApprovalStatus = Literal["Pending", "Approved", "Rejected"]
Role = Literal["Member", "Manager", "MasterManager"]
RoomStatus = Literal["NoRoom", "Pending", "Approved"]
ExpenseCategory = Literal["Shopping", "BillPayment"]

PAYMENT_STATUSES: tuple[PaymentStatus, ...] = ("Unpaid", "Pending Approval", "Paid", "Overdue")
APPROVAL_STATUSES: tuple[ApprovalStatus, ...] = ("Pending", "Approved", "Rejected")
ROLES: tuple[Role, ...] = ("Member", "Manager", "MasterManager")
ROOM_STATUSES: tuple[RoomStatus, ...] = ("NoRoom", "Pending", "Approved")

ZERO = Decimal("0")


@dataclass(frozen=True)
class BillShare:
    """One member's portion of a bill."""

    user_id: str
    user_name: str
    amount: Decimal
    status: PaymentStatus = "Unpaid"
    paid_from_meal_fund: bool = False

    def display_status(self, due_date: dt.datetime | None, now: dt.datetime) -> PaymentStatus:
        # Overdue is never stored; it is how an unpaid share looks after the due date.
        if self.status != "Paid" and due_date is not None and due_date < now:
            return "Overdue"
        return self.status


@dataclass(frozen=True)
class Bill:
    """A room bill split into per-member shares."""

    id: str
    khata_id: str
    title: str
    total_amount: Decimal
    due_date: dt.datetime | None
    category: str
    shares: tuple[BillShare, ...] = ()
    description: str = ""
    created_by: str | None = None

    def share_for(self, member_id: str | None) -> BillShare | None:
        if member_id is None:
            return None
        for share in self.shares:
            if share.user_id == member_id:
                return share
        return None

    def balance_gap(self) -> Decimal:
        """Difference between the bill total and the sum of its shares."""
        return self.total_amount - sum((s.amount for s in self.shares), ZERO)


@dataclass(frozen=True)
class MealRecord:
    """Meals one member took on one day (quantities in 0.25 steps)."""

    user_id: str | None
    date: dt.datetime | None
    breakfast: Decimal = ZERO
    lunch: Decimal = ZERO
    dinner: Decimal = ZERO
    user_name: str = "Unknown"
    id: str | None = None

    @property
    def total_meals(self) -> Decimal:
        return self.breakfast + self.lunch + self.dinner


@dataclass(frozen=True)
class MealFinalization:
    """Per-day lock set by a manager; member edits are refused afterwards."""

    date: str
    is_finalized: bool
    finalized_by: str | None = None


@dataclass(frozen=True)
class Deposit:
    """Money a member put into the room fund."""

    id: str
    user_id: str | None
    amount: Decimal
    payment_method: str
    status: ApprovalStatus
    created_at: dt.datetime | None
    transaction_id: str | None = None
    screenshot_url: str | None = None
    user_name: str = "Unknown"


@dataclass(frozen=True)
class Expense:
    """A shopping expense (or a bill paid out of the meal fund)."""

    id: str
    user_id: str | None
    amount: Decimal
    items: str
    status: ApprovalStatus
    created_at: dt.datetime | None
    notes: str | None = None
    receipt_url: str | None = None
    category: ExpenseCategory = "Shopping"
    user_name: str = "Unknown"


@dataclass(frozen=True)
class Member:
    """A room member as returned by the members endpoint."""

    id: str
    name: str
    role: Role = "Member"
    room_status: RoomStatus = "Approved"
    khata_id: str | None = None
    email: str | None = None
    phone: str | None = None
    whatsapp: str | None = None
    facebook: str | None = None

    def is_manager(self) -> bool:
        return self.role in ("Manager", "MasterManager")

    def can_manage_members(self) -> bool:
        return self.role == "MasterManager"


@dataclass(frozen=True)
class MealTaker:
    name: str
    count: Decimal


NO_MEAL_TAKER = MealTaker(name="N/A", count=ZERO)


@dataclass(frozen=True)
class MemberSummary:
    """Per-member month roll-up. ``refund_or_due`` > 0 means the room owes the member."""

    member_id: str
    member_name: str
    bills_due: Decimal
    paid: Decimal
    pending: Decimal
    unpaid: Decimal
    total_meals: Decimal
    deposits: Decimal
    refund_or_due: Decimal


@dataclass(frozen=True)
class MonthlySummary:
    """Room-wide month roll-up."""

    total_bills: Decimal
    total_paid: Decimal
    total_pending: Decimal
    total_unpaid: Decimal
    total_deposits: Decimal
    total_meal_cost: Decimal
    meal_rate: Decimal
    total_due: Decimal
    total_meals: Decimal
    max_meal_taker: MealTaker = field(default=NO_MEAL_TAKER)
    min_meal_taker: MealTaker = field(default=NO_MEAL_TAKER)
