"""Bill workflows: create with a split, edit an existing split, mark a share paid."""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Literal

from billkhata.application.notifications import NotificationSink, Toast
from billkhata.domain.models import Bill, BillShare, Member
from billkhata.domain.money import round_money
from billkhata.domain.records import serialize_share
from billkhata.domain.splits import SplitMismatchError, SplitMode, build_shares, resplit_shares
from billkhata.runtime.api_client import ApiError, KhataApiClient
from billkhata.runtime.logging import get_logger

logger = get_logger(__name__)

BillWorkflowStatus = Literal["ok", "invalid", "forbidden", "error"]

DEFAULT_CATEGORY = "Rent"


@dataclass(frozen=True)
class CreateBillRequest:
    """Inputs for creating a split bill."""

    title: str
    total_amount: Decimal | None
    due_date: dt.date | None
    members: Sequence[Member]
    selected_member_ids: Sequence[str]
    split_mode: SplitMode = "EQUAL"
    custom_amounts: Mapping[str, Decimal] = field(default_factory=dict)
    category: str = DEFAULT_CATEGORY
    description: str = ""


@dataclass(frozen=True)
class EditBillRequest:
    """Inputs for editing an existing bill's details and split."""

    bill: Bill
    title: str
    total_amount: Decimal
    due_date: dt.datetime | None
    split_mode: SplitMode
    custom_amounts: Mapping[str, Decimal] = field(default_factory=dict)
    description: str = ""


@dataclass(frozen=True)
class BillWorkflowResult:
    status: BillWorkflowStatus
    shares: list[BillShare] = field(default_factory=list)
    bill: Bill | None = None
    error: str | None = None


def _invalid(notifications: NotificationSink, toast: Toast) -> BillWorkflowResult:
    notifications.add_toast(toast)
    return BillWorkflowResult(status="invalid", error=toast.message)


async def run_create_bill(
    client: KhataApiClient,
    request: CreateBillRequest,
    current_user: Member,
    notifications: NotificationSink,
) -> BillWorkflowResult:
    """Validate the split locally, then create the bill. No API call is made for invalid input."""
    if not current_user.is_manager():
        notifications.add_toast(Toast("error", "Error", "Only managers can create bills."))
        return BillWorkflowResult(status="forbidden")

    total = request.total_amount
    if (
        not current_user.khata_id
        or not request.title.strip()
        or total is None
        or not total.is_finite()
        or total <= 0
        or request.due_date is None
    ):
        return _invalid(notifications, Toast("error", "Error", "Please fill in all required fields"))

    if not request.selected_member_ids:
        return _invalid(notifications, Toast("warning", "Start", "Select at least one member to split the bill."))

    names = {member.id: member.name for member in request.members}
    selected = [(member_id, names.get(member_id, "Unknown")) for member_id in request.selected_member_ids]
    try:
        shares = build_shares(request.split_mode, total, selected, request.custom_amounts)
    except SplitMismatchError as e:
        return _invalid(notifications, Toast("error", "Mismatch", str(e)))

    payload = {
        "title": request.title.strip(),
        "category": request.category,
        "totalAmount": float(total),
        "dueDate": request.due_date.isoformat(),
        "description": request.description,
        "khataId": current_user.khata_id,
        "shares": [serialize_share(share) for share in shares],
    }
    try:
        await client.create_bill(payload)
    except ApiError as e:
        notifications.add_toast(Toast("error", "Error", "Failed to create bill"))
        return BillWorkflowResult(status="error", shares=shares, error=str(e))

    logger.info("Created bill %r split %s ways", request.title, len(shares))
    notifications.add_toast(Toast("success", "Success", "Bill created successfully!"))
    return BillWorkflowResult(status="ok", shares=shares)


async def run_edit_bill(
    client: KhataApiClient,
    request: EditBillRequest,
    current_user: Member,
    notifications: NotificationSink,
) -> BillWorkflowResult:
    """Re-split an existing bill among its current members and save it."""
    if not current_user.is_manager():
        notifications.add_toast(Toast("error", "Error", "Only managers can edit bills."))
        return BillWorkflowResult(status="forbidden")

    try:
        shares = resplit_shares(request.bill.shares, request.split_mode, request.total_amount, request.custom_amounts)
    except SplitMismatchError:
        return _invalid(
            notifications,
            Toast("error", "Mismatch", "Custom split amounts must add up to the total bill amount."),
        )

    updated = replace(
        request.bill,
        title=request.title,
        total_amount=round_money(request.total_amount),
        due_date=request.due_date,
        description=request.description,
        shares=tuple(shares),
    )
    try:
        saved = await client.update_bill(updated)
    except ApiError as e:
        notifications.add_toast(Toast("error", "Error", e.message))
        return BillWorkflowResult(status="error", shares=shares, error=str(e))

    notifications.add_toast(Toast("success", "Success", "Bill updated successfully"))
    return BillWorkflowResult(status="ok", shares=shares, bill=saved or updated)


async def run_mark_share_paid(
    client: KhataApiClient,
    bill: Bill,
    current_user: Member,
    notifications: NotificationSink,
) -> BillWorkflowResult:
    """A member reports paying their share; it waits in Pending Approval for a manager."""
    share = bill.share_for(current_user.id)
    if share is None or share.status not in ("Unpaid", "Overdue"):
        return _invalid(notifications, Toast("warning", "Nothing to pay", "This bill has no unpaid share for you."))

    try:
        updated = await client.update_share_status(bill.id, current_user.id, "Pending Approval")
    except ApiError as e:
        notifications.add_toast(Toast("error", "Error", "Failed to update payment status"))
        return BillWorkflowResult(status="error", error=str(e))
    if updated is None:
        notifications.add_toast(Toast("error", "Error", "Failed to update payment status"))
        return BillWorkflowResult(status="error", error="No bill returned")

    notifications.add_toast(Toast("success", "Submitted", "Payment submitted for approval."))
    return BillWorkflowResult(status="ok", bill=updated, shares=list(updated.shares))
