"""Manager payment dashboard: month overview, member status and punctuality."""

from __future__ import annotations

import asyncio
import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Literal

from billkhata.application.notifications import NotificationSink, Toast
from billkhata.domain.bills import (
    MemberPaymentRow,
    PaymentOverview,
    bill_progress,
    member_payment_rows,
    payment_overview,
)
from billkhata.domain.models import ZERO, Bill, Member
from billkhata.domain.periods import PeriodKey, bills_in_month
from billkhata.domain.punctuality import DEFAULT_RANGE, Punctuality, PunctualityRange, punctuality
from billkhata.runtime.api_client import ApiError, KhataApiClient
from billkhata.runtime.logging import get_logger

logger = get_logger(__name__)

DashboardStatus = Literal["ok", "forbidden", "error"]
ShareMark = Literal["paid", "pending", "none"]


@dataclass(frozen=True)
class BillDetailRow:
    """One bill with each member's share state, in member order."""

    bill_id: str
    title: str
    amount: Decimal
    split: Decimal
    due_date: dt.datetime | None
    marks: tuple[ShareMark, ...]
    progress: int


@dataclass(frozen=True)
class PaymentDashboardRequest:
    khata_id: str
    period: PeriodKey
    window: PunctualityRange = DEFAULT_RANGE
    now: dt.datetime | None = None


@dataclass(frozen=True)
class PaymentDashboardResult:
    status: DashboardStatus
    overview: PaymentOverview | None = None
    members: list[MemberPaymentRow] = field(default_factory=list)
    bills: list[BillDetailRow] = field(default_factory=list)
    punctuality: list[Punctuality] = field(default_factory=list)
    error: str | None = None


def bill_detail_rows(bills: list[Bill], members: list[Member]) -> list[BillDetailRow]:
    rows: list[BillDetailRow] = []
    for bill in bills:
        marks: list[ShareMark] = []
        for member in members:
            share = bill.share_for(member.id)
            if share is None:
                marks.append("none")
            elif share.status == "Paid":
                marks.append("paid")
            else:
                marks.append("pending")
        rows.append(
            BillDetailRow(
                bill_id=bill.id,
                title=bill.title,
                amount=bill.total_amount,
                split=bill.shares[0].amount if bill.shares else ZERO,
                due_date=bill.due_date,
                marks=tuple(marks),
                progress=bill_progress(bill),
            )
        )
    return rows


async def run_payment_dashboard(
    client: KhataApiClient,
    request: PaymentDashboardRequest,
    current_user: Member,
    notifications: NotificationSink,
) -> PaymentDashboardResult:
    """Build the dashboard for managers; members get ``forbidden``."""
    if not current_user.is_manager():
        return PaymentDashboardResult(status="forbidden", error="This page is only available for managers.")

    try:
        bills, members = await asyncio.gather(
            client.get_bills(request.khata_id),
            client.get_members(request.khata_id),
        )
    except ApiError as e:
        logger.error("Error fetching payment data: %s", e)
        notifications.add_toast(Toast("error", "Error", "Failed to load payment data"))
        return PaymentDashboardResult(status="error", error=str(e))

    now = request.now or dt.datetime.now()
    monthly = bills_in_month(bills, request.period.start)
    return PaymentDashboardResult(
        status="ok",
        overview=payment_overview(monthly),
        members=member_payment_rows(monthly, members),
        bills=bill_detail_rows(monthly, members),
        punctuality=punctuality(bills, members, request.window, now),
    )
