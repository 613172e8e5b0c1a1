"""Pending approvals: manager actions applied optimistically and rolled back on failure."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from billkhata.application.notifications import NotificationSink, Toast
from billkhata.domain.bills import PendingSharePayment, pending_share_approvals
from billkhata.domain.models import Deposit, Expense, Member
from billkhata.domain.optimistic import OptimisticUpdate
from billkhata.runtime.api_client import ApiError, KhataApiClient
from billkhata.runtime.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class ApprovalBoard:
    """
    Pending requests for one room as seen by a manager.

    Every action removes the item locally first, then calls the API. If the
    call raises or answers with nothing, the item is put back and an error
    toast is shown. An item that is no longer on the board cannot be acted on
    twice.
    """

    def __init__(self, client: KhataApiClient, current_user: Member, notifications: NotificationSink) -> None:
        self._client = client
        self._user = current_user
        self._notifications = notifications
        self.member_requests: list[Member] = []
        self.bill_payments: list[PendingSharePayment] = []
        self.expenses: list[Expense] = []
        self.deposits: list[Deposit] = []
        self.pending_count: int | None = None

    @property
    def khata_id(self) -> str | None:
        return self._user.khata_id

    def _allowed(self) -> bool:
        return self.khata_id is not None and self._user.is_manager()

    async def load(self) -> bool:
        """Fetch all four pending lists concurrently."""
        khata_id = self.khata_id
        if khata_id is None or not self._allowed():
            return False
        try:
            member_requests, bills, expenses, deposits = await asyncio.gather(
                self._client.get_pending_members(khata_id),
                self._client.get_bills(khata_id),
                self._client.get_expenses(khata_id, status="Pending"),
                self._client.get_deposits(khata_id, status="Pending"),
            )
        except ApiError as e:
            logger.error("Error fetching pending approvals: %s", e)
            self._notifications.add_toast(Toast("error", "Error", "Failed to load pending approvals."))
            return False

        self.member_requests = list(member_requests)
        self.bill_payments = pending_share_approvals(bills)
        self.expenses = list(expenses)
        self.deposits = list(deposits)
        self.pending_count = len(self.member_requests)
        return True

    def total_pending(self) -> int:
        return len(self.member_requests) + len(self.bill_payments) + len(self.expenses) + len(self.deposits)

    async def _run(
        self,
        collection: list[T],
        predicate: Callable[[T], bool],
        call: Callable[[], Awaitable[object]],
        success: Toast,
        failure_message: str,
    ) -> bool:
        if not self._allowed():
            self._notifications.add_toast(Toast("error", "Error", "Only managers can do this."))
            return False

        update = OptimisticUpdate(collection, predicate)
        if not update.apply():
            update.commit()
            logger.debug("Nothing to act on; item already handled")
            return False
        self._notifications.add_toast(success)

        try:
            response = await call()
        except ApiError as e:
            logger.warning("Approval action failed: %s", e)
            response = None
        except asyncio.CancelledError:
            update.rollback()
            raise
        except Exception:
            logger.exception("Approval action raised unexpectedly")
            response = None

        if not response:
            update.rollback()
            self._notifications.add_toast(Toast("error", "Error", failure_message))
            return False

        update.commit()
        await self._reconcile()
        return True

    async def _reconcile(self) -> None:
        """Refresh counts that other views derive from the same data."""
        khata_id = self.khata_id
        if khata_id is None:
            return
        try:
            self.pending_count = await self._client.get_pending_count(khata_id)
        except ApiError as e:
            logger.warning("Could not refresh pending count: %s", e)

    # --- Members ---
    async def approve_member(self, user_id: str) -> bool:
        khata_id = self.khata_id or ""
        return await self._run(
            self.member_requests,
            lambda member: member.id == user_id,
            lambda: self._client.approve_member(khata_id, user_id),
            Toast("success", "Approved", "Member approved successfully"),
            "Failed to approve member. Please try again.",
        )

    async def deny_member(self, user_id: str) -> bool:
        self._notifications.add_toast(
            Toast(
                "info",
                "Feature Not Available",
                "Denying member requests is not currently supported. You can approve requests or contact support.",
            )
        )
        return False

    # --- Bill payments ---
    async def approve_bill_payment(self, bill_id: str, user_id: str) -> bool:
        return await self._run(
            self.bill_payments,
            lambda item: item.key == (bill_id, user_id),
            lambda: self._client.update_share_status(bill_id, user_id, "Paid"),
            Toast("success", "Approved", "Payment approved successfully."),
            "Failed to approve payment. Please try again.",
        )

    async def deny_bill_payment(self, bill_id: str, user_id: str) -> bool:
        return await self._run(
            self.bill_payments,
            lambda item: item.key == (bill_id, user_id),
            lambda: self._client.update_share_status(bill_id, user_id, "Unpaid"),
            Toast("warning", "Denied", "Payment rejected. Status reset to Unpaid."),
            "Failed to deny payment. Please try again.",
        )

    # --- Expenses ---
    async def approve_expense(self, expense_id: str) -> bool:
        khata_id = self.khata_id or ""
        return await self._run(
            self.expenses,
            lambda expense: expense.id == expense_id,
            lambda: self._client.approve_expense(khata_id, expense_id),
            Toast("success", "Approved", "Shopping expense approved"),
            "Failed to approve expense. Please try again.",
        )

    async def reject_expense(self, expense_id: str, reason: str | None = None) -> bool:
        khata_id = self.khata_id or ""
        return await self._run(
            self.expenses,
            lambda expense: expense.id == expense_id,
            lambda: self._client.reject_expense(khata_id, expense_id, reason),
            Toast("warning", "Rejected", "Shopping expense rejected"),
            "Failed to reject expense. Please try again.",
        )

    # --- Deposits ---
    async def approve_deposit(self, deposit_id: str) -> bool:
        khata_id = self.khata_id or ""
        return await self._run(
            self.deposits,
            lambda deposit: deposit.id == deposit_id,
            lambda: self._client.approve_deposit(khata_id, deposit_id),
            Toast("success", "Approved", "Deposit approved"),
            "Failed to approve deposit. Please try again.",
        )

    async def reject_deposit(self, deposit_id: str, reason: str | None = None) -> bool:
        khata_id = self.khata_id or ""
        return await self._run(
            self.deposits,
            lambda deposit: deposit.id == deposit_id,
            lambda: self._client.reject_deposit(khata_id, deposit_id, reason),
            Toast("warning", "Rejected", "Deposit rejected"),
            "Failed to reject deposit. Please try again.",
        )
