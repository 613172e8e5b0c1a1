"""Monthly history workflow: fetch a month, then build room and member summaries."""

from __future__ import annotations

import asyncio
import datetime as dt
from dataclasses import dataclass, field
from typing import Literal

from billkhata.application.notifications import NotificationSink, Toast
from billkhata.application.refresh import LatestRequestGuard
from billkhata.domain.funds import member_breakdown, monthly_summary
from billkhata.domain.models import Bill, Deposit, Expense, MealRecord, Member, MemberSummary, MonthlySummary
from billkhata.domain.periods import (
    PeriodKey,
    bills_in_month,
    deposits_in_month,
    expenses_in_month,
    meal_query_range,
)
from billkhata.runtime.api_client import ApiError, KhataApiClient
from billkhata.runtime.logging import get_logger

logger = get_logger(__name__)

HistoryStatus = Literal["ok", "error", "stale"]


@dataclass(frozen=True)
class MonthSnapshot:
    """All collections for one room and one month, already filtered to the month."""

    period: PeriodKey
    bills: tuple[Bill, ...] = ()
    meals: tuple[MealRecord, ...] = ()
    deposits: tuple[Deposit, ...] = ()
    expenses: tuple[Expense, ...] = ()
    members: tuple[Member, ...] = ()


@dataclass(frozen=True)
class HistoryRequest:
    """Inputs for the monthly history workflow."""

    khata_id: str
    period: PeriodKey
    member_id: str | None = None
    tz: dt.tzinfo | None = None


@dataclass(frozen=True)
class HistoryResult:
    """Outcome of the monthly history workflow."""

    status: HistoryStatus
    period: PeriodKey
    summary: MonthlySummary | None = None
    members: list[MemberSummary] = field(default_factory=list)
    error: str | None = None


async def fetch_month_snapshot(
    client: KhataApiClient,
    khata_id: str,
    period: PeriodKey,
    tz: dt.tzinfo | None = None,
) -> MonthSnapshot:
    """Fetch the five collections concurrently and keep only the month's records."""
    start, end = meal_query_range(period.start, tz)
    meals, deposits, expenses, bills, members = await asyncio.gather(
        client.get_meals(khata_id, start, end),
        client.get_deposits(khata_id),
        client.get_expenses(khata_id),
        client.get_bills(khata_id),
        client.get_members(khata_id),
    )
    ref = period.start
    return MonthSnapshot(
        period=period,
        bills=tuple(bills_in_month(bills, ref)),
        meals=tuple(meals),
        deposits=tuple(deposits_in_month(deposits, ref)),
        expenses=tuple(expenses_in_month(expenses, ref)),
        members=tuple(members),
    )


def summarize_snapshot(
    snapshot: MonthSnapshot,
    member_id: str | None = None,
) -> tuple[MonthlySummary, list[MemberSummary]]:
    """Room summary plus per-member breakdown (one member when ``member_id`` is set)."""
    summary = monthly_summary(snapshot.bills, snapshot.meals, snapshot.deposits, snapshot.expenses)
    breakdown = member_breakdown(
        snapshot.members,
        snapshot.bills,
        snapshot.meals,
        snapshot.deposits,
        summary.meal_rate,
    )
    if member_id is not None:
        breakdown = [row for row in breakdown if row.member_id == member_id]
    return summary, breakdown


async def run_history(
    client: KhataApiClient,
    request: HistoryRequest,
    notifications: NotificationSink,
) -> HistoryResult:
    """Fetch and summarize one month."""
    try:
        snapshot = await fetch_month_snapshot(client, request.khata_id, request.period, request.tz)
    except ApiError as e:
        logger.error("Error fetching history data for %s: %s", request.period, e)
        notifications.add_toast(Toast("error", "Error", "Failed to load history data"))
        return HistoryResult(status="error", period=request.period, error=str(e))

    summary, breakdown = summarize_snapshot(snapshot, request.member_id)
    return HistoryResult(status="ok", period=request.period, summary=summary, members=breakdown)


class MonthlyHistory:
    """
    History state for one room.

    Switching months quickly starts overlapping fetches; only the most recently
    requested month may replace ``result``.
    """

    def __init__(
        self,
        client: KhataApiClient,
        khata_id: str,
        notifications: NotificationSink,
        tz: dt.tzinfo | None = None,
    ) -> None:
        self._client = client
        self._khata_id = khata_id
        self._notifications = notifications
        self._tz = tz
        self._guard: LatestRequestGuard[PeriodKey] = LatestRequestGuard()
        self.result: HistoryResult | None = None
        self.member_id: str | None = None

    @property
    def period(self) -> PeriodKey | None:
        return self._guard.latest_key

    async def select_month(self, period: PeriodKey, member_id: str | None = None) -> HistoryResult:
        self.member_id = member_id
        ticket = self._guard.issue(period)
        result = await run_history(
            self._client,
            HistoryRequest(khata_id=self._khata_id, period=period, member_id=member_id, tz=self._tz),
            self._notifications,
        )
        if not self._guard.is_current(ticket):
            logger.debug("Discarding stale history response for %s", period)
            return HistoryResult(status="stale", period=period)
        self.result = result
        return result

    async def refresh(self) -> HistoryResult | None:
        """Re-fetch the current month; used as the real-time invalidation handler."""
        period = self.period
        if period is None:
            return None
        return await self.select_month(period, self.member_id)
