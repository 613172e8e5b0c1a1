"""Tests for the monthly history workflow."""

from __future__ import annotations

import asyncio
import datetime as dt
from decimal import Decimal
from typing import Any

from billkhata.application.history import HistoryRequest, MonthlyHistory, run_history
from billkhata.application.notifications import CollectingNotificationSink
from billkhata.domain.models import Bill, BillShare, Deposit, Expense, MealRecord, Member
from billkhata.domain.periods import PeriodKey

MARCH = PeriodKey(2024, 3)
APRIL = PeriodKey(2024, 4)
UTC = dt.timezone.utc


def _seed(fake_client) -> None:
    fake_client.members = [Member(id="u1", name="Karim"), Member(id="u2", name="Rahim")]
    fake_client.bills = [
        Bill(
            "b1",
            "k1",
            "Rent",
            Decimal("900"),
            dt.datetime(2024, 3, 10),
            "Rent",
            (BillShare("u1", "Karim", Decimal("450"), "Paid"), BillShare("u2", "Rahim", Decimal("450"))),
        ),
        Bill("b2", "k1", "April rent", Decimal("900"), dt.datetime(2024, 4, 10), "Rent"),
    ]
    fake_client.meals = [
        MealRecord("u1", dt.datetime(2024, 3, 2), lunch=Decimal("1"), dinner=Decimal("1"), user_name="Karim"),
        MealRecord("u2", dt.datetime(2024, 3, 2), lunch=Decimal("2"), dinner=Decimal("1"), user_name="Rahim"),
    ]
    fake_client.deposits = [
        Deposit("d1", "u1", Decimal("300"), "bKash", "Approved", dt.datetime(2024, 3, 1)),
        Deposit("d2", "u2", Decimal("700"), "bKash", "Approved", dt.datetime(2024, 4, 1)),
    ]
    fake_client.expenses = [
        Expense("e1", "u1", Decimal("227.5"), "groceries", "Approved", dt.datetime(2024, 3, 3)),
        Expense("e2", "u1", Decimal("50"), "snacks", "Pending", dt.datetime(2024, 3, 3)),
    ]


def test_run_history_filters_to_the_month(fake_client) -> None:
    _seed(fake_client)
    sink = CollectingNotificationSink()

    result = asyncio.run(run_history(fake_client, HistoryRequest("k1", MARCH, tz=UTC), sink))

    assert result.status == "ok"
    assert result.summary is not None
    assert result.summary.total_bills == Decimal("900")
    assert result.summary.total_deposits == Decimal("300")
    assert result.summary.total_meals == Decimal("5")
    assert result.summary.meal_rate == Decimal("45.5")
    assert result.summary.max_meal_taker.name == "Rahim"
    assert [row.member_id for row in result.members] == ["u1", "u2"]
    assert result.members[0].refund_or_due == Decimal("300") - Decimal("2") * Decimal("45.5")
    assert fake_client.called("get_meals") == [
        ("k1", "2024-03-01T00:00:00.000+00:00", "2024-03-31T23:59:59.999+00:00")
    ]
    assert sink.toasts == []


def test_run_history_for_one_member(fake_client) -> None:
    _seed(fake_client)
    result = asyncio.run(
        run_history(fake_client, HistoryRequest("k1", MARCH, member_id="u2", tz=UTC), CollectingNotificationSink())
    )
    assert [row.member_id for row in result.members] == ["u2"]
    assert result.members[0].unpaid == Decimal("450")


def test_run_history_reports_fetch_failure(fake_client) -> None:
    _seed(fake_client)
    fake_client.fail.add("get_deposits")
    sink = CollectingNotificationSink()

    result = asyncio.run(run_history(fake_client, HistoryRequest("k1", MARCH, tz=UTC), sink))

    assert result.status == "error"
    assert result.summary is None
    assert sink.toasts[0].message == "Failed to load history data"


def test_stale_month_response_is_discarded(fake_client) -> None:
    _seed(fake_client)
    release_march = asyncio.Event()

    async def hold_march(name: str, args: tuple[Any, ...]) -> None:
        if name == "get_meals" and args[1].startswith("2024-03"):
            await release_march.wait()

    fake_client.hook = hold_march
    history = MonthlyHistory(fake_client, "k1", CollectingNotificationSink(), tz=UTC)

    async def switch_months() -> tuple[Any, Any]:
        march = asyncio.create_task(history.select_month(MARCH))
        await asyncio.sleep(0)
        april = await history.select_month(APRIL)
        release_march.set()
        return await march, april

    march_result, april_result = asyncio.run(switch_months())

    assert march_result.status == "stale"
    assert april_result.status == "ok"
    assert history.result is april_result
    assert history.period == APRIL


def test_refresh_refetches_current_month(fake_client) -> None:
    _seed(fake_client)
    history = MonthlyHistory(fake_client, "k1", CollectingNotificationSink(), tz=UTC)

    assert asyncio.run(history.refresh()) is None

    asyncio.run(history.select_month(MARCH))
    fake_client.deposits.append(Deposit("d3", "u2", Decimal("100"), "Cash", "Approved", dt.datetime(2024, 3, 9)))
    refreshed = asyncio.run(history.refresh())

    assert refreshed is not None
    assert refreshed.summary is not None
    assert refreshed.summary.total_deposits == Decimal("400")
    assert len(fake_client.called("get_meals")) == 2
