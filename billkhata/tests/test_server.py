"""Tests for the summary server using FastAPI's TestClient."""

from __future__ import annotations

import asyncio
import datetime as dt
from collections.abc import Iterator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from billkhata.application.history import HistoryResult
from billkhata.application.server import SummaryCache, create_app, subscribe_room
from billkhata.domain.models import Bill, BillShare, Deposit, Expense, MealRecord, Member
from billkhata.domain.periods import PeriodKey
from billkhata.runtime.events import EventHub, RealtimeEvent


@pytest.fixture
def hub() -> EventHub:
    return EventHub()


@pytest.fixture
def api(fake_client, hub: EventHub) -> Iterator[TestClient]:
    fake_client.members = [Member(id="u1", name="Karim"), Member(id="u2", name="Rahim")]
    fake_client.meals = [
        MealRecord("u1", dt.datetime(2024, 3, 2), lunch=Decimal("1"), dinner=Decimal("1")),
        MealRecord("u2", dt.datetime(2024, 3, 2), lunch=Decimal("1"), dinner=Decimal("1")),
    ]
    fake_client.deposits = [Deposit("d1", "u1", Decimal("500"), "bKash", "Approved", dt.datetime(2024, 3, 1))]
    fake_client.expenses = [Expense("e1", "u2", Decimal("200"), "rice", "Approved", dt.datetime(2024, 3, 4))]
    fake_client.bills = [
        Bill(
            "b1",
            "k1",
            "Rent",
            Decimal("600"),
            dt.datetime(2024, 3, 10),
            "Rent",
            (BillShare("u1", "Karim", Decimal("300"), "Paid"), BillShare("u2", "Rahim", Decimal("300"))),
        ),
        Bill(
            "b2",
            "k1",
            "Gas",
            Decimal("100"),
            dt.datetime(2024, 3, 12),
            "Utilities",
            (BillShare("u1", "Karim", Decimal("100"), "Paid"),),
        ),
    ]
    with TestClient(create_app(lambda: fake_client, hub)) as client:
        yield client


def test_health(api: TestClient) -> None:
    assert api.get("/health").json() == {"status": "ok"}


def test_lifespan_closes_client(fake_client) -> None:
    with TestClient(create_app(lambda: fake_client)) as client:
        client.get("/health")
        assert not fake_client.closed
    assert fake_client.closed


def test_month_summary(api: TestClient) -> None:
    response = api.get("/rooms/k1/summary", params={"month": "2024-03"})

    assert response.status_code == 200
    body = response.json()
    assert body["period"] == "2024-03"
    assert body["summary"]["total_bills"] == 700
    assert body["summary"]["meal_rate"] == 50
    assert [row["member_id"] for row in body["members"]] == ["u1", "u2"]
    assert body["members"][0]["refund_or_due"] == 400


def test_summary_is_cached_until_a_room_event(api: TestClient, fake_client) -> None:
    api.get("/rooms/k1/summary", params={"month": "2024-03"})
    api.get("/rooms/k1/summary", params={"month": "2024-03"})
    assert len(fake_client.called("get_meals")) == 1

    response = api.post("/events", json={"events": [{"channel": "room-k1", "event": "new-deposit"}]})
    assert response.json() == {"status": "ok", "events": 1, "invalidated": 1}

    api.get("/rooms/k1/summary", params={"month": "2024-03"})
    assert len(fake_client.called("get_meals")) == 2


def test_event_during_fetch_keeps_stale_summary_out_of_cache(api: TestClient, fake_client) -> None:
    cache = api.app.state.cache
    fired: list[str] = []

    async def deposit_lands_mid_fetch(name: str, args: tuple) -> None:
        if name == "get_members" and not fired:
            fired.append(name)
            fake_client.deposits.append(
                Deposit("d2", "u2", Decimal("700"), "Cash", "Approved", dt.datetime(2024, 3, 5))
            )
            assert cache.invalidate("k1") == 0

    fake_client.hook = deposit_lands_mid_fetch
    first = api.get("/rooms/k1/summary", params={"month": "2024-03"})
    assert first.json()["summary"]["total_deposits"] == 500
    assert len(cache) == 0

    second = api.get("/rooms/k1/summary", params={"month": "2024-03"})
    assert second.json()["summary"]["total_deposits"] == 1200
    assert len(fake_client.called("get_meals")) == 2


def test_summary_rejects_bad_month(api: TestClient) -> None:
    response = api.get("/rooms/k1/summary", params={"month": "2024-13"})
    assert response.status_code == 400
    assert response.json()["status"] == "error"


def test_summary_fetch_failure_is_bad_gateway(api: TestClient, fake_client) -> None:
    fake_client.fail.add("get_expenses")
    response = api.get("/rooms/k1/summary", params={"month": "2024-03"})
    assert response.status_code == 502
    assert response.json()["status"] == "error"


def test_punctuality_range(api: TestClient, fake_client) -> None:
    recent = dt.datetime.now() - dt.timedelta(days=3)
    fake_client.bills = [
        Bill("b9", "k1", "Water", Decimal("200"), recent, "Utilities", (BillShare("u2", "Rahim", Decimal("200")),))
    ]

    response = api.get("/rooms/k1/punctuality", params={"range": "last month"})

    body = response.json()
    assert body["range"] == "Last Month"
    assert [(row["member_id"], row["percent"], row["band"]) for row in body["members"]] == [
        ("u1", 100, "green"),
        ("u2", 0, "red"),
    ]
    assert api.get("/rooms/k1/punctuality", params={"range": "forever"}).status_code == 400


def test_bills_filter(api: TestClient) -> None:
    response = api.get("/rooms/k1/bills", params={"status": "Overdue"})

    bills = response.json()["bills"]
    assert [bill["id"] for bill in bills] == ["b1"]
    assert bills[0]["listStatus"] == "Overdue"
    assert api.get("/rooms/k1/bills", params={"status": "Lost"}).status_code == 400


def test_balances(api: TestClient) -> None:
    balances = api.get("/rooms/k1/balances").json()["balances"]

    assert [row["member_id"] for row in balances] == ["u1", "u2"]
    assert balances[0]["deposits"] == 500
    assert balances[0]["meal_cost"] == 100
    assert balances[1]["balance"] == -100


def test_events_rejects_non_json(api: TestClient) -> None:
    assert api.post("/events", content=b"not json").status_code == 400
    assert api.post("/events", json=[1, 2]).status_code == 400


def test_user_event_drops_every_summary_and_notifies_subscribers(api: TestClient, hub: EventHub) -> None:
    seen: list[RealtimeEvent] = []

    async def on_user(event: RealtimeEvent) -> None:
        seen.append(event)

    hub.subscribe("user-u1", on_user)
    api.get("/rooms/k1/summary", params={"month": "2024-03"})
    api.get("/rooms/k2/summary", params={"month": "2024-03"})

    response = api.post("/events", json={"channel": "user-u1", "event": "deposit-approved"})

    assert response.json()["invalidated"] == 2
    assert [event.name for event in seen] == ["deposit-approved"]


def test_summary_cache_invalidation() -> None:
    cache = SummaryCache()
    assert cache.invalidate("k1") == 0
    assert len(cache) == 0


def test_summary_cache_drops_least_recently_used() -> None:
    cache = SummaryCache(max_entries=2)
    march, april, may = (HistoryResult(status="ok", period=PeriodKey(2024, month)) for month in (3, 4, 5))

    cache.put("k1", None, march)
    cache.put("k1", None, april)
    assert cache.get("k1", PeriodKey(2024, 3), None) is march
    cache.put("k1", None, may)

    assert len(cache) == 2
    assert cache.get("k1", PeriodKey(2024, 4), None) is None
    assert cache.get("k1", PeriodKey(2024, 3), None) is march


def test_summary_cache_refuses_results_from_before_an_invalidation() -> None:
    cache = SummaryCache()
    result = HistoryResult(status="ok", period=PeriodKey(2024, 3))
    before = cache.generation("k1")
    other_room = cache.generation("k2")

    cache.invalidate("k1")

    assert cache.put("k1", None, result, before) is False
    assert cache.put("k2", None, result, other_room) is True
    cache.invalidate()
    assert cache.put("k2", None, result, other_room) is False
    assert len(cache) == 0


def test_subscribe_room_refreshes(hub: EventHub) -> None:
    refreshed: list[int] = []

    async def refresh() -> None:
        refreshed.append(1)

    unsubscribe = subscribe_room(hub, "k1", refresh)
    asyncio.run(hub.publish(RealtimeEvent("room-k1", "meal-updated")))
    unsubscribe()
    asyncio.run(hub.publish(RealtimeEvent("room-k1", "meal-updated")))

    assert refreshed == [1]
