"""Shared pytest fixtures for billkhata tests."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest

from billkhata.domain.models import Bill, Deposit, Expense, MealFinalization, MealRecord, Member
from billkhata.runtime.api_client import ApiError
from billkhata.runtime.settings import reset_settings

CallHook = Callable[[str, tuple[Any, ...]], Awaitable[None]]


class FakeKhataClient:
    """
    In-memory stand-in for KhataApiClient.

    Collections are plain lists that tests fill directly. Method names listed
    in ``fail`` raise ApiError; names in ``falsy`` answer with None/False.
    """

    def __init__(self) -> None:
        self.members: list[Member] = []
        self.pending_members: list[Member] = []
        self.bills: list[Bill] = []
        self.meals: list[MealRecord] = []
        self.deposits: list[Deposit] = []
        self.expenses: list[Expense] = []
        self.finalized: set[str] = set()
        self.pending_count = 0
        self.calls: list[tuple[Any, ...]] = []
        self.fail: set[str] = set()
        self.falsy: set[str] = set()
        self.hook: CallHook | None = None
        self.closed = False

    async def _call(self, name: str, *args: Any) -> bool:
        self.calls.append((name, *args))
        if self.hook is not None:
            await self.hook(name, args)
        if name in self.fail:
            raise ApiError(f"{name} failed", status_code=500)
        return name not in self.falsy

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [call[1:] for call in self.calls if call[0] == name]

    async def __aenter__(self) -> FakeKhataClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self.closed = True

    async def get_members(self, khata_id: str) -> list[Member]:
        await self._call("get_members", khata_id)
        return list(self.members)

    async def get_pending_members(self, khata_id: str) -> list[Member]:
        await self._call("get_pending_members", khata_id)
        return list(self.pending_members)

    async def get_pending_count(self, khata_id: str) -> int:
        await self._call("get_pending_count", khata_id)
        return self.pending_count

    async def approve_member(self, khata_id: str, user_id: str) -> bool:
        return await self._call("approve_member", khata_id, user_id)

    async def get_bills(self, khata_id: str) -> list[Bill]:
        await self._call("get_bills", khata_id)
        return list(self.bills)

    async def create_bill(self, bill: dict[str, Any]) -> bool:
        return await self._call("create_bill", bill)

    async def update_bill(self, bill: Bill) -> Bill | None:
        return bill if await self._call("update_bill", bill) else None

    async def update_share_status(self, bill_id: str, user_id: str, status: str) -> Bill | None:
        if not await self._call("update_share_status", bill_id, user_id, status):
            return None
        for bill in self.bills:
            if bill.id == bill_id:
                shares = tuple(
                    replace(share, status=status) if share.user_id == user_id else share  # type: ignore[arg-type]
                    for share in bill.shares
                )
                return replace(bill, shares=shares)
        return None

    async def get_meals(
        self,
        khata_id: str,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> list[MealRecord]:
        await self._call("get_meals", khata_id, start_date, end_date)
        return list(self.meals)

    async def submit_meal(self, khata_id: str, meal: dict[str, Any]) -> Any:
        return await self._call("submit_meal", khata_id, meal)

    async def finalize_meals(self, khata_id: str, day: str) -> bool:
        ok = await self._call("finalize_meals", khata_id, day)
        self.finalized.add(day)
        return ok

    async def get_finalization(self, khata_id: str, day: str) -> MealFinalization:
        await self._call("get_finalization", khata_id, day)
        return MealFinalization(date=day, is_finalized=day in self.finalized)

    async def get_deposits(self, khata_id: str, status: str | None = None) -> list[Deposit]:
        await self._call("get_deposits", khata_id, status)
        return [deposit for deposit in self.deposits if status is None or deposit.status == status]

    async def approve_deposit(self, khata_id: str, deposit_id: str) -> bool:
        return await self._call("approve_deposit", khata_id, deposit_id)

    async def reject_deposit(self, khata_id: str, deposit_id: str, reason: str | None = None) -> bool:
        return await self._call("reject_deposit", khata_id, deposit_id, reason)

    async def get_expenses(self, khata_id: str, status: str | None = None) -> list[Expense]:
        await self._call("get_expenses", khata_id, status)
        return [expense for expense in self.expenses if status is None or expense.status == status]

    async def approve_expense(self, khata_id: str, expense_id: str) -> bool:
        return await self._call("approve_expense", khata_id, expense_id)

    async def reject_expense(self, khata_id: str, expense_id: str, reason: str | None = None) -> bool:
        return await self._call("reject_expense", khata_id, expense_id, reason)


@pytest.fixture
def fake_client() -> FakeKhataClient:
    return FakeKhataClient()


@pytest.fixture
def manager() -> Member:
    return Member(id="m1", name="Rahim", role="Manager", khata_id="k1")


@pytest.fixture
def member() -> Member:
    return Member(id="u1", name="Karim", role="Member", khata_id="k1")


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Keep tests away from the developer's config file and BILLKHATA_* env vars."""
    for name in (
        "BILLKHATA_API_URL",
        "BILLKHATA_TOKEN",
        "BILLKHATA_KHATA_ID",
        "BILLKHATA_USER_ID",
        "BILLKHATA_TIMEOUT",
        "BILLKHATA_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("BILLKHATA_CONFIG", str(tmp_path / "missing.toml"))
    reset_settings()
    yield
    reset_settings()
