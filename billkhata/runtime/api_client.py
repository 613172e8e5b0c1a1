"""Async client for the room REST API."""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal
from types import TracebackType
from typing import Any, TypeVar

import httpx

from billkhata.domain.models import ApprovalStatus, Bill, Deposit, Expense, MealFinalization, MealRecord, Member
from billkhata.domain.records import (
    RecordError,
    parse_bill,
    parse_deposit,
    parse_expense,
    parse_finalization,
    parse_many,
    parse_meal,
    parse_member,
    serialize_share,
)
from billkhata.runtime.logging import get_logger
from billkhata.runtime.settings import Settings, get_settings

logger = get_logger(__name__)

T = TypeVar("T")


class ApiError(RuntimeError):
    """Raised when the API cannot be reached or answers with an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return f"API error: {response.status_code}"


def _money(value: Decimal | float) -> float:
    return float(value)


class KhataApiClient:
    """
    Thin wrapper over the room API.

    Every call raises ApiError on transport failures and non-2xx responses;
    list endpoints return parsed domain records.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> KhataApiClient:
        settings = settings or get_settings()
        return cls(settings.api_url, token=settings.token, timeout=settings.timeout, transport=transport)

    async def __aenter__(self) -> KhataApiClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.RequestError as e:
            logger.error("Failed to reach API for %s %s: %s", method, path, e)
            raise ApiError(f"Failed to connect to API: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.error("%s %s failed: %s - %s", method, path, response.status_code, message)
            raise ApiError(message, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(f"Invalid JSON from {path}", status_code=response.status_code) from e

    def _parse_list(self, payload: Any, parser: Callable[[object], T], what: str) -> list[T]:
        try:
            records, errors = parse_many(payload or [], parser)
        except RecordError as e:
            raise ApiError(f"Unexpected {what} payload: {e}") from e
        for error in errors:
            logger.warning("Skipping malformed %s record (%s)", what, error)
        return records

    # --- Members ---
    async def get_members(self, khata_id: str) -> list[Member]:
        payload = await self._request("GET", f"/rooms/{khata_id}/members")
        return self._parse_list(payload, parse_member, "member")

    async def get_pending_members(self, khata_id: str) -> list[Member]:
        payload = await self._request("GET", f"/rooms/{khata_id}/pending")
        return self._parse_list(payload, parse_member, "join request")

    async def get_pending_count(self, khata_id: str) -> int:
        payload = await self._request("GET", f"/rooms/{khata_id}/pending")
        return len(payload) if isinstance(payload, list) else 0

    async def approve_member(self, khata_id: str, user_id: str) -> bool:
        await self._request("PUT", f"/rooms/{khata_id}/approve/{user_id}")
        return True

    # --- Bills ---
    async def get_bills(self, khata_id: str) -> list[Bill]:
        payload = await self._request("GET", f"/bills/room/{khata_id}")
        return self._parse_list(payload, parse_bill, "bill")

    async def create_bill(self, bill: dict[str, Any]) -> bool:
        await self._request("POST", "/bills", json=bill)
        return True

    async def update_bill(self, bill: Bill) -> Bill | None:
        body = {
            "title": bill.title,
            "totalAmount": _money(bill.total_amount),
            "dueDate": bill.due_date.isoformat() if bill.due_date else None,
            "category": bill.category,
            "description": bill.description,
            "shares": [serialize_share(share) for share in bill.shares],
        }
        payload = await self._request("PUT", f"/bills/{bill.id}", json=body)
        return self._bill_from_payload(payload)

    async def delete_bill(self, bill_id: str) -> bool:
        await self._request("DELETE", f"/bills/{bill_id}")
        return True

    async def update_share_status(self, bill_id: str, user_id: str, status: str) -> Bill | None:
        """Set one share's status; returns the updated bill, or None if the server sent none back."""
        payload = await self._request("PUT", f"/bills/{bill_id}/share/{user_id}", json={"status": status})
        return self._bill_from_payload(payload)

    async def send_bill_reminder(self, bill_id: str) -> int:
        payload = await self._request("POST", f"/bills/{bill_id}/remind")
        if isinstance(payload, dict):
            return int(payload.get("count", 0))
        return 0

    def _bill_from_payload(self, payload: Any) -> Bill | None:
        if not isinstance(payload, dict) or not payload.get("bill"):
            return None
        try:
            return parse_bill(payload["bill"])
        except RecordError as e:
            logger.warning("Ignoring malformed bill in response: %s", e)
            return None

    # --- Meals ---
    async def get_meals(
        self,
        khata_id: str,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> list[MealRecord]:
        params: dict[str, Any] = {}
        if start_date:
            params["startDate"] = start_date
        if end_date:
            params["endDate"] = end_date
        payload = await self._request("GET", f"/meals/{khata_id}", params=params or None)
        return self._parse_list(payload, parse_meal, "meal")

    async def submit_meal(self, khata_id: str, meal: dict[str, Any]) -> Any:
        return await self._request("POST", f"/meals/{khata_id}", json=meal)

    async def finalize_meals(self, khata_id: str, day: str) -> bool:
        await self._request("POST", f"/meals/{khata_id}/finalize", json={"date": day})
        return True

    async def get_finalization(self, khata_id: str, day: str) -> MealFinalization:
        payload = await self._request("GET", f"/meals/{khata_id}/finalization/{day}")
        if not isinstance(payload, dict):
            return MealFinalization(date=day, is_finalized=False)
        return parse_finalization(payload, day)

    # --- Deposits ---
    async def get_deposits(self, khata_id: str, status: ApprovalStatus | None = None) -> list[Deposit]:
        params = {"status": status} if status else None
        payload = await self._request("GET", f"/deposits/{khata_id}", params=params)
        return self._parse_list(payload, parse_deposit, "deposit")

    async def create_deposit(self, khata_id: str, deposit: dict[str, Any]) -> Any:
        return await self._request("POST", f"/deposits/{khata_id}", json=deposit)

    async def approve_deposit(self, khata_id: str, deposit_id: str) -> bool:
        await self._request("PUT", f"/deposits/{khata_id}/{deposit_id}/approve")
        return True

    async def reject_deposit(self, khata_id: str, deposit_id: str, reason: str | None = None) -> bool:
        await self._request("PUT", f"/deposits/{khata_id}/{deposit_id}/reject", json={"reason": reason})
        return True

    # --- Expenses ---
    async def get_expenses(self, khata_id: str, status: ApprovalStatus | None = None) -> list[Expense]:
        params = {"status": status} if status else None
        payload = await self._request("GET", f"/expenses/{khata_id}", params=params)
        return self._parse_list(payload, parse_expense, "expense")

    async def create_expense(self, khata_id: str, expense: dict[str, Any]) -> Any:
        return await self._request("POST", f"/expenses/{khata_id}", json=expense)

    async def approve_expense(self, khata_id: str, expense_id: str) -> bool:
        await self._request("PUT", f"/expenses/{khata_id}/{expense_id}/approve")
        return True

    async def reject_expense(self, khata_id: str, expense_id: str, reason: str | None = None) -> bool:
        await self._request("PUT", f"/expenses/{khata_id}/{expense_id}/reject", json={"reason": reason})
        return True
