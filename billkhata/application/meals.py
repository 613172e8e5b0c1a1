"""Meal entry and day finalization."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Literal

from billkhata.application.notifications import NotificationSink, Toast
from billkhata.domain.meals import MealQuantityError, validate_meal_quantity
from billkhata.domain.models import ZERO, Member
from billkhata.runtime.api_client import ApiError, KhataApiClient
from billkhata.runtime.logging import get_logger

logger = get_logger(__name__)

MealEntryStatus = Literal["ok", "invalid", "locked", "forbidden", "error"]


@dataclass(frozen=True)
class MealEntryRequest:
    """One day's meals for one member; ``target`` is set when a manager logs for someone else."""

    day: dt.date
    breakfast: Decimal = ZERO
    lunch: Decimal = ZERO
    dinner: Decimal = ZERO
    target: Member | None = None


@dataclass(frozen=True)
class MealEntryResult:
    status: MealEntryStatus
    error: str | None = None


async def run_submit_meal(
    client: KhataApiClient,
    request: MealEntryRequest,
    current_user: Member,
    notifications: NotificationSink,
) -> MealEntryResult:
    """
    Validate and submit (upsert) a meal record.

    Members cannot change a finalized day; managers can.
    """
    khata_id = current_user.khata_id
    if khata_id is None:
        return MealEntryResult(status="forbidden", error="Join a room first")

    target = request.target or current_user
    if target.id != current_user.id and not current_user.is_manager():
        notifications.add_toast(Toast("error", "Error", "Only managers can log meals for other members."))
        return MealEntryResult(status="forbidden")

    try:
        quantities = {
            slot: validate_meal_quantity(value, slot)
            for slot, value in (("breakfast", request.breakfast), ("lunch", request.lunch), ("dinner", request.dinner))
        }
    except MealQuantityError as e:
        notifications.add_toast(Toast("error", "Invalid meal", str(e)))
        return MealEntryResult(status="invalid", error=str(e))

    day = request.day.isoformat()
    try:
        if not current_user.is_manager():
            finalization = await client.get_finalization(khata_id, day)
            if finalization.is_finalized:
                notifications.add_toast(
                    Toast("warning", "Finalized", "Meals for this day are finalized. Ask a manager to change them.")
                )
                return MealEntryResult(status="locked")

        payload: dict[str, Any] = {"date": day, **{slot: float(value) for slot, value in quantities.items()}}
        if target.id != current_user.id:
            payload["userId"] = target.id
            payload["userName"] = target.name
        await client.submit_meal(khata_id, payload)
    except ApiError as e:
        notifications.add_toast(Toast("error", "Error", e.message))
        return MealEntryResult(status="error", error=str(e))

    notifications.add_toast(Toast("success", "Saved", "Meal entry saved"))
    return MealEntryResult(status="ok")


async def run_finalize_day(
    client: KhataApiClient,
    day: dt.date,
    current_user: Member,
    notifications: NotificationSink,
) -> MealEntryResult:
    """Lock a day's meals (managers only)."""
    if current_user.khata_id is None or not current_user.is_manager():
        notifications.add_toast(Toast("error", "Error", "Only managers can finalize meals."))
        return MealEntryResult(status="forbidden")

    try:
        await client.finalize_meals(current_user.khata_id, day.isoformat())
    except ApiError as e:
        notifications.add_toast(Toast("error", "Error", "Failed to finalize meals"))
        return MealEntryResult(status="error", error=str(e))

    logger.info("Finalized meals for %s", day.isoformat())
    notifications.add_toast(Toast("success", "Finalized", f"Meals for {day.isoformat()} are finalized"))
    return MealEntryResult(status="ok")
