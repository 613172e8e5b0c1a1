"""Meal counts, meal rate and meal-taker rankings."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from billkhata.domain.models import NO_MEAL_TAKER, ZERO, MealRecord, MealTaker

MEAL_STEP = Decimal("0.25")
MAX_MEALS_PER_SLOT = Decimal("2")
MEAL_SLOTS = ("breakfast", "lunch", "dinner")


class MealQuantityError(ValueError):
    """Raised for a meal quantity the room does not accept."""


@dataclass(frozen=True)
class DayBreakdown:
    """Who ate what on one day, per slot."""

    breakfast: tuple[tuple[str, Decimal], ...]
    lunch: tuple[tuple[str, Decimal], ...]
    dinner: tuple[tuple[str, Decimal], ...]
    total: Decimal


def validate_meal_quantity(value: Decimal, slot: str = "meal") -> Decimal:
    """Return ``value`` if it is a 0.25 step in [0, 2], else raise MealQuantityError."""
    if not value.is_finite() or value < 0:
        raise MealQuantityError(f"{slot} must be a non-negative number, got {value}")
    if value > MAX_MEALS_PER_SLOT:
        raise MealQuantityError(f"{slot} cannot exceed {MAX_MEALS_PER_SLOT}, got {value}")
    if value % MEAL_STEP != 0:
        raise MealQuantityError(f"{slot} must be in steps of {MEAL_STEP}, got {value}")
    return value


def total_meal_count(meals: Iterable[MealRecord], member_id: str | None = None) -> Decimal:
    """Sum of meals in scope; restricted to one member when ``member_id`` is given."""
    return sum(
        (meal.total_meals for meal in meals if member_id is None or meal.user_id == member_id),
        ZERO,
    )


def meal_rate(total_cost: Decimal, total_count: Decimal) -> Decimal:
    """Cost per meal. 0 when no meals were taken."""
    if total_count == 0:
        return ZERO
    return total_cost / total_count


def meal_counts_by_member(meals: Iterable[MealRecord]) -> dict[str, MealTaker]:
    """Per-member meal totals keyed by user id, in first-seen order."""
    counts: dict[str, MealTaker] = {}
    for meal in meals:
        key = meal.user_id or ""
        current = counts.get(key)
        if current is None:
            counts[key] = MealTaker(name=meal.user_name, count=meal.total_meals)
        else:
            counts[key] = MealTaker(name=current.name, count=current.count + meal.total_meals)
    return counts


def meal_takers(meals: Iterable[MealRecord]) -> tuple[MealTaker, MealTaker]:
    """
    Return (max, min) meal takers.

    Ties go to the member seen first. With no records both are ``N/A``.
    """
    takers = list(meal_counts_by_member(meals).values())
    if not takers:
        return NO_MEAL_TAKER, NO_MEAL_TAKER
    maximum = takers[0]
    minimum = takers[0]
    for taker in takers[1:]:
        if taker.count > maximum.count:
            maximum = taker
        if taker.count < minimum.count:
            minimum = taker
    return maximum, minimum


def meals_on_day(meals: Iterable[MealRecord], day: dt.date) -> list[MealRecord]:
    if isinstance(day, dt.datetime):
        day = day.date()
    return [meal for meal in meals if meal.date is not None and meal.date.date() == day]


def day_breakdown(meals: Iterable[MealRecord]) -> DayBreakdown:
    records = list(meals)
    return DayBreakdown(
        breakfast=tuple((m.user_name, m.breakfast) for m in records if m.breakfast > 0),
        lunch=tuple((m.user_name, m.lunch) for m in records if m.lunch > 0),
        dinner=tuple((m.user_name, m.dinner) for m in records if m.dinner > 0),
        total=total_meal_count(records),
    )
