"""Tests for month keys and month filtering."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest

from billkhata.domain.models import Bill, Deposit
from billkhata.domain.periods import (
    PeriodKey,
    bills_in_month,
    deposits_in_month,
    in_month,
    meal_query_range,
    month_bounds,
    recent_months,
    shift_months,
)


def _bill(bill_id: str, due: dt.datetime | None) -> Bill:
    return Bill(id=bill_id, khata_id="k1", title=bill_id, total_amount=Decimal("100"), due_date=due, category="Rent")


def test_period_key_parse_and_format() -> None:
    key = PeriodKey.parse("2024-3")
    assert key == PeriodKey(2024, 3)
    assert str(key) == "2024-03"
    assert key.label() == "March 2024"
    with pytest.raises(ValueError):
        PeriodKey.parse("March")
    with pytest.raises(ValueError):
        PeriodKey.parse("2024-13")


def test_period_key_shift_across_years() -> None:
    assert PeriodKey(2024, 1).shift(-1) == PeriodKey(2023, 12)
    assert PeriodKey(2024, 12).shift(1) == PeriodKey(2025, 1)
    assert PeriodKey(2024, 5).shift(-17) == PeriodKey(2022, 12)


def test_month_bounds_cover_whole_month() -> None:
    start, end = month_bounds(dt.date(2024, 2, 14))
    assert start == dt.datetime(2024, 2, 1)
    assert end == dt.datetime(2024, 2, 29, 23, 59, 59, 999000)


def test_in_month_ignores_missing_dates() -> None:
    ref = dt.date(2024, 3, 1)
    assert in_month(dt.datetime(2024, 3, 31, 23, 59), ref)
    assert not in_month(dt.datetime(2024, 4, 1), ref)
    assert not in_month(dt.datetime(2023, 3, 15), ref)
    assert not in_month(None, ref)


def test_bills_in_month_keeps_only_the_selected_month() -> None:
    bills = [
        _bill("march", dt.datetime(2024, 3, 5)),
        _bill("april", dt.datetime(2024, 4, 5)),
        _bill("undated", None),
    ]
    assert [bill.id for bill in bills_in_month(bills, dt.date(2024, 3, 20))] == ["march"]


def test_deposits_in_month_uses_created_at() -> None:
    deposits = [
        Deposit("d1", "u1", Decimal("500"), "bKash", "Approved", dt.datetime(2024, 3, 1)),
        Deposit("d2", "u1", Decimal("500"), "bKash", "Approved", dt.datetime(2024, 2, 29)),
    ]
    assert [deposit.id for deposit in deposits_in_month(deposits, dt.date(2024, 3, 1))] == ["d1"]


def test_meal_query_range_uses_given_zone() -> None:
    dhaka = dt.timezone(dt.timedelta(hours=6))
    start, end = meal_query_range(dt.date(2024, 3, 10), dhaka)
    assert start == "2024-03-01T00:00:00.000+06:00"
    assert end == "2024-03-31T23:59:59.999+06:00"


def test_shift_months_clamps_day() -> None:
    assert shift_months(dt.datetime(2024, 5, 31, 12), -3) == dt.datetime(2024, 2, 29, 12)
    assert shift_months(dt.datetime(2024, 1, 15), -1) == dt.datetime(2023, 12, 15)


def test_recent_months_newest_first() -> None:
    months = recent_months(dt.date(2024, 2, 10), count=3)
    assert months == [PeriodKey(2024, 2), PeriodKey(2024, 1), PeriodKey(2023, 12)]
