"""Calendar-month periods and date filters."""

from __future__ import annotations

import calendar
import datetime as dt
import re
from collections.abc import Iterable
from dataclasses import dataclass

from billkhata.domain.models import Bill, Deposit, Expense

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{1,2})$")


@dataclass(frozen=True, order=True)
class PeriodKey:
    """A calendar month, used both for filtering and for tagging fetches."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Invalid month: {self.month}")

    @classmethod
    def of(cls, when: dt.date) -> PeriodKey:
        return cls(when.year, when.month)

    @classmethod
    def parse(cls, text: str) -> PeriodKey:
        """Parse ``YYYY-MM``."""
        match = _PERIOD_RE.match(text.strip())
        if not match:
            raise ValueError(f"Invalid period (expected YYYY-MM): {text!r}")
        return cls(int(match.group(1)), int(match.group(2)))

    @property
    def start(self) -> dt.datetime:
        return dt.datetime(self.year, self.month, 1)

    @property
    def end(self) -> dt.datetime:
        last_day = calendar.monthrange(self.year, self.month)[1]
        return dt.datetime(self.year, self.month, last_day, 23, 59, 59, 999000)

    def shift(self, months: int) -> PeriodKey:
        index = self.year * 12 + (self.month - 1) + months
        return PeriodKey(index // 12, index % 12 + 1)

    def label(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def month_bounds(ref: dt.date) -> tuple[dt.datetime, dt.datetime]:
    """First instant and last millisecond of the month containing ``ref``."""
    key = PeriodKey.of(ref)
    return key.start, key.end


def in_month(value: dt.date | None, ref: dt.date) -> bool:
    """True when ``value`` falls in the same local calendar month as ``ref``."""
    if value is None:
        return False
    return value.year == ref.year and value.month == ref.month


def bills_in_month(bills: Iterable[Bill], ref: dt.date) -> list[Bill]:
    return [bill for bill in bills if in_month(bill.due_date, ref)]


def deposits_in_month(deposits: Iterable[Deposit], ref: dt.date) -> list[Deposit]:
    return [deposit for deposit in deposits if in_month(deposit.created_at, ref)]


def expenses_in_month(expenses: Iterable[Expense], ref: dt.date) -> list[Expense]:
    return [expense for expense in expenses if in_month(expense.created_at, ref)]


def meal_query_range(ref: dt.date, tz: dt.tzinfo | None = None) -> tuple[str, str]:
    """
    ``startDate``/``endDate`` query values for fetching one month of meals.

    Meals are range-filtered by the server, so the bounds are sent as
    offset-qualified ISO strings in ``tz`` (the local zone when None).
    """
    start, end = month_bounds(ref)
    return _local_iso(start, tz), _local_iso(end, tz)


def _local_iso(value: dt.datetime, tz: dt.tzinfo | None) -> str:
    aware = value.replace(tzinfo=tz) if tz is not None else value.astimezone()
    return aware.isoformat(timespec="milliseconds")


def shift_months(when: dt.datetime, months: int) -> dt.datetime:
    """Move ``when`` by whole calendar months, clamping the day to the target month."""
    target = PeriodKey.of(when).shift(months)
    last_day = calendar.monthrange(target.year, target.month)[1]
    return when.replace(year=target.year, month=target.month, day=min(when.day, last_day))


def recent_months(now: dt.date, count: int = 12) -> list[PeriodKey]:
    """Month picker options, newest first."""
    current = PeriodKey.of(now)
    return [current.shift(-offset) for offset in range(count)]
