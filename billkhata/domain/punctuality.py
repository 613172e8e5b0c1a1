"""Bill payment punctuality over a trailing window."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal

from billkhata.domain.models import Bill, Member
from billkhata.domain.money import percent
from billkhata.domain.periods import shift_months

PunctualityRange = Literal["Last Month", "Last 3 Months", "Last 6 Months", "Last 1 Year"]
PunctualityBand = Literal["green", "yellow", "red"]

RANGE_MONTHS: dict[PunctualityRange, int] = {
    "Last Month": 1,
    "Last 3 Months": 3,
    "Last 6 Months": 6,
    "Last 1 Year": 12,
}
DEFAULT_RANGE: PunctualityRange = "Last 3 Months"

GOOD_THRESHOLD = 90
FAIR_THRESHOLD = 70


@dataclass(frozen=True)
class Punctuality:
    member_id: str
    member_name: str
    paid_shares: int
    total_shares: int
    percent: int

    @property
    def band(self) -> PunctualityBand:
        return punctuality_band(self.percent)


def parse_range(text: str) -> PunctualityRange:
    for option in RANGE_MONTHS:
        if option.lower() == text.strip().lower():
            return option
    raise ValueError(f"Unknown punctuality range {text!r}; expected one of {', '.join(RANGE_MONTHS)}")


def window_start(window: PunctualityRange, now: dt.datetime) -> dt.datetime:
    return shift_months(now, -RANGE_MONTHS[window])


def bills_in_window(bills: Iterable[Bill], window: PunctualityRange, now: dt.datetime) -> list[Bill]:
    start = window_start(window, now)
    return [bill for bill in bills if bill.due_date is not None and start <= bill.due_date <= now]


def punctuality(
    bills: Iterable[Bill],
    members: Sequence[Member],
    window: PunctualityRange,
    now: dt.datetime,
) -> list[Punctuality]:
    """
    Share of each member's bills paid, best first.

    A member with no bills in the window scores 100.
    """
    in_window = bills_in_window(bills, window, now)
    results: list[Punctuality] = []
    for member in members:
        total_shares = 0
        paid_shares = 0
        for bill in in_window:
            share = bill.share_for(member.id)
            if share is None:
                continue
            total_shares += 1
            if share.status == "Paid":
                paid_shares += 1
        results.append(
            Punctuality(
                member_id=member.id,
                member_name=member.name,
                paid_shares=paid_shares,
                total_shares=total_shares,
                percent=percent(paid_shares, total_shares, default=100),
            )
        )
    return sorted(results, key=lambda row: row.percent, reverse=True)


def punctuality_band(value: int) -> PunctualityBand:
    if value >= GOOD_THRESHOLD:
        return "green"
    if value >= FAIR_THRESHOLD:
        return "yellow"
    return "red"
