"""Splitting a bill total into member shares."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from decimal import Decimal
from typing import Literal

from billkhata.domain.models import ZERO, BillShare
from billkhata.domain.money import round_money

SplitMode = Literal["EQUAL", "CUSTOM"]

CREATE_TOLERANCE = Decimal("1")
EDIT_TOLERANCE = Decimal("0.01")


class SplitMismatchError(ValueError):
    """Raised when custom share amounts do not add up to the bill total."""

    def __init__(self, assigned: Decimal, total: Decimal) -> None:
        super().__init__(
            f"Total assigned (৳{round_money(assigned)}) must equal Bill Total (৳{round_money(total)})"
        )
        self.assigned = assigned
        self.total = total


def per_person_amount(total: Decimal | None, count: int) -> Decimal:
    """Equal share of ``total``; 0 when nobody is selected or the total is missing."""
    if total is None or not total.is_finite() or count <= 0:
        return ZERO
    return total / count


def assigned_amount(custom_amounts: Mapping[str, Decimal], member_ids: Sequence[str]) -> Decimal:
    return sum((custom_amounts.get(member_id, ZERO) for member_id in member_ids), ZERO)


def remaining_amount(
    total: Decimal | None,
    custom_amounts: Mapping[str, Decimal],
    member_ids: Sequence[str],
) -> Decimal:
    """What is left to assign in custom mode (negative when over-assigned)."""
    return (total or ZERO) - assigned_amount(custom_amounts, member_ids)


def seed_custom_amounts(
    existing: Mapping[str, Decimal],
    member_ids: Sequence[str],
    total: Decimal | None,
) -> dict[str, Decimal]:
    """
    Pre-fill custom amounts with the equal split.

    Members that already have an amount keep it; only newly selected members
    get the equal-split default.
    """
    seeded = dict(existing)
    if total is None or not member_ids:
        return seeded
    equal = round_money(per_person_amount(total, len(member_ids)))
    for member_id in member_ids:
        seeded.setdefault(member_id, equal)
    return seeded


def validate_custom_split(
    total: Decimal,
    custom_amounts: Mapping[str, Decimal],
    member_ids: Sequence[str],
    tolerance: Decimal = CREATE_TOLERANCE,
) -> Decimal:
    """Return the assigned sum, or raise SplitMismatchError if it misses ``total`` by more than ``tolerance``."""
    assigned = assigned_amount(custom_amounts, member_ids)
    if abs(assigned - total) > tolerance:
        raise SplitMismatchError(assigned, total)
    return assigned


def build_shares(
    mode: SplitMode,
    total: Decimal,
    members: Sequence[tuple[str, str]],
    custom_amounts: Mapping[str, Decimal] | None = None,
) -> list[BillShare]:
    """
    Build unpaid shares for ``members`` given as (id, name) pairs.

    Custom amounts are validated against ``total`` first; nothing is returned
    for a mismatched split.
    """
    member_ids = [member_id for member_id, _ in members]
    if mode == "EQUAL":
        amount = per_person_amount(total, len(members))
        return [BillShare(user_id=member_id, user_name=name, amount=amount) for member_id, name in members]

    amounts = custom_amounts or {}
    validate_custom_split(total, amounts, member_ids)
    return [
        BillShare(user_id=member_id, user_name=name, amount=amounts.get(member_id, ZERO))
        for member_id, name in members
    ]


def detect_split_mode(shares: Sequence[BillShare]) -> tuple[SplitMode, dict[str, Decimal]]:
    """
    Work out how an existing bill was split.

    Equal when there is more than one share and every amount is within 0.01 of
    the first; otherwise custom, returning the current amounts as the seed.
    """
    if len(shares) > 1:
        first = shares[0].amount
        if all(abs(share.amount - first) < EDIT_TOLERANCE for share in shares):
            return "EQUAL", {}
    if not shares:
        return "EQUAL", {}
    return "CUSTOM", {share.user_id: share.amount for share in shares}


def resplit_shares(
    shares: Sequence[BillShare],
    mode: SplitMode,
    total: Decimal,
    custom_amounts: Mapping[str, Decimal] | None = None,
) -> list[BillShare]:
    """Recompute amounts of an existing bill's shares, keeping members and statuses."""
    member_ids = [share.user_id for share in shares]
    if mode == "EQUAL":
        amount = per_person_amount(total, len(shares)) if total > 0 else ZERO
        return [replace(share, amount=round_money(amount)) for share in shares]

    amounts = custom_amounts or {}
    if abs(assigned_amount(amounts, member_ids) - total) >= EDIT_TOLERANCE:
        raise SplitMismatchError(assigned_amount(amounts, member_ids), total)
    return [replace(share, amount=round_money(amounts.get(share.user_id, ZERO))) for share in shares]
