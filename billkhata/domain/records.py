"""Conversion of raw API JSON into domain records.

The API returns ``_id`` or ``id`` for record ids, and ``userId`` either as a
plain string or as an embedded ``{"_id": ..., "name": ...}`` object. All of
that is resolved here so aggregation code only ever sees normalised records.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar, cast

from billkhata.domain.models import (
    APPROVAL_STATUSES,
    PAYMENT_STATUSES,
    ROLES,
    ROOM_STATUSES,
    ZERO,
    ApprovalStatus,
    Bill,
    BillShare,
    Deposit,
    Expense,
    ExpenseCategory,
    MealFinalization,
    MealRecord,
    Member,
    PaymentStatus,
    Role,
    RoomStatus,
)

T = TypeVar("T")


class RecordError(ValueError):
    """Raised when an API payload cannot be turned into a domain record."""


def normalize_id(value: object) -> str | None:
    """Return the string id of a plain id or an embedded ``{_id}``/``{id}`` object."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        inner = value.get("_id", value.get("id"))
        return normalize_id(inner)
    text = str(value).strip()
    return text or None


def embedded_name(value: object) -> str | None:
    """Name carried by an embedded user object, if any."""
    if isinstance(value, Mapping):
        name = value.get("name")
        if isinstance(name, str) and name:
            return name
    return None


def parse_timestamp(value: object, tz: dt.tzinfo | None = None) -> dt.datetime | None:
    """
    Parse an ISO-8601 timestamp or date into a naive local datetime.

    Aware timestamps are converted to ``tz`` (the process local zone when None)
    before dropping the offset, so month bucketing follows the local calendar.
    Unparseable values return None.
    """
    if isinstance(value, dt.datetime):
        parsed = value
    elif isinstance(value, dt.date):
        parsed = dt.datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = dt.datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(tz).replace(tzinfo=None)
    return parsed


def to_decimal(value: object) -> Decimal:
    """Coerce a JSON number or numeric string to Decimal; anything else is 0."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        return ZERO
    if isinstance(value, (int, float)):
        text = str(value)
    elif isinstance(value, str):
        text = value.strip()
    else:
        return ZERO
    try:
        result = Decimal(text)
    except InvalidOperation:
        return ZERO
    return result if result.is_finite() else ZERO


def _mapping(raw: object, kind: str) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        raise RecordError(f"{kind} payload must be an object, got {type(raw).__name__}")
    return cast(Mapping[str, Any], raw)


def _record_id(data: Mapping[str, Any], kind: str) -> str:
    record_id = normalize_id(data.get("_id", data.get("id")))
    if record_id is None:
        raise RecordError(f"{kind} payload has no id")
    return record_id


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


def _choice(value: object, allowed: tuple[T, ...], default: T) -> T:
    for option in allowed:
        if value == option:
            return option
    return default


def parse_share(raw: object) -> BillShare:
    data = _mapping(raw, "share")
    user_id = normalize_id(data.get("userId"))
    if user_id is None:
        raise RecordError("share payload has no userId")
    status: PaymentStatus = _choice(data.get("status"), PAYMENT_STATUSES, "Unpaid")
    return BillShare(
        user_id=user_id,
        user_name=str(data.get("userName") or embedded_name(data.get("userId")) or "Unknown"),
        amount=to_decimal(data.get("amount")),
        status=status,
        paid_from_meal_fund=bool(data.get("paidFromMealFund", False)),
    )


def parse_bill(raw: object) -> Bill:
    data = _mapping(raw, "bill")
    shares = data.get("shares") or []
    if not isinstance(shares, list):
        raise RecordError("bill shares must be a list")
    return Bill(
        id=_record_id(data, "bill"),
        khata_id=str(data.get("khataId") or ""),
        title=str(data.get("title") or ""),
        total_amount=to_decimal(data.get("totalAmount")),
        due_date=parse_timestamp(data.get("dueDate")),
        category=str(data.get("category") or "Others"),
        shares=tuple(parse_share(share) for share in shares),
        description=str(data.get("description") or ""),
        created_by=normalize_id(data.get("createdBy")),
    )


def parse_meal(raw: object) -> MealRecord:
    data = _mapping(raw, "meal")
    user = data.get("userId")
    return MealRecord(
        id=normalize_id(data.get("_id", data.get("id"))),
        user_id=normalize_id(user),
        user_name=str(data.get("userName") or embedded_name(user) or "Unknown"),
        date=parse_timestamp(data.get("date")),
        breakfast=to_decimal(data.get("breakfast")),
        lunch=to_decimal(data.get("lunch")),
        dinner=to_decimal(data.get("dinner")),
    )


def parse_deposit(raw: object) -> Deposit:
    data = _mapping(raw, "deposit")
    user = data.get("userId")
    status: ApprovalStatus = _choice(data.get("status"), APPROVAL_STATUSES, "Pending")
    return Deposit(
        id=_record_id(data, "deposit"),
        user_id=normalize_id(user),
        user_name=str(data.get("userName") or embedded_name(user) or "Unknown"),
        amount=to_decimal(data.get("amount")),
        payment_method=str(data.get("paymentMethod") or ""),
        status=status,
        created_at=parse_timestamp(data.get("createdAt")),
        transaction_id=_optional_str(data.get("transactionId")),
        screenshot_url=_optional_str(data.get("screenshotUrl")),
    )


def parse_expense(raw: object) -> Expense:
    data = _mapping(raw, "expense")
    user = data.get("userId")
    status: ApprovalStatus = _choice(data.get("status"), APPROVAL_STATUSES, "Pending")
    category: ExpenseCategory = _choice(data.get("category"), ("Shopping", "BillPayment"), "Shopping")
    return Expense(
        id=_record_id(data, "expense"),
        user_id=normalize_id(user),
        user_name=str(data.get("userName") or embedded_name(user) or "Unknown"),
        amount=to_decimal(data.get("amount")),
        items=str(data.get("items") or ""),
        status=status,
        created_at=parse_timestamp(data.get("createdAt")),
        notes=_optional_str(data.get("notes")),
        receipt_url=_optional_str(data.get("receiptUrl")),
        category=category,
    )


def parse_member(raw: object) -> Member:
    data = _mapping(raw, "member")
    role: Role = _choice(data.get("role"), ROLES, "Member")
    room_status: RoomStatus = _choice(data.get("roomStatus"), ROOM_STATUSES, "Approved")
    return Member(
        id=_record_id(data, "member"),
        name=str(data.get("name") or "Unknown"),
        role=role,
        room_status=room_status,
        khata_id=_optional_str(data.get("khataId")),
        email=_optional_str(data.get("email")),
        phone=_optional_str(data.get("phone")),
        whatsapp=_optional_str(data.get("whatsapp")),
        facebook=_optional_str(data.get("facebook")),
    )


def parse_finalization(raw: object, day: str) -> MealFinalization:
    data = _mapping(raw, "finalization")
    detail = data.get("finalization")
    finalized_by = normalize_id(detail.get("finalizedBy")) if isinstance(detail, Mapping) else None
    return MealFinalization(date=day, is_finalized=bool(data.get("isFinalized", False)), finalized_by=finalized_by)


def serialize_share(share: BillShare) -> dict[str, Any]:
    """Share in the wire shape the bills endpoints accept."""
    return {
        "userId": share.user_id,
        "userName": share.user_name,
        "amount": float(share.amount),
        "status": share.status,
    }


def parse_many(raw: object, parser: Any) -> tuple[list[Any], list[str]]:
    """
    Parse a JSON array with ``parser``.

    Returns (records, errors). Entries that fail to parse are skipped and
    reported in ``errors`` instead of failing the whole collection.
    """
    if not isinstance(raw, Iterable) or isinstance(raw, (str, bytes, Mapping)):
        raise RecordError(f"expected a JSON array, got {type(raw).__name__}")
    records: list[Any] = []
    errors: list[str] = []
    for index, item in enumerate(raw):
        try:
            records.append(parser(item))
        except RecordError as exc:
            errors.append(f"item {index}: {exc}")
    return records, errors
