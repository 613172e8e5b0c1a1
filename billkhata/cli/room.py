"""Room command handlers used by the unified CLI."""

from __future__ import annotations

import argparse
import asyncio
import datetime as dt
from collections.abc import Coroutine
from decimal import Decimal, InvalidOperation
from typing import Any

from billkhata.application.approvals import ApprovalBoard
from billkhata.application.history import HistoryRequest, run_history
from billkhata.application.meals import MealEntryRequest, run_finalize_day, run_submit_meal
from billkhata.application.notifications import LoggingNotificationSink
from billkhata.application.payments import PaymentDashboardRequest, run_payment_dashboard
from billkhata.cli.common import (
    CommandError,
    load_current_user,
    open_client,
    print_table,
    require_khata,
    resolve_settings,
)
from billkhata.domain.funds import balance_label
from billkhata.domain.models import MemberSummary, MonthlySummary
from billkhata.domain.money import format_taka
from billkhata.domain.periods import PeriodKey
from billkhata.domain.punctuality import parse_range
from billkhata.runtime import ApiError, KhataApiClient, Settings, get_logger

logger = get_logger(__name__)


def period_arg(text: str) -> PeriodKey:
    """argparse type for ``YYYY-MM``."""
    try:
        return PeriodKey.parse(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def date_arg(text: str) -> dt.date:
    try:
        return dt.date.fromisoformat(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid date (expected YYYY-MM-DD): {text!r}") from e


def meals_arg(text: str) -> Decimal:
    try:
        return Decimal(text)
    except InvalidOperation as e:
        raise argparse.ArgumentTypeError(f"Invalid meal count: {text!r}") from e


def _count(value: Decimal) -> str:
    return f"{float(value):g}"


def _run(coro: Coroutine[Any, Any, int]) -> int:
    try:
        return asyncio.run(coro)
    except CommandError as e:
        print(f"Error: {e}")
        return 1
    except ApiError as e:
        logger.debug("API call failed", exc_info=True)
        print(f"Error: {e.message}")
        return 1


def _print_summary(period: PeriodKey, summary: MonthlySummary, members: list[MemberSummary]) -> None:
    print(f"\nMonthly summary for {period.label()}")
    print("-" * 60)
    print(f"  Total bills      {format_taka(summary.total_bills):>14}")
    print(f"    Paid           {format_taka(summary.total_paid):>14}")
    print(f"    Pending        {format_taka(summary.total_pending):>14}")
    print(f"    Unpaid         {format_taka(summary.total_unpaid):>14}")
    print(f"  Deposits         {format_taka(summary.total_deposits):>14}")
    print(f"  Meal cost        {format_taka(summary.total_meal_cost):>14}")
    print(f"  Meal rate        {format_taka(summary.meal_rate):>14}")
    print(f"  Fund balance     {format_taka(summary.total_due):>14}")
    print(f"  Total meals      {_count(summary.total_meals):>14}")
    print(f"  Most meals       {summary.max_meal_taker.name} ({_count(summary.max_meal_taker.count)})")
    print(f"  Fewest meals     {summary.min_meal_taker.name} ({_count(summary.min_meal_taker.count)})")
    print("-" * 60)

    if not members:
        print("No members found")
        return

    rows = [
        [
            row.member_name,
            format_taka(row.bills_due),
            format_taka(row.paid),
            format_taka(row.pending),
            format_taka(row.unpaid),
            _count(row.total_meals),
            format_taka(row.deposits),
            f"{balance_label(row.refund_or_due)} {format_taka(abs(row.refund_or_due))}",
        ]
        for row in members
    ]
    print()
    print_table(["Member", "Bills due", "Paid", "Pending", "Unpaid", "Meals", "Deposits", "Refund/Due"], rows)


async def _summary(args: argparse.Namespace) -> int:
    settings = resolve_settings(args)
    khata_id = require_khata(settings)
    period: PeriodKey = args.month or PeriodKey.of(dt.date.today())

    async with open_client(settings) as client:
        result = await run_history(
            client,
            HistoryRequest(khata_id=khata_id, period=period, member_id=args.member),
            LoggingNotificationSink(),
        )

    if result.status != "ok" or result.summary is None:
        print(f"Error: {result.error or 'Failed to load history data'}")
        return 1
    _print_summary(result.period, result.summary, result.members)
    return 0


def cmd_summary(args: argparse.Namespace) -> int:
    """Print the room's monthly summary and per-member breakdown."""
    return _run(_summary(args))


async def _payments(args: argparse.Namespace) -> int:
    settings = resolve_settings(args)
    khata_id = require_khata(settings)
    period: PeriodKey = args.month or PeriodKey.of(dt.date.today())
    try:
        window = parse_range(args.range)
    except ValueError as e:
        raise CommandError(str(e)) from e

    async with open_client(settings) as client:
        user = await load_current_user(client, settings)
        result = await run_payment_dashboard(
            client,
            PaymentDashboardRequest(khata_id=khata_id, period=period, window=window),
            user,
            LoggingNotificationSink(),
        )

    if result.status != "ok" or result.overview is None:
        print(f"Error: {result.error}")
        return 1

    overview = result.overview
    print(f"\nPayments for {period.label()}")
    print("-" * 60)
    print(f"  Total amount     {format_taka(overview.total_amount):>14}")
    print(f"  Bills            {overview.total_bills:>14}")
    print(f"  Fully paid       {overview.fully_paid:>14}  ({overview.paid_percent}%)")
    print(f"  Pending          {overview.pending:>14}  ({overview.pending_percent}%)")
    print("-" * 60)

    print()
    print_table(
        ["Member", "Total due", "Paid", "Pending", "Status"],
        [
            [
                row.member_name,
                format_taka(row.total_due),
                format_taka(row.paid),
                format_taka(row.pending),
                "All Paid" if row.all_paid else f"{row.pending_count} Pending",
            ]
            for row in result.members
        ],
    )

    print(f"\nPunctuality ({window})")
    print_table(
        ["Member", "Paid", "Score"],
        [
            [row.member_name, f"{row.paid_shares}/{row.total_shares}", f"{row.percent}% ({row.band})"]
            for row in result.punctuality
        ],
    )
    return 0


def cmd_payments(args: argparse.Namespace) -> int:
    """Print the manager payment dashboard."""
    return _run(_payments(args))


async def _load_board(client: KhataApiClient, settings: Settings) -> ApprovalBoard:
    user = await load_current_user(client, settings)
    if not user.is_manager():
        raise CommandError("Only managers can review pending approvals.")
    board = ApprovalBoard(client, user, LoggingNotificationSink())
    if not await board.load():
        raise CommandError("Failed to load pending approvals.")
    return board


async def _pending(args: argparse.Namespace) -> int:
    settings = resolve_settings(args)
    async with open_client(settings) as client:
        board = await _load_board(client, settings)

    if board.total_pending() == 0:
        print("No pending approvals")
        return 0

    if board.member_requests:
        print(f"\nMember requests ({len(board.member_requests)}):")
        for member in board.member_requests:
            print(f"  {member.id}  {member.name}  {member.email or ''}".rstrip())
    if board.bill_payments:
        print(f"\nBill payments ({len(board.bill_payments)}):")
        for item in board.bill_payments:
            print(f"  {item.bill.id}  {item.share.user_id}  {format_taka(item.share.amount):>12}  {item.bill.title}")
    if board.expenses:
        print(f"\nExpenses ({len(board.expenses)}):")
        for expense in board.expenses:
            print(f"  {expense.id}  {format_taka(expense.amount):>12}  {expense.user_name}  {expense.items}")
    if board.deposits:
        print(f"\nDeposits ({len(board.deposits)}):")
        for deposit in board.deposits:
            print(f"  {deposit.id}  {format_taka(deposit.amount):>12}  {deposit.user_name}")
    print(f"\nTotal: {board.total_pending()} item(s) awaiting review")
    return 0


def cmd_pending(args: argparse.Namespace) -> int:
    """List everything waiting for a manager."""
    return _run(_pending(args))


async def _decide(args: argparse.Namespace, approve: bool) -> int:
    settings = resolve_settings(args)
    async with open_client(settings) as client:
        board = await _load_board(client, settings)
        reason = getattr(args, "reason", None)
        if args.kind == "member":
            ok = await board.approve_member(args.id)
        elif args.kind == "bill":
            if approve:
                ok = await board.approve_bill_payment(args.id, args.member_id)
            else:
                ok = await board.deny_bill_payment(args.id, args.member_id)
        elif args.kind == "expense":
            ok = await board.approve_expense(args.id) if approve else await board.reject_expense(args.id, reason)
        elif args.kind == "deposit":
            ok = await board.approve_deposit(args.id) if approve else await board.reject_deposit(args.id, reason)
        else:
            raise CommandError(f"Unsupported kind: {args.kind}")

    verb = "Approved" if approve else "Rejected"
    if not ok:
        print(f"Nothing {verb.lower()}: {args.kind} {args.id} is not pending or the request failed")
        return 1
    print(f"{verb} {args.kind} {args.id}")
    return 0


def cmd_approve(args: argparse.Namespace) -> int:
    return _run(_decide(args, approve=True))


def cmd_reject(args: argparse.Namespace) -> int:
    return _run(_decide(args, approve=False))


async def _meal(args: argparse.Namespace) -> int:
    settings = resolve_settings(args)
    async with open_client(settings) as client:
        user = await load_current_user(client, settings)
        target = None
        if args.member_id and args.member_id != user.id:
            members = await client.get_members(require_khata(settings))
            target = next((member for member in members if member.id == args.member_id), None)
            if target is None:
                raise CommandError(f"Member {args.member_id} not found")
        result = await run_submit_meal(
            client,
            MealEntryRequest(
                day=args.date,
                breakfast=args.breakfast,
                lunch=args.lunch,
                dinner=args.dinner,
                target=target,
            ),
            user,
            LoggingNotificationSink(),
        )

    if result.status == "locked":
        print(f"Meals for {args.date.isoformat()} are finalized")
        return 1
    if result.status != "ok":
        print(f"Error: {result.error or result.status}")
        return 1
    print(f"Saved meals for {args.date.isoformat()}")
    return 0


def cmd_meal(args: argparse.Namespace) -> int:
    """Log one day's meals."""
    return _run(_meal(args))


async def _finalize(args: argparse.Namespace) -> int:
    settings = resolve_settings(args)
    async with open_client(settings) as client:
        user = await load_current_user(client, settings)
        result = await run_finalize_day(client, args.date, user, LoggingNotificationSink())

    if result.status != "ok":
        print(f"Error: {result.error or 'Only managers can finalize meals.'}")
        return 1
    print(f"Finalized meals for {args.date.isoformat()}")
    return 0


def cmd_finalize(args: argparse.Namespace) -> int:
    return _run(_finalize(args))


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the FastAPI summary server."""
    import uvicorn

    from billkhata.application import server

    print(f"Starting summary server on {args.host}:{args.port}")
    print(f"Endpoints: http://{args.host}:{args.port}/rooms/<khata>/summary | /punctuality | /bills | /events")
    print("Press Ctrl+C to stop")

    uvicorn.run(server.app, host=args.host, port=args.port)
    return 0
