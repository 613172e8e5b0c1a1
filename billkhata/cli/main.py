#!/usr/bin/env python3

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence

from billkhata.domain.punctuality import DEFAULT_RANGE, RANGE_MONTHS
from billkhata.runtime import SettingsError, get_settings, parse_log_level, reset_settings, set_log_level


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    from billkhata.cli.room import date_arg, meals_arg, period_arg

    parser = argparse.ArgumentParser(
        description="Shared room finances CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  summary [--month YYYY-MM] [--member ID]
                             Monthly room summary and member breakdown
  payments [--month] [--range]
                             Manager payment dashboard with punctuality
  pending                    List pending approvals
  approve <kind> <id>        Approve a member, bill payment, expense or deposit
  reject <kind> <id>         Reject a bill payment, expense or deposit
  meal <date>                Log meals for a day
  finalize <date>            Lock a day's meals (managers)
  serve [--host] [--port]    Start the summary server

Settings come from ~/.config/billkhata/config.toml and BILLKHATA_* env vars.
""",
    )
    parser.add_argument("--khata", help="Room id (default: BILLKHATA_KHATA_ID)")
    parser.add_argument("--user", help="Acting user id (default: BILLKHATA_USER_ID)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    summary_parser = subparsers.add_parser("summary", help="Monthly room summary")
    summary_parser.add_argument("--month", type=period_arg, help="Month as YYYY-MM (default: current month)")
    summary_parser.add_argument("--member", help="Only show this member's row")

    payments_parser = subparsers.add_parser("payments", help="Manager payment dashboard")
    payments_parser.add_argument("--month", type=period_arg, help="Month as YYYY-MM (default: current month)")
    payments_parser.add_argument(
        "--range",
        default=DEFAULT_RANGE,
        help=f"Punctuality window: {', '.join(RANGE_MONTHS)} (default: {DEFAULT_RANGE})",
    )

    subparsers.add_parser("pending", help="List pending approvals")

    approve_parser = subparsers.add_parser("approve", help="Approve a pending item")
    approve_kinds = approve_parser.add_subparsers(dest="kind", help="What to approve")
    approve_kinds.add_parser("member", help="Approve a join request").add_argument("id", help="User id")
    approve_bill = approve_kinds.add_parser("bill", help="Approve a bill share payment")
    approve_bill.add_argument("id", help="Bill id")
    approve_bill.add_argument("member_id", help="Member whose share was paid")
    approve_kinds.add_parser("expense", help="Approve an expense").add_argument("id", help="Expense id")
    approve_kinds.add_parser("deposit", help="Approve a deposit").add_argument("id", help="Deposit id")

    reject_parser = subparsers.add_parser("reject", help="Reject a pending item")
    reject_kinds = reject_parser.add_subparsers(dest="kind", help="What to reject")
    reject_bill = reject_kinds.add_parser("bill", help="Reset a bill share payment to Unpaid")
    reject_bill.add_argument("id", help="Bill id")
    reject_bill.add_argument("member_id", help="Member whose share was reported paid")
    for kind in ("expense", "deposit"):
        kind_parser = reject_kinds.add_parser(kind, help=f"Reject a {kind}")
        kind_parser.add_argument("id", help=f"{kind.capitalize()} id")
        kind_parser.add_argument("--reason", help="Reason shown to the member")

    meal_parser = subparsers.add_parser("meal", help="Log meals for a day")
    meal_parser.add_argument("date", type=date_arg, help="Day as YYYY-MM-DD")
    meal_parser.add_argument("--breakfast", type=meals_arg, default=meals_arg("0"), help="Breakfast count")
    meal_parser.add_argument("--lunch", type=meals_arg, default=meals_arg("0"), help="Lunch count")
    meal_parser.add_argument("--dinner", type=meals_arg, default=meals_arg("0"), help="Dinner count")
    meal_parser.add_argument("--for", dest="member_id", help="Log for another member (managers)")

    finalize_parser = subparsers.add_parser("finalize", help="Lock a day's meals")
    finalize_parser.add_argument("date", type=date_arg, help="Day as YYYY-MM-DD")

    serve_parser = subparsers.add_parser("serve", help="Start the summary server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=8080, help="Port to bind to (default: 8080)")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    reset_settings()
    try:
        settings = get_settings()
    except SettingsError as e:
        print(f"Error: {e}")
        return 1
    if args.verbose:
        set_log_level(logging.DEBUG)
    elif settings.log_level:
        set_log_level(parse_log_level(settings.log_level))

    if args.command in ("approve", "reject") and args.kind is None:
        print(f"Specify what to {args.command}.")
        return 1

    if args.command == "summary":
        from billkhata.cli.room import cmd_summary

        return cmd_summary(args)
    elif args.command == "payments":
        from billkhata.cli.room import cmd_payments

        return cmd_payments(args)
    elif args.command == "pending":
        from billkhata.cli.room import cmd_pending

        return cmd_pending(args)
    elif args.command == "approve":
        from billkhata.cli.room import cmd_approve

        return cmd_approve(args)
    elif args.command == "reject":
        from billkhata.cli.room import cmd_reject

        return cmd_reject(args)
    elif args.command == "meal":
        from billkhata.cli.room import cmd_meal

        return cmd_meal(args)
    elif args.command == "finalize":
        from billkhata.cli.room import cmd_finalize

        return cmd_finalize(args)
    elif args.command == "serve":
        from billkhata.cli.room import cmd_serve

        return cmd_serve(args)

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
