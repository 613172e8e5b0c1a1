"""Shared helpers for CLI commands."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from dataclasses import replace

from billkhata.domain.models import Member
from billkhata.runtime import KhataApiClient, Settings, SettingsError, get_logger, get_settings

logger = get_logger(__name__)


class CommandError(RuntimeError):
    """A command cannot run with the given settings; the message is shown to the user."""


def resolve_settings(args: argparse.Namespace) -> Settings:
    """Apply ``--khata``/``--user`` flags over the configured settings."""
    try:
        return get_settings().with_overrides(
            {
                "khata_id": getattr(args, "khata", None),
                "user_id": getattr(args, "user", None),
            }
        )
    except SettingsError as e:
        raise CommandError(str(e)) from e


def require_khata(settings: Settings) -> str:
    if not settings.khata_id:
        raise CommandError("No room selected. Pass --khata or set BILLKHATA_KHATA_ID.")
    return settings.khata_id


def open_client(settings: Settings) -> KhataApiClient:
    return KhataApiClient.from_settings(settings)


async def load_current_user(client: KhataApiClient, settings: Settings) -> Member:
    """
    Find the configured user among the room's members.

    Raises:
        CommandError: If no user is configured or the user is not in the room.
    """
    khata_id = require_khata(settings)
    if not settings.user_id:
        raise CommandError("No user configured. Pass --user or set BILLKHATA_USER_ID.")

    for member in await client.get_members(khata_id):
        if member.id == settings.user_id:
            if member.khata_id is None:
                member = replace(member, khata_id=khata_id)
            logger.debug("Acting as %s (%s)", member.name, member.role)
            return member
    raise CommandError(f"User {settings.user_id} is not an approved member of room {khata_id}.")


def print_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
    """Print rows as left-aligned columns sized to their widest cell."""
    widths = [len(header) for header in headers]
    for row in rows:
        for index, cell in enumerate(row):
            widths[index] = max(widths[index], len(cell))

    def render(cells: Sequence[str]) -> str:
        return "  ".join(cell.ljust(width) for cell, width in zip(cells, widths, strict=False)).rstrip()

    print(render(headers))
    print("-" * (sum(widths) + 2 * (len(widths) - 1)))
    for row in rows:
        print(render(row))
