"""Request tagging so a slow response cannot overwrite newer state."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Generic, TypeVar

K = TypeVar("K")


@dataclass(frozen=True)
class Ticket(Generic[K]):
    sequence: int
    key: K


class LatestRequestGuard(Generic[K]):
    """
    Hands out tickets for fetches; only the newest ticket may apply its result.

    A state container issues a ticket before awaiting a fetch and checks
    ``is_current`` before storing the response.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._latest: Ticket[K] | None = None

    def issue(self, key: K) -> Ticket[K]:
        ticket = Ticket(sequence=next(self._counter), key=key)
        self._latest = ticket
        return ticket

    def is_current(self, ticket: Ticket[K]) -> bool:
        return self._latest is not None and self._latest.sequence == ticket.sequence

    @property
    def latest_key(self) -> K | None:
        return self._latest.key if self._latest is not None else None
