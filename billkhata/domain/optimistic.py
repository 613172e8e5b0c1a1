"""Optimistic removal from a local collection with rollback."""

from __future__ import annotations

from collections.abc import Callable
from typing import Generic, Literal, TypeVar

T = TypeVar("T")

OptimisticState = Literal["ready", "applied", "committed", "rolled_back"]


class OptimisticStateError(RuntimeError):
    """Raised when apply/commit/rollback are called out of order."""


class OptimisticUpdate(Generic[T]):
    """
    Remove matching items from ``collection`` before the server confirms.

    ``apply()`` captures the removed items (the pre-image) and mutates the
    list in place. ``rollback()`` puts them back, so the collection holds the
    same items it held before ``apply()``. ``commit()`` drops the pre-image.
    Each step runs at most once.
    """

    def __init__(self, collection: list[T], predicate: Callable[[T], bool]) -> None:
        self._collection = collection
        self._predicate = predicate
        self._removed: list[T] = []
        self.state: OptimisticState = "ready"

    @property
    def removed(self) -> tuple[T, ...]:
        return tuple(self._removed)

    def apply(self) -> bool:
        """Remove matching items. Returns False when nothing matched."""
        if self.state != "ready":
            raise OptimisticStateError(f"cannot apply from state {self.state}")
        kept: list[T] = []
        for item in self._collection:
            if self._predicate(item):
                self._removed.append(item)
            else:
                kept.append(item)
        self._collection[:] = kept
        self.state = "applied"
        return bool(self._removed)

    def commit(self) -> None:
        if self.state != "applied":
            raise OptimisticStateError(f"cannot commit from state {self.state}")
        self._removed = []
        self.state = "committed"

    def rollback(self) -> None:
        if self.state != "applied":
            raise OptimisticStateError(f"cannot roll back from state {self.state}")
        self._collection.extend(self._removed)
        self._removed = []
        self.state = "rolled_back"
