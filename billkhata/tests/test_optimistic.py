"""Tests for optimistic removal and the latest-request guard."""

from __future__ import annotations

import pytest

from billkhata.application.refresh import LatestRequestGuard
from billkhata.domain.optimistic import OptimisticStateError, OptimisticUpdate


def test_rollback_restores_pre_state() -> None:
    items = ["a", "b", "c", "b"]
    before = sorted(items)

    update = OptimisticUpdate(items, lambda item: item == "b")
    assert update.apply()
    assert items == ["a", "c"]
    assert update.removed == ("b", "b")

    update.rollback()
    assert sorted(items) == before
    assert update.state == "rolled_back"


def test_commit_keeps_removal() -> None:
    items = [1, 2, 3]
    update = OptimisticUpdate(items, lambda item: item > 1)
    update.apply()
    update.commit()
    assert items == [1]
    assert update.removed == ()
    assert update.state == "committed"


def test_apply_without_match_reports_false() -> None:
    items = [1, 2]
    update = OptimisticUpdate(items, lambda item: item == 9)
    assert not update.apply()
    assert items == [1, 2]


def test_steps_run_once_and_in_order() -> None:
    update = OptimisticUpdate([1], lambda item: True)
    with pytest.raises(OptimisticStateError):
        update.commit()
    with pytest.raises(OptimisticStateError):
        update.rollback()

    update.apply()
    with pytest.raises(OptimisticStateError):
        update.apply()

    update.rollback()
    with pytest.raises(OptimisticStateError):
        update.commit()


def test_latest_request_guard() -> None:
    guard: LatestRequestGuard[str] = LatestRequestGuard()
    first = guard.issue("2024-02")
    second = guard.issue("2024-03")

    assert not guard.is_current(first)
    assert guard.is_current(second)
    assert guard.latest_key == "2024-03"
