"""Real-time event fan-out.

Events arrive on ``room-{khataId}`` and ``user-{userId}`` topics. Payloads are
never interpreted: every event only tells subscribers that their data for
that topic is stale and should be fetched again.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from billkhata.runtime.logging import get_logger

logger = get_logger(__name__)

KNOWN_EVENTS = frozenset(
    {
        "new-bill",
        "new-bill-payment",
        "bill-approved",
        "bill-rejected",
        "new-deposit",
        "deposit-approved",
        "deposit-rejected",
        "new-expense",
        "expense-approved",
        "expense-rejected",
        "new-join-request",
        "member-approved",
        "member-rejected",
        "meal-updated",
        "menu-updated",
        "fund-update",
        "pending-count-update",
        "shopping-roster-updated",
    }
)

EventCallback = Callable[["RealtimeEvent"], Awaitable[None]]


def room_topic(khata_id: str) -> str:
    return f"room-{khata_id}"


def user_topic(user_id: str) -> str:
    return f"user-{user_id}"


def topic_scope(topic: str) -> tuple[str, str] | None:
    """Split ``room-abc`` into ("room", "abc"); None for unknown topics."""
    for prefix in ("room", "user"):
        marker = f"{prefix}-"
        if topic.startswith(marker) and len(topic) > len(marker):
            return prefix, topic[len(marker) :]
    return None


@dataclass(frozen=True)
class RealtimeEvent:
    topic: str
    name: str
    data: Any = field(default=None, compare=False)


def parse_webhook(body: Mapping[str, Any]) -> list[RealtimeEvent]:
    """
    Extract events from a webhook body.

    Accepts the batched ``{"events": [{"channel", "event", "data"}]}`` form and
    a single ``{"channel", "event"}`` object. Entries without a channel or
    event name are dropped.
    """
    raw_events = body.get("events")
    entries = raw_events if isinstance(raw_events, list) else [body]
    events: list[RealtimeEvent] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        topic = entry.get("channel")
        name = entry.get("event") or entry.get("name")
        if not isinstance(topic, str) or not isinstance(name, str):
            continue
        events.append(RealtimeEvent(topic=topic, name=name, data=entry.get("data")))
    return events


class EventHub:
    """Topic-scoped subscriber registry."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventCallback]] = defaultdict(list)

    def subscribe(self, topic: str, callback: EventCallback) -> Callable[[], None]:
        """Register ``callback`` for ``topic``; returns a function that unsubscribes it."""
        self._subscribers[topic].append(callback)
        logger.debug("Subscribed %s to %s", getattr(callback, "__name__", callback), topic)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(topic)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del self._subscribers[topic]

        return unsubscribe

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    async def publish(self, event: RealtimeEvent) -> int:
        """Notify every subscriber of the event's topic. Returns how many were notified."""
        if event.name not in KNOWN_EVENTS:
            logger.debug("Unrecognized event %s on %s; treating as invalidation", event.name, event.topic)
        callbacks = list(self._subscribers.get(event.topic, ()))
        notified = 0
        for callback in callbacks:
            try:
                await callback(event)
            except Exception as e:
                logger.warning("Subscriber failed for %s on %s: %s", event.name, event.topic, e)
                continue
            notified += 1
        return notified
