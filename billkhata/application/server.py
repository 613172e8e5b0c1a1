"""FastAPI server exposing room summaries and receiving real-time event webhooks."""

from __future__ import annotations

import asyncio
import datetime as dt
from collections.abc import AsyncGenerator, Callable
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from billkhata.application.history import HistoryRequest, HistoryResult, run_history
from billkhata.application.notifications import LoggingNotificationSink
from billkhata.domain.bills import BILL_LIST_FILTERS, classify_bill, filter_bills_by_status
from billkhata.domain.funds import fund_balances
from billkhata.domain.periods import PeriodKey
from billkhata.domain.punctuality import DEFAULT_RANGE, parse_range, punctuality
from billkhata.runtime.api_client import ApiError, KhataApiClient
from billkhata.runtime.events import EventHub, RealtimeEvent, parse_webhook, room_topic, topic_scope
from billkhata.runtime.logging import get_logger

logger = get_logger(__name__)

ClientFactory = Callable[[], KhataApiClient]

DEFAULT_CACHE_SIZE = 256


class SummaryCache:
    """
    Month summaries per room, least recently used dropped past ``max_entries``.

    Any event for a room drops its entries and bumps the room's generation. A
    summary fetched under an older generation is not stored, so a fetch that
    was in flight when the event arrived cannot put pre-event data back.
    """

    def __init__(self, max_entries: int = DEFAULT_CACHE_SIZE) -> None:
        self.max_entries = max_entries
        self._entries: OrderedDict[tuple[str, str, str | None], HistoryResult] = OrderedDict()
        self._room_generations: dict[str, int] = {}
        self._global_generation = 0

    def generation(self, khata_id: str) -> tuple[int, int]:
        return self._global_generation, self._room_generations.get(khata_id, 0)

    def get(self, khata_id: str, period: PeriodKey, member_id: str | None) -> HistoryResult | None:
        key = (khata_id, str(period), member_id)
        result = self._entries.get(key)
        if result is not None:
            self._entries.move_to_end(key)
        return result

    def put(
        self,
        khata_id: str,
        member_id: str | None,
        result: HistoryResult,
        generation: tuple[int, int] | None = None,
    ) -> bool:
        """Store ``result`` unless the room was invalidated since ``generation`` was read."""
        if generation is not None and generation != self.generation(khata_id):
            return False
        key = (khata_id, str(result.period), member_id)
        self._entries[key] = result
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return True

    def invalidate(self, khata_id: str | None = None) -> int:
        """Drop one room's entries, or everything when ``khata_id`` is None."""
        if khata_id is None:
            self._global_generation += 1
            dropped = len(self._entries)
            self._entries.clear()
            return dropped
        self._room_generations[khata_id] = self._room_generations.get(khata_id, 0) + 1
        keys = [key for key in self._entries if key[0] == khata_id]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def __len__(self) -> int:
        return len(self._entries)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"status": "error", "message": message}, status_code=status_code)


def create_app(client_factory: ClientFactory | None = None, hub: EventHub | None = None) -> FastAPI:
    """Build the app. ``client_factory`` defaults to a client built from settings."""
    factory = client_factory or KhataApiClient.from_settings
    cache = SummaryCache()
    event_hub = hub or EventHub()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        client = factory()
        app.state.client = client
        try:
            yield
        finally:
            await client.aclose()

    app = FastAPI(title="BillKhata Summary", lifespan=lifespan)
    app.state.cache = cache
    app.state.hub = event_hub

    def client_for(request: Request) -> KhataApiClient:
        return request.app.state.client

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/rooms/{khata_id}/summary")
    async def month_summary(
        request: Request,
        khata_id: str,
        month: str | None = None,
        member: str | None = None,
    ) -> JSONResponse:
        """Monthly room summary plus per-member breakdown."""
        try:
            period = PeriodKey.parse(month) if month else PeriodKey.of(dt.date.today())
        except ValueError as e:
            return _error(str(e), 400)

        cached = cache.get(khata_id, period, member)
        if cached is not None:
            logger.debug("Serving cached summary for %s %s", khata_id, period)
            result = cached
        else:
            generation = cache.generation(khata_id)
            result = await run_history(
                client_for(request),
                HistoryRequest(khata_id=khata_id, period=period, member_id=member),
                LoggingNotificationSink(),
            )
            if result.status != "ok":
                return _error(result.error or "Failed to load history data", 502)
            if not cache.put(khata_id, member, result, generation):
                logger.debug("Not caching %s %s; room changed during fetch", khata_id, period)

        return JSONResponse(
            jsonable_encoder(
                {
                    "status": "ok",
                    "period": str(result.period),
                    "summary": result.summary,
                    "members": result.members,
                }
            )
        )

    @app.get("/rooms/{khata_id}/punctuality")
    async def member_punctuality(
        request: Request,
        khata_id: str,
        window_text: str = Query(DEFAULT_RANGE, alias="range"),
    ) -> JSONResponse:
        """Punctuality leaderboard over a trailing window."""
        try:
            window = parse_range(window_text)
        except ValueError as e:
            return _error(str(e), 400)

        client = client_for(request)
        try:
            bills, members = await asyncio.gather(client.get_bills(khata_id), client.get_members(khata_id))
        except ApiError as e:
            return _error(e.message, 502)

        rows = punctuality(bills, members, window, dt.datetime.now())
        return JSONResponse(
            jsonable_encoder(
                {
                    "status": "ok",
                    "range": window,
                    "members": [{**jsonable_encoder(row), "band": row.band} for row in rows],
                }
            )
        )

    @app.get("/rooms/{khata_id}/bills")
    async def room_bills(request: Request, khata_id: str, status: str = "All") -> JSONResponse:
        """Bills with their list classification, optionally filtered."""
        if status not in BILL_LIST_FILTERS:
            return _error(f"Unknown status filter {status!r}", 400)
        try:
            bills = await client_for(request).get_bills(khata_id)
        except ApiError as e:
            return _error(e.message, 502)

        now = dt.datetime.now()
        selected = filter_bills_by_status(bills, status, now)  # type: ignore[arg-type]
        return JSONResponse(
            jsonable_encoder(
                {
                    "status": "ok",
                    "bills": [{**jsonable_encoder(bill), "listStatus": classify_bill(bill, now)} for bill in selected],
                }
            )
        )

    @app.get("/rooms/{khata_id}/balances")
    async def room_balances(request: Request, khata_id: str) -> JSONResponse:
        """Each member's standing against the shared fund."""
        client = client_for(request)
        try:
            members, meals, deposits, expenses = await asyncio.gather(
                client.get_members(khata_id),
                client.get_meals(khata_id),
                client.get_deposits(khata_id),
                client.get_expenses(khata_id),
            )
        except ApiError as e:
            return _error(e.message, 502)

        return JSONResponse(
            jsonable_encoder({"status": "ok", "balances": fund_balances(members, meals, deposits, expenses)})
        )

    @app.post("/events")
    async def receive_events(request: Request) -> JSONResponse:
        """Webhook for the pub/sub provider. Every event invalidates cached summaries."""
        try:
            body: Any = await request.json()
        except ValueError:
            return _error("Body must be JSON", 400)
        if not isinstance(body, dict):
            return _error("Body must be a JSON object", 400)

        events = parse_webhook(body)
        dropped = 0
        for event in events:
            dropped += _invalidate_for(cache, event)
            await event_hub.publish(event)
        logger.info("Received %d event(s); dropped %d cached summaries", len(events), dropped)
        return JSONResponse({"status": "ok", "events": len(events), "invalidated": dropped})

    return app


def _invalidate_for(cache: SummaryCache, event: RealtimeEvent) -> int:
    scope = topic_scope(event.topic)
    if scope is None:
        logger.debug("Ignoring event on unknown topic %s", event.topic)
        return 0
    kind, ident = scope
    if kind == "room":
        return cache.invalidate(ident)
    # User topics do not say which room changed.
    return cache.invalidate()


def subscribe_room(hub: EventHub, khata_id: str, refresh: Callable[[], Any]) -> Callable[[], None]:
    """Re-run ``refresh`` whenever anything happens in the room."""

    async def on_event(event: RealtimeEvent) -> None:
        logger.debug("Refreshing after %s on %s", event.name, event.topic)
        await refresh()

    return hub.subscribe(room_topic(khata_id), on_event)


app = create_app()
