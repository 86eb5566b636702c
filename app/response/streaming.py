from __future__ import annotations

import json
from typing import AsyncIterator

from app.queue.events import ChangeSubscription, TicketChangeEvent
from app.queue.repository import ticket_to_payload


def event_payload(event: TicketChangeEvent) -> dict[str, object]:
    return {"type": event.type.value, "ticket": ticket_to_payload(event.ticket)}


class ChangeStreamer:
    """Relay change-feed events to SSE and WebSocket clients."""

    def __init__(self, subscription: ChangeSubscription, *, limit: int | None = None) -> None:
        self._subscription = subscription
        self._limit = limit

    async def events(self) -> AsyncIterator[TicketChangeEvent]:
        sent = 0
        try:
            while self._limit is None or sent < self._limit:
                yield await self._subscription.get()
                sent += 1
        finally:
            self._subscription.close()

    async def iter_sse(self) -> AsyncIterator[str]:
        """Yield Server-Sent Event formatted strings, one per ticket change."""

        yield "event: ready\ndata: {}\n\n"
        async for event in self.events():
            yield f"event: {event.type.value}\ndata: {json.dumps(event_payload(event))}\n\n"

    async def stream_websocket(self, websocket) -> None:
        """Send ticket changes over an accepted WebSocket connection."""

        async for event in self.events():
            await websocket.send_json(event_payload(event))
