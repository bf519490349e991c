"""In-process change feed.

Services publish a ChangeEvent after each committed write. Subscribers get
at-least-once, unordered triggers and are expected to re-read the Store
rather than trust anything carried by the event.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable

logger = logging.getLogger(__name__)

TABLES = frozenset({"rooms", "participants", "movies", "proposals", "votes"})


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    room_code: str
    op: str = "update"  # insert | update


class Subscription:
    def __init__(
        self,
        bus: "ChangeBus",
        room_code: str,
        tables: Iterable[str] | None = None,
        maxsize: int = 100,
    ) -> None:
        self.bus = bus
        self.room_code = room_code
        self.tables = frozenset(tables) if tables else TABLES
        self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def matches(self, event: ChangeEvent) -> bool:
        return event.room_code == self.room_code and event.table in self.tables

    def deliver(self, event: ChangeEvent) -> None:
        if self.queue.full():
            # Drop the oldest trigger, the subscriber re-fetches anyway
            self.queue.get_nowait()
        self.queue.put_nowait(event)

    async def get(self) -> ChangeEvent:
        return await self.queue.get()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.bus.unsubscribe(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        if self.closed:
            raise StopAsyncIteration
        return await self.get()


class ChangeBus:
    def __init__(self) -> None:
        self._subscriptions: dict[str, set[Subscription]] = defaultdict(set)

    def subscribe(self, room_code: str, tables: Iterable[str] | None = None) -> Subscription:
        sub = Subscription(self, room_code, tables)
        self._subscriptions[room_code].add(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        subs = self._subscriptions.get(sub.room_code)
        if subs is None:
            return
        subs.discard(sub)
        if not subs:
            del self._subscriptions[sub.room_code]

    def publish(self, event: ChangeEvent) -> int:
        """Fan the event out to matching subscribers. Returns the delivery count."""
        delivered = 0
        for sub in list(self._subscriptions.get(event.room_code, ())):
            if sub.matches(event):
                sub.deliver(event)
                delivered += 1
        logger.debug(
            "change %s/%s room=%s -> %d subscriber(s)",
            event.table, event.op, event.room_code, delivered,
        )
        return delivered

    def subscriber_count(self, room_code: str) -> int:
        return len(self._subscriptions.get(room_code, ()))

    def reset(self) -> None:
        self._subscriptions.clear()


change_bus = ChangeBus()
