"""Per-client view of a room.

One RoomSession lives for as long as a client stays on a room screen. It
subscribes to the change bus and, on every event, re-reads the room from
the Store. Events are only triggers; nothing in them is used as data.
"""

import logging
from typing import Optional

from core.database import get_db
from core.notifications import ChangeBus, ChangeEvent, Subscription, change_bus
from models.room import RoomStatus
from services.completion import CompletionDetector
from services.rooms import RoomService

logger = logging.getLogger(__name__)


class RoomSession:
    def __init__(self, room_code: str, user_id: str, bus: ChangeBus = change_bus):
        self.room_code = room_code
        self.user_id = user_id
        self.bus = bus
        self.subscription: Optional[Subscription] = None
        self.view: Optional[dict] = None

    @property
    def status(self) -> Optional[str]:
        return self.view["room"]["status"] if self.view else None

    @property
    def screen(self) -> Optional[str]:
        return self.view["screen"] if self.view else None

    async def start(self) -> dict:
        # Subscribe first so a change landing during the initial read is not lost
        self.subscription = self.bus.subscribe(self.room_code)
        try:
            self.view = await self.fetch()
        except Exception:
            self.close()
            raise
        logger.info("Room %s: session opened for %s", self.room_code, self.user_id)
        return self.view

    async def fetch(self) -> dict:
        async with get_db() as db:
            rooms = RoomService(db, bus=self.bus)
            view = await rooms.get_snapshot(self.room_code, self.user_id)
            if view["room"]["status"] == RoomStatus.PROPOSING.value:
                view["proposals"] = await rooms.list_proposals(self.room_code, self.user_id)
            else:
                progress = await CompletionDetector(db, bus=self.bus).get_progress(self.room_code)
                view["progress"] = progress.to_dict()
        return view

    def _drain(self) -> list[ChangeEvent]:
        events = []
        while not self.subscription.queue.empty():
            events.append(self.subscription.queue.get_nowait())
        return events

    async def next_update(self) -> dict:
        """Wait until a change makes the view differ, then return the new view."""
        if self.subscription is None:
            raise RuntimeError("RoomSession.start() must be called first")

        while True:
            event = await self.subscription.get()
            # Collapse a burst of triggers into one re-read
            burst = [event, *self._drain()]
            logger.debug(
                "Room %s: %d change(s) for %s, refreshing",
                self.room_code, len(burst), self.user_id,
            )
            view = await self.fetch()
            if view == self.view:
                continue

            previous_screen = self.screen
            self.view = view
            navigate = view["screen"] != previous_screen
            if navigate:
                logger.info(
                    "Room %s: %s moves %s -> %s",
                    self.room_code, self.user_id, previous_screen, view["screen"],
                )
            return {**view, "navigate": navigate}

    def close(self) -> None:
        if self.subscription is not None:
            self.subscription.close()
            self.subscription = None
            logger.info("Room %s: session closed for %s", self.room_code, self.user_id)
