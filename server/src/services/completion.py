"""Voting completion detection.

Called after every vote by the voting client, so it runs redundantly and
concurrently. The counts are three independent reads and may lag a vote
committed by another participant; a later call will see it. Resolution
itself is idempotent, see services.resolver.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.notifications import ChangeBus, change_bus
from models.movie import Movie
from models.participant import Participant
from models.room import RoomStatus
from models.vote import Vote
from services.resolver import WinnerResolver
from services.rooms import require_room

logger = logging.getLogger(__name__)


@dataclass
class CompletionReport:
    expected: int
    cast: int
    complete: bool = False
    winner_movie_id: Optional[uuid.UUID] = None

    @property
    def percent(self) -> int:
        if self.expected <= 0:
            return 0
        return min(100, round(self.cast * 100 / self.expected))

    def to_dict(self) -> dict:
        return {
            "expected": self.expected,
            "cast": self.cast,
            "percent": self.percent,
            "complete": self.complete,
            "winner_movie_id": str(self.winner_movie_id) if self.winner_movie_id else None,
        }


class CompletionDetector:
    def __init__(
        self,
        db: AsyncSession,
        bus: ChangeBus = change_bus,
        resolver: WinnerResolver | None = None,
    ):
        self.db = db
        self.resolver = resolver or WinnerResolver(db, bus=bus)

    async def _count(self, column, room_column, room_code: str) -> int:
        return await self.db.scalar(select(func.count(column)).where(room_column == room_code)) or 0

    async def get_progress(self, room_code: str) -> CompletionReport:
        participants = await self._count(Participant.id, Participant.room_code, room_code)
        movies = await self._count(Movie.id, Movie.room_code, room_code)
        votes = await self._count(Vote.id, Vote.room_code, room_code)
        return CompletionReport(expected=participants * movies, cast=votes)

    async def check(self, room_code: str, force: bool = False) -> CompletionReport:
        room = await require_room(self.db, room_code)
        report = await self.get_progress(room_code)

        if room.status == RoomStatus.DONE.value:
            report.complete = True
            report.winner_movie_id = room.winner_movie_id
            return report

        if not force and report.cast < report.expected:
            logger.debug(
                "Room %s: %d/%d votes, not complete", room_code, report.cast, report.expected
            )
            return report

        if force:
            logger.info(
                "Room %s: completion forced at %d/%d votes",
                room_code, report.cast, report.expected,
            )

        report.winner_movie_id = await self.resolver.resolve(room_code)
        report.complete = True
        return report
