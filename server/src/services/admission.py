"""Admission control for proposals and votes.

Client-side checks are only hints: every rule here is re-evaluated against
the Store right before the write, and unique constraints back them up for
writers that race past the check.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from core.errors import (
    AlreadyProposedError,
    CapacityError,
    MetadataUnavailableError,
    NotFoundError,
    PhaseError,
    StoreError,
    ValidationError,
)
from core.notifications import ChangeBus, ChangeEvent, change_bus
from models.movie import Movie
from models.participant import Participant
from models.proposal import Proposal
from models.room import Room, RoomStatus
from models.vote import Vote
from services.lifecycle import screen_for
from services.rooms import require_participant, require_room
from services.tmdb import TMDBClient, get_tmdb_client, release_year

logger = logging.getLogger(__name__)


@dataclass
class VoteReceipt:
    movie_id: uuid.UUID
    value: bool
    already_voted: bool = False


class AdmissionController:
    def __init__(
        self,
        db: AsyncSession,
        tmdb: TMDBClient | None = None,
        bus: ChangeBus = change_bus,
    ):
        self.db = db
        self.tmdb = tmdb or get_tmdb_client()
        self.bus = bus

    async def count_proposals(self, room_code: str, user_id: str) -> int:
        return await self.db.scalar(
            select(func.count(Proposal.id)).where(
                Proposal.room_code == room_code,
                Proposal.user_id == user_id,
            )
        ) or 0

    async def remaining_proposals(self, room_code: str, user_id: str) -> int:
        used = await self.count_proposals(room_code, user_id)
        return max(0, settings.MAX_PROPOSALS_PER_USER - used)

    def _check_capacity(self, count: int) -> None:
        if count >= settings.MAX_PROPOSALS_PER_USER:
            raise CapacityError(
                f"You can only propose up to {settings.MAX_PROPOSALS_PER_USER} movies."
            )

    async def find_movie(self, room_code: str, tmdb_id: int) -> Movie | None:
        return await self.db.scalar(
            select(Movie).where(Movie.room_code == room_code, Movie.tmdb_id == tmdb_id)
        )

    async def ensure_movie(self, room_code: str, tmdb_id: int) -> tuple[Movie, bool]:
        """Return the room's Movie row for tmdb_id, creating it on first proposal.

        A new row is only flushed; it is committed together with the proposal.
        The second element is True when this call inserted the row.
        """
        movie = await self.find_movie(room_code, tmdb_id)
        if movie:
            return movie, False

        details = await self.tmdb.details(tmdb_id)
        if not details:
            raise MetadataUnavailableError("Could not fetch movie details")

        movie = Movie(
            room_code=room_code,
            tmdb_id=tmdb_id,
            title=details.get("title") or "Unknown",
            poster_path=details.get("poster_path"),
            release_year=release_year(details.get("release_date")),
            runtime=details.get("runtime"),
            overview=details.get("overview"),
            genres=details.get("genres", []),
        )
        self.db.add(movie)
        try:
            await self.db.flush()
        except IntegrityError:
            # Another participant proposed the same film in the same instant
            await self.db.rollback()
            movie = await self.find_movie(room_code, tmdb_id)
            if movie is None:
                raise StoreError("Could not save the movie, please try again.")
            logger.info("Room %s: movie %s created concurrently, reusing", room_code, tmdb_id)
            return movie, False

        return movie, True

    def _check_phase(self, room: Room) -> None:
        if room.status != RoomStatus.PROPOSING.value:
            raise PhaseError(
                "Proposals are closed for this room.", screen=screen_for(room.status)
            )

    async def propose(self, room_code: str, user_id: str, tmdb_id: int) -> Movie:
        room = await require_room(self.db, room_code)
        await require_participant(self.db, room_code, user_id)
        self._check_phase(room)

        # Early check so an over-cap user never triggers a details lookup
        self._check_capacity(await self.count_proposals(room_code, user_id))

        movie, created = await self.ensure_movie(room_code, tmdb_id)

        # The details lookup can be slow. Lock the room row against a concurrent
        # start of voting, then this user's row, and re-check both rules.
        try:
            room = await self.db.scalar(
                select(Room)
                .where(Room.room_code == room_code)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            self._check_phase(room)
            await self.db.execute(
                select(Participant.id)
                .where(Participant.room_code == room_code, Participant.user_id == user_id)
                .with_for_update()
            )
            self._check_capacity(await self.count_proposals(room_code, user_id))
        except ValidationError:
            await self.db.rollback()
            raise

        self.db.add(Proposal(room_code=room_code, user_id=user_id, movie_id=movie.id))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise AlreadyProposedError("You already proposed this movie.")

        logger.info("Room %s: %s proposed %s (%s)", room_code, user_id, movie.title, tmdb_id)
        if created:
            self.bus.publish(ChangeEvent("movies", room_code, "insert"))
        self.bus.publish(ChangeEvent("proposals", room_code, "insert"))
        return movie

    async def submit_vote(
        self, room_code: str, user_id: str, movie_id: uuid.UUID, value: bool
    ) -> VoteReceipt:
        """Record one vote. A repeated vote is a successful no-op that reports the stored value."""
        await require_participant(self.db, room_code, user_id)
        movie = await self.db.scalar(
            select(Movie.id).where(Movie.id == movie_id, Movie.room_code == room_code)
        )
        if movie is None:
            raise NotFoundError("Movie not found in this room.")

        self.db.add(Vote(room_code=room_code, user_id=user_id, movie_id=movie_id, value=value))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            stored = await self.db.scalar(
                select(Vote.value).where(Vote.user_id == user_id, Vote.movie_id == movie_id)
            )
            logger.debug("Room %s: %s already voted on %s", room_code, user_id, movie_id)
            return VoteReceipt(
                movie_id=movie_id,
                value=value if stored is None else stored,
                already_voted=True,
            )

        self.bus.publish(ChangeEvent("votes", room_code, "insert"))
        return VoteReceipt(movie_id=movie_id, value=value)
