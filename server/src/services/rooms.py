import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from core.errors import NotFoundError, NotMemberError, PhaseError, StoreError
from core.notifications import ChangeBus, ChangeEvent, change_bus
from core.sanitization import generate_room_code, normalize_room_code, sanitize_display_name
from models.movie import Movie
from models.participant import Participant
from models.proposal import Proposal
from models.room import Room, RoomStatus
from services.lifecycle import screen_for

logger = logging.getLogger(__name__)


async def get_room(db: AsyncSession, room_code: str) -> Room | None:
    # Status is raced on by other clients, never trust the identity map copy
    return await db.scalar(
        select(Room)
        .where(Room.room_code == room_code)
        .execution_options(populate_existing=True)
    )


async def require_room(db: AsyncSession, room_code: str) -> Room:
    room = await get_room(db, room_code)
    if not room:
        raise NotFoundError("Room not found")
    return room


async def get_participant(db: AsyncSession, room_code: str, user_id: str) -> Participant | None:
    return await db.scalar(
        select(Participant).where(
            Participant.room_code == room_code,
            Participant.user_id == user_id,
        )
    )


async def require_participant(db: AsyncSession, room_code: str, user_id: str) -> Participant:
    participant = await get_participant(db, room_code, user_id)
    if not participant:
        raise NotMemberError("You are not a member of this room.")
    return participant


async def list_participants(db: AsyncSession, room_code: str) -> list[Participant]:
    result = await db.execute(
        select(Participant)
        .where(Participant.room_code == room_code)
        .order_by(Participant.created_at, Participant.id)
    )
    return list(result.scalars().all())


def serialize_room(room: Room) -> dict:
    return {
        "room_code": room.room_code,
        "status": room.status,
        "host_user_id": room.host_user_id,
        "winner_movie_id": str(room.winner_movie_id) if room.winner_movie_id else None,
    }


def serialize_participant(participant: Participant) -> dict:
    return {
        "id": str(participant.id),
        "user_id": participant.user_id,
        "display_name": participant.display_name,
    }


def serialize_movie(movie: Movie) -> dict:
    return {
        "id": str(movie.id),
        "tmdb_id": movie.tmdb_id,
        "title": movie.title,
        "poster_path": movie.poster_path,
        "release_year": movie.release_year,
        "runtime": movie.runtime,
        "overview": movie.overview,
        "genres": movie.genres or [],
    }


class RoomService:
    def __init__(self, db: AsyncSession, bus: ChangeBus = change_bus):
        self.db = db
        self.bus = bus

    async def create_room(self, user_id: str, display_name: str) -> dict:
        name = sanitize_display_name(display_name)

        for attempt in range(settings.ROOM_CODE_ATTEMPTS):
            code = generate_room_code()
            room = Room(room_code=code, host_user_id=user_id, status=RoomStatus.PROPOSING.value)
            self.db.add(room)
            try:
                await self.db.flush()
            except IntegrityError:
                await self.db.rollback()
                logger.info("Room code collision on %s (attempt %d)", code, attempt + 1)
                continue

            self.db.add(Participant(room_code=code, user_id=user_id, display_name=name))
            await self.db.commit()
            logger.info("Room %s created by %s", code, user_id)
            self.bus.publish(ChangeEvent("rooms", code, "insert"))
            self.bus.publish(ChangeEvent("participants", code, "insert"))
            return await self.get_snapshot(code, user_id)

        raise StoreError("Could not allocate a room code, please try again.")

    async def join_room(self, user_id: str, display_name: str, room_code: str) -> dict:
        name = sanitize_display_name(display_name)
        code = normalize_room_code(room_code)

        room = await require_room(self.db, code)
        if room.status != RoomStatus.PROPOSING.value:
            raise PhaseError(
                "Room is no longer accepting proposals", screen=screen_for(room.status)
            )

        already_joined = False
        participant = await get_participant(self.db, code, user_id)
        if participant:
            already_joined = True
            participant.display_name = name
            await self.db.commit()
        else:
            self.db.add(Participant(room_code=code, user_id=user_id, display_name=name))
            try:
                await self.db.commit()
            except IntegrityError:
                # Same user joining from two tabs at once
                await self.db.rollback()
                already_joined = True

        if already_joined:
            logger.info("Room %s: %s rejoined", code, user_id)
            self.bus.publish(ChangeEvent("participants", code, "update"))
        else:
            logger.info("Room %s: %s joined", code, user_id)
            self.bus.publish(ChangeEvent("participants", code, "insert"))

        snapshot = await self.get_snapshot(code, user_id)
        snapshot["already_joined"] = already_joined
        return snapshot

    async def get_snapshot(self, room_code: str, user_id: str) -> dict:
        room = await require_room(self.db, room_code)
        participants = await list_participants(self.db, room_code)
        if not any(p.user_id == user_id for p in participants):
            raise NotMemberError("You are not a member of this room.")

        return {
            "room": serialize_room(room),
            "participants": [serialize_participant(p) for p in participants],
            "is_host": room.host_user_id == user_id,
            "screen": screen_for(room.status),
        }

    async def list_proposals(self, room_code: str, user_id: str) -> list[dict]:
        """Proposed movies, one entry per movie with everyone who proposed it."""
        await require_participant(self.db, room_code, user_id)

        names = {
            p.user_id: p.display_name for p in await list_participants(self.db, room_code)
        }
        result = await self.db.execute(
            select(Proposal, Movie)
            .join(Movie, Movie.id == Proposal.movie_id)
            .where(Proposal.room_code == room_code)
            .order_by(Proposal.created_at, Proposal.id)
        )

        movies: dict = {}
        for proposal, movie in result.all():
            entry = movies.get(movie.id)
            if entry is None:
                entry = movies[movie.id] = {
                    **serialize_movie(movie),
                    "proposed_by": [],
                    "proposed_by_me": False,
                }
            entry["proposed_by"].append(names.get(proposal.user_id, "Unknown"))
            if proposal.user_id == user_id:
                entry["proposed_by_me"] = True
        return list(movies.values())
