"""Room lifecycle: proposing -> voting -> done.

The room row is the single source of truth for status. Transitions are
written with a conditional UPDATE on the expected current status so a
stale caller can never move a room backwards or skip a phase.
"""

import logging

from sqlalchemy import distinct, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from core.errors import NotHostError, PhaseError, ValidationError
from core.notifications import ChangeBus, ChangeEvent, change_bus
from models.participant import Participant
from models.proposal import Proposal
from models.room import Room, RoomStatus

logger = logging.getLogger(__name__)

NEXT_STATUS = {
    RoomStatus.PROPOSING: RoomStatus.VOTING,
    RoomStatus.VOTING: RoomStatus.DONE,
}

SCREENS = {
    RoomStatus.PROPOSING: "lobby",
    RoomStatus.VOTING: "vote",
    RoomStatus.DONE: "results",
}


def can_transition(current: RoomStatus | str, target: RoomStatus | str) -> bool:
    return NEXT_STATUS.get(RoomStatus(current)) == RoomStatus(target)


def screen_for(status: RoomStatus | str) -> str:
    return SCREENS[RoomStatus(status)]


def check_start_guard(participants: int, movies: int) -> None:
    """Raise when the room is not ready for voting. Performs no write."""
    if participants < settings.MIN_PARTICIPANTS:
        raise ValidationError(
            f"You need at least {settings.MIN_PARTICIPANTS} participants to start voting."
        )
    if movies < settings.MIN_MOVIES:
        raise ValidationError(
            f"You need at least {settings.MIN_MOVIES} proposed movies to start voting."
        )


async def transition(
    db: AsyncSession,
    room_code: str,
    current: RoomStatus,
    target: RoomStatus,
    **values,
) -> bool:
    """Compare-and-set the room status. Returns False if another writer got there first."""
    if not can_transition(current, target):
        raise PhaseError(f"Cannot move a room from {current.value} to {target.value}")

    result = await db.execute(
        update(Room)
        .where(Room.room_code == room_code, Room.status == current.value)
        .values(status=target.value, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


class LifecycleService:
    def __init__(self, db: AsyncSession, bus: ChangeBus = change_bus):
        self.db = db
        self.bus = bus

    async def count_participants(self, room_code: str) -> int:
        return await self.db.scalar(
            select(func.count(Participant.id)).where(Participant.room_code == room_code)
        ) or 0

    async def count_proposed_movies(self, room_code: str) -> int:
        return await self.db.scalar(
            select(func.count(distinct(Proposal.movie_id))).where(
                Proposal.room_code == room_code
            )
        ) or 0

    async def start_voting(self, room: Room, user_id: str) -> Room:
        if room.host_user_id != user_id:
            raise NotHostError("Only the host can start voting.")
        if room.status != RoomStatus.PROPOSING.value:
            raise PhaseError(
                "Voting has already started.", screen=screen_for(room.status)
            )

        participants = await self.count_participants(room.room_code)
        movies = await self.count_proposed_movies(room.room_code)
        check_start_guard(participants, movies)

        moved = await transition(
            self.db, room.room_code, RoomStatus.PROPOSING, RoomStatus.VOTING
        )
        if not moved:
            await self.db.rollback()
            raise PhaseError("Voting has already started.")
        await self.db.commit()
        await self.db.refresh(room)

        logger.info(
            "Room %s: voting started (%d participants, %d movies)",
            room.room_code, participants, movies,
        )
        self.bus.publish(ChangeEvent("rooms", room.room_code, "update"))
        return room
