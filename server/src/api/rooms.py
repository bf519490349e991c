import logging
import random
import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select

from api.dependencies import current_user, rate_limited_user, room_code_param
from config import settings
from core.database import get_db
from core.errors import NotHostError, PhaseError
from models.movie import Movie
from models.room import Room, RoomStatus
from models.vote import Vote
from services.admission import AdmissionController
from services.completion import CompletionDetector
from services.lifecycle import LifecycleService, screen_for
from services.resolver import WinnerResolver
from services.rooms import RoomService, require_participant, require_room, serialize_movie

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rooms", tags=["rooms"])


class CreateRoomRequest(BaseModel):
    display_name: str = Field(max_length=settings.DISPLAY_NAME_MAX_LENGTH)


class JoinRoomRequest(BaseModel):
    display_name: str = Field(max_length=settings.DISPLAY_NAME_MAX_LENGTH)


class ProposeRequest(BaseModel):
    tmdb_id: int = Field(gt=0)


class VoteRequest(BaseModel):
    movie_id: uuid.UUID
    value: bool


class CompleteRequest(BaseModel):
    force: bool = False


def require_phase(room: Room, status: RoomStatus) -> None:
    """Access policy: the action is only open while the room is in `status`."""
    if room.status != status.value:
        raise PhaseError(
            f"This action is only allowed while the room is {status.value}.",
            screen=screen_for(room.status),
        )


@router.post("")
async def create_room(body: CreateRoomRequest, user_id: str = Depends(rate_limited_user)):
    async with get_db() as db:
        return await RoomService(db).create_room(user_id, body.display_name)


@router.post("/{code}/join")
async def join_room(
    body: JoinRoomRequest,
    code: str,
    user_id: str = Depends(rate_limited_user),
):
    # The raw code goes through normalization inside the service
    async with get_db() as db:
        return await RoomService(db).join_room(user_id, body.display_name, code)


@router.get("/{code}")
async def get_room(code: str = Depends(room_code_param), user_id: str = Depends(current_user)):
    async with get_db() as db:
        return await RoomService(db).get_snapshot(code, user_id)


@router.get("/{code}/proposals")
async def list_proposals(
    code: str = Depends(room_code_param), user_id: str = Depends(current_user)
):
    async with get_db() as db:
        return {"movies": await RoomService(db).list_proposals(code, user_id)}


@router.post("/{code}/proposals")
async def propose_movie(
    body: ProposeRequest,
    code: str = Depends(room_code_param),
    user_id: str = Depends(rate_limited_user),
):
    async with get_db() as db:
        controller = AdmissionController(db)
        movie = await controller.propose(code, user_id, body.tmdb_id)
        remaining = await controller.remaining_proposals(code, user_id)
    return {"movie": serialize_movie(movie), "remaining": remaining}


@router.post("/{code}/start")
async def start_voting(code: str = Depends(room_code_param), user_id: str = Depends(current_user)):
    async with get_db() as db:
        room = await require_room(db, code)
        await require_participant(db, code, user_id)
        room = await LifecycleService(db).start_voting(room, user_id)
        return {"status": room.status, "screen": screen_for(room.status)}


@router.get("/{code}/ballot")
async def get_ballot(code: str = Depends(room_code_param), user_id: str = Depends(current_user)):
    """Movies the caller still has to vote on, with room-wide progress."""
    async with get_db() as db:
        room = await require_room(db, code)
        await require_participant(db, code, user_id)
        require_phase(room, RoomStatus.VOTING)

        voted = select(Vote.movie_id).where(Vote.room_code == code, Vote.user_id == user_id)
        result = await db.execute(
            select(Movie).where(Movie.room_code == code, Movie.id.not_in(voted))
        )
        pending = [serialize_movie(m) for m in result.scalars().all()]
        random.shuffle(pending)
        progress = await CompletionDetector(db).get_progress(code)

    return {"movies": pending, "done": not pending, "progress": progress.to_dict()}


@router.post("/{code}/votes")
async def submit_vote(
    body: VoteRequest,
    code: str = Depends(room_code_param),
    user_id: str = Depends(rate_limited_user),
):
    async with get_db() as db:
        room = await require_room(db, code)
        require_phase(room, RoomStatus.VOTING)
        receipt = await AdmissionController(db).submit_vote(code, user_id, body.movie_id, body.value)
        report = await CompletionDetector(db).check(code)

    return {
        "movie_id": str(receipt.movie_id),
        "value": receipt.value,
        "already_voted": receipt.already_voted,
        "progress": report.to_dict(),
    }


@router.post("/{code}/complete")
async def check_complete(
    body: CompleteRequest | None = None,
    code: str = Depends(room_code_param),
    user_id: str = Depends(current_user),
):
    force = body.force if body else False
    async with get_db() as db:
        room = await require_room(db, code)
        await require_participant(db, code, user_id)
        if force and room.host_user_id != user_id:
            raise NotHostError("Only the host can end voting early.")
        report = await CompletionDetector(db).check(code, force=force)
    return report.to_dict()


@router.get("/{code}/results")
async def get_results(code: str = Depends(room_code_param), user_id: str = Depends(current_user)):
    async with get_db() as db:
        return await WinnerResolver(db).get_results(code, user_id)
