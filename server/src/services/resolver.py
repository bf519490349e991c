"""Winner resolution.

Ranking: yes_count desc, then yes_ratio desc. Movies still tied on both
keys are ordered randomly for the commit, so a second independent
resolution could pick a different winner. The commit is therefore a
compare-and-set on status=voting: the first resolver to commit wins and
every later one returns the stored winner instead of its own.
"""

import logging
import random
import uuid
from dataclasses import asdict, dataclass
from typing import Callable, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import PhaseError
from core.notifications import ChangeBus, ChangeEvent, change_bus
from models.movie import Movie
from models.room import RoomStatus
from models.vote import Vote
from services.lifecycle import screen_for, transition
from services.rooms import get_room, list_participants, require_participant, require_room

logger = logging.getLogger(__name__)


@dataclass
class MovieResult:
    id: uuid.UUID
    title: str
    poster_path: Optional[str]
    yes_count: int
    total_votes: int
    yes_ratio: float

    def to_dict(self) -> dict:
        data = asdict(self)
        data["id"] = str(self.id)
        return data


def compute_results(movies: Iterable[Movie], votes: Iterable[Vote]) -> list[MovieResult]:
    yes: dict[uuid.UUID, int] = {}
    total: dict[uuid.UUID, int] = {}
    for vote in votes:
        total[vote.movie_id] = total.get(vote.movie_id, 0) + 1
        if vote.value:
            yes[vote.movie_id] = yes.get(vote.movie_id, 0) + 1

    results = []
    for movie in movies:
        yes_count = yes.get(movie.id, 0)
        total_votes = total.get(movie.id, 0)
        results.append(
            MovieResult(
                id=movie.id,
                title=movie.title,
                poster_path=movie.poster_path,
                yes_count=yes_count,
                total_votes=total_votes,
                yes_ratio=yes_count / total_votes if total_votes else 0.0,
            )
        )
    return results


def rank_key(result: MovieResult) -> tuple[int, float]:
    return (-result.yes_count, -result.yes_ratio)


def rank_results(
    results: list[MovieResult],
    shuffle: Optional[Callable[[list], None]] = random.shuffle,
) -> list[MovieResult]:
    """Sort by rank_key. With shuffle set, ties come out in random order."""
    ranked = list(results)
    if shuffle is not None:
        shuffle(ranked)
    ranked.sort(key=rank_key)
    return ranked


def top_tied(ranked: list[MovieResult]) -> list[MovieResult]:
    if not ranked:
        return []
    best = rank_key(ranked[0])
    return [r for r in ranked if rank_key(r) == best]


class WinnerResolver:
    """Reads every vote in the room regardless of who cast it."""

    def __init__(
        self,
        db: AsyncSession,
        bus: ChangeBus = change_bus,
        shuffle: Optional[Callable[[list], None]] = random.shuffle,
    ):
        self.db = db
        self.bus = bus
        self.shuffle = shuffle

    async def load(self, room_code: str) -> tuple[list[Movie], list[Vote]]:
        movies = await self.db.execute(
            select(Movie).where(Movie.room_code == room_code).order_by(Movie.created_at, Movie.id)
        )
        votes = await self.db.execute(select(Vote).where(Vote.room_code == room_code))
        return list(movies.scalars().all()), list(votes.scalars().all())

    async def resolve(self, room_code: str) -> Optional[uuid.UUID]:
        """Pick and commit the winner. Idempotent once the room is done."""
        room = await require_room(self.db, room_code)
        if room.status == RoomStatus.DONE.value:
            logger.info("Room %s already resolved, keeping %s", room_code, room.winner_movie_id)
            return room.winner_movie_id
        if room.status != RoomStatus.VOTING.value:
            raise PhaseError("Voting has not started yet.", screen=screen_for(room.status))

        movies, votes = await self.load(room_code)
        ranked = rank_results(compute_results(movies, votes), shuffle=self.shuffle)
        winner_id = ranked[0].id if ranked else None
        if len(top_tied(ranked)) > 1:
            logger.info(
                "Room %s: %d movies tied at the top, random tie-break picked %s",
                room_code, len(top_tied(ranked)), winner_id,
            )

        committed = await transition(
            self.db, room_code, RoomStatus.VOTING, RoomStatus.DONE,
            winner_movie_id=winner_id,
        )
        if not committed:
            await self.db.rollback()
            room = await get_room(self.db, room_code)
            logger.info(
                "Room %s resolved concurrently, keeping %s", room_code, room.winner_movie_id
            )
            return room.winner_movie_id

        await self.db.commit()
        logger.info(
            "Room %s done: winner %s (%d movies, %d votes)",
            room_code, winner_id, len(movies), len(votes),
        )
        self.bus.publish(ChangeEvent("rooms", room_code, "update"))
        return winner_id

    async def get_results(self, room_code: str, user_id: str) -> dict:
        """Read side for the results view. Same ranking keys, no randomness."""
        room = await require_room(self.db, room_code)
        await require_participant(self.db, room_code, user_id)
        if room.status != RoomStatus.DONE.value:
            raise PhaseError("Voting is not finished yet.", screen=screen_for(room.status))

        movies, votes = await self.load(room_code)
        ranked = rank_results(compute_results(movies, votes), shuffle=None)

        # Keep the committed winner first when it shares the top rank
        winner_id = room.winner_movie_id
        for i, result in enumerate(ranked):
            if result.id == winner_id and rank_key(result) == rank_key(ranked[0]):
                ranked.insert(0, ranked.pop(i))
                break

        return {
            "room_code": room_code,
            "winner_movie_id": str(winner_id) if winner_id else None,
            "participants": len(await list_participants(self.db, room_code)),
            "results": [r.to_dict() for r in ranked],
        }
