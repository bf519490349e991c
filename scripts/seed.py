"""Seed script: a demo room already in the voting phase."""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "server" / "src"))

from core.database import engine, get_db  # noqa: E402
from models import Base, Movie, Participant, Proposal, Room, RoomStatus, Vote  # noqa: E402

ROOM_CODE = "AB12CD"


async def seed():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with get_db() as db:
        db.add(Room(room_code=ROOM_CODE, host_user_id="demo-marie", status=RoomStatus.VOTING.value))

        participants = [
            Participant(room_code=ROOM_CODE, user_id="demo-marie", display_name="Marie"),
            Participant(room_code=ROOM_CODE, user_id="demo-paul", display_name="Paul"),
            Participant(room_code=ROOM_CODE, user_id="demo-lucas", display_name="Lucas"),
        ]
        for p in participants:
            db.add(p)
        await db.flush()

        movies_data = [
            {"tmdb_id": 27205, "title": "Inception", "release_year": 2010, "runtime": 148, "genres": ["Action", "Science Fiction"]},
            {"tmdb_id": 496243, "title": "Parasite", "release_year": 2019, "runtime": 133, "genres": ["Comedy", "Thriller", "Drama"]},
            {"tmdb_id": 438631, "title": "Dune", "release_year": 2021, "runtime": 155, "genres": ["Science Fiction", "Adventure"]},
        ]
        movies = []
        for md in movies_data:
            m = Movie(room_code=ROOM_CODE, **md)
            db.add(m)
            movies.append(m)
        await db.flush()

        for p, m in zip(participants, movies):
            db.add(Proposal(room_code=ROOM_CODE, user_id=p.user_id, movie_id=m.id))

        # Marie and Paul have voted, Lucas has not
        votes_data = [
            (0, 0, True), (0, 1, True), (0, 2, False),
            (1, 0, True), (1, 1, False), (1, 2, True),
        ]
        for pi, mi, value in votes_data:
            db.add(Vote(
                room_code=ROOM_CODE,
                user_id=participants[pi].user_id,
                movie_id=movies[mi].id,
                value=value,
            ))

        await db.flush()
        print(f"Room {ROOM_CODE} seeded in the voting phase!")
        print(f"  {len(participants)} participants")
        print(f"  {len(movies)} movies")
        print(f"  {len(votes_data)} of {len(participants) * len(movies)} votes cast")


if __name__ == "__main__":
    asyncio.run(seed())
