import pytest
from sqlalchemy import func, select

from core.errors import NotFoundError, NotMemberError, PhaseError, StoreError, ValidationError
from core.notifications import change_bus
from models import Participant, Proposal, Room, RoomStatus
from services import rooms as rooms_module
from services.rooms import RoomService

from factories import add_movie, make_room


async def test_create_room_makes_host_a_participant(db):
    snapshot = await RoomService(db).create_room("alice", "  Alice ")

    code = snapshot["room"]["room_code"]
    assert len(code) == 6
    assert snapshot["room"]["status"] == "proposing"
    assert snapshot["room"]["host_user_id"] == "alice"
    assert snapshot["is_host"] is True
    assert snapshot["screen"] == "lobby"
    assert [p["display_name"] for p in snapshot["participants"]] == ["Alice"]


async def test_create_room_retries_code_collision(db, monkeypatch):
    await make_room(db, code="AAAAAA")
    codes = iter(["AAAAAA", "BBBBBB"])
    monkeypatch.setattr(rooms_module, "generate_room_code", lambda: next(codes))

    snapshot = await RoomService(db).create_room("alice", "Alice")
    assert snapshot["room"]["room_code"] == "BBBBBB"


async def test_create_room_gives_up_after_attempts(db, monkeypatch):
    await make_room(db, code="AAAAAA")
    monkeypatch.setattr(rooms_module, "generate_room_code", lambda: "AAAAAA")

    with pytest.raises(StoreError):
        await RoomService(db).create_room("alice", "Alice")
    assert await db.scalar(select(func.count(Room.id))) == 1


async def test_create_room_rejects_blank_name(db):
    with pytest.raises(ValidationError):
        await RoomService(db).create_room("alice", "   ")


async def test_join_normalizes_code(db):
    await make_room(db)
    sub = change_bus.subscribe("AB12CD", tables=["participants"])

    snapshot = await RoomService(db).join_room("bob", "Bob", " ab12cd ")

    assert snapshot["already_joined"] is False
    assert snapshot["is_host"] is False
    assert {p["user_id"] for p in snapshot["participants"]} == {"host", "guest", "bob"}
    assert sub.queue.get_nowait().op == "insert"


async def test_rejoin_updates_display_name(db):
    await make_room(db)
    service = RoomService(db)

    snapshot = await service.join_room("guest", "New Name", "AB12CD")

    assert snapshot["already_joined"] is True
    names = {p["user_id"]: p["display_name"] for p in snapshot["participants"]}
    assert names["guest"] == "New Name"
    count = await db.scalar(
        select(func.count(Participant.id)).where(Participant.room_code == "AB12CD")
    )
    assert count == 2


async def test_join_unknown_room(db):
    with pytest.raises(NotFoundError, match="Room not found"):
        await RoomService(db).join_room("bob", "Bob", "ZZZZZZ")


async def test_join_after_voting_started(db):
    await make_room(db, status=RoomStatus.VOTING)
    with pytest.raises(PhaseError, match="no longer accepting") as exc_info:
        await RoomService(db).join_room("bob", "Bob", "AB12CD")
    assert exc_info.value.extra["screen"] == "vote"


async def test_join_validates_inputs(db):
    await make_room(db)
    with pytest.raises(ValidationError, match="display name"):
        await RoomService(db).join_room("bob", "", "AB12CD")
    with pytest.raises(ValidationError, match="6 letters"):
        await RoomService(db).join_room("bob", "Bob", "AB1")


async def test_snapshot_requires_membership(db):
    await make_room(db)
    with pytest.raises(NotMemberError):
        await RoomService(db).get_snapshot("AB12CD", "stranger")


async def test_list_proposals_one_entry_per_movie(db):
    await make_room(db)
    shared = await add_movie(db, "AB12CD", 1, proposed_by="host")
    await add_movie(db, "AB12CD", 2, proposed_by="guest")
    db.add(Proposal(room_code="AB12CD", user_id="guest", movie_id=shared.id))
    await db.commit()

    movies = await RoomService(db).list_proposals("AB12CD", "host")

    by_tmdb = {m["tmdb_id"]: m for m in movies}
    assert len(movies) == 2
    assert sorted(by_tmdb[1]["proposed_by"]) == ["Guest", "Host"]
    assert by_tmdb[1]["proposed_by_me"] is True
    assert by_tmdb[2]["proposed_by"] == ["Guest"]
    assert by_tmdb[2]["proposed_by_me"] is False
