import uuid
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from core.errors import NotMemberError, PhaseError
from core.notifications import change_bus
from models import Room, RoomStatus
from services.resolver import WinnerResolver, compute_results, rank_results, top_tied

from factories import add_movie, add_votes, make_room


def _movie(title: str) -> SimpleNamespace:
    return SimpleNamespace(id=uuid.uuid4(), title=title, poster_path=None)


def _votes(movie, yes: int, no: int) -> list[SimpleNamespace]:
    return [SimpleNamespace(movie_id=movie.id, value=True) for _ in range(yes)] + [
        SimpleNamespace(movie_id=movie.id, value=False) for _ in range(no)
    ]


def x_first(items: list) -> None:
    items.sort(key=lambda r: r.title)


def y_first(items: list) -> None:
    items.sort(key=lambda r: r.title, reverse=True)


def test_compute_results_counts_and_ratio():
    x, y, z = _movie("X"), _movie("Y"), _movie("Z")
    results = compute_results([x, y, z], _votes(x, 3, 1) + _votes(y, 2, 2))

    by_title = {r.title: r for r in results}
    assert (by_title["X"].yes_count, by_title["X"].total_votes, by_title["X"].yes_ratio) == (3, 4, 0.75)
    assert (by_title["Y"].yes_count, by_title["Y"].yes_ratio) == (2, 0.5)
    # No votes at all means a ratio of zero, not a division error
    assert (by_title["Z"].total_votes, by_title["Z"].yes_ratio) == (0, 0.0)


def test_rank_by_yes_count_first():
    x, y = _movie("X"), _movie("Y")
    ranked = rank_results(compute_results([y, x], _votes(x, 3, 1) + _votes(y, 2, 2)))
    assert [r.title for r in ranked] == ["X", "Y"]
    assert [r.yes_count for r in ranked] == [3, 2]


def test_rank_by_ratio_when_counts_tie():
    x, y = _movie("X"), _movie("Y")
    # Both have 2 yes, but Y got them from fewer votes
    ranked = rank_results(compute_results([x, y], _votes(x, 2, 2) + _votes(y, 2, 0)))
    assert [r.title for r in ranked] == ["Y", "X"]


def test_full_tie_uses_the_shuffle():
    x, y = _movie("X"), _movie("Y")
    results = compute_results([x, y], _votes(x, 2, 0) + _votes(y, 2, 0))

    assert rank_results(results, shuffle=None)[0].title == "X"
    assert rank_results(results, shuffle=lambda items: items.reverse())[0].title == "Y"
    assert len(top_tied(rank_results(results))) == 2


def test_top_tied_empty():
    assert top_tied([]) == []


async def _voting_room(db, x_votes: dict, y_votes: dict):
    await make_room(db, status=RoomStatus.VOTING)
    x = await add_movie(db, "AB12CD", 1, proposed_by="host")
    y = await add_movie(db, "AB12CD", 2, proposed_by="guest")
    await add_votes(db, "AB12CD", x, x_votes)
    await add_votes(db, "AB12CD", y, y_votes)
    return x.id, y.id


async def _room(db) -> Room:
    return await db.scalar(
        select(Room).where(Room.room_code == "AB12CD").execution_options(populate_existing=True)
    )


async def test_resolve_commits_winner_and_done(db):
    x_id, _ = await _voting_room(
        db, {"host": True, "guest": True}, {"host": False, "guest": True}
    )
    sub = change_bus.subscribe("AB12CD", tables=["rooms"])

    winner = await WinnerResolver(db).resolve("AB12CD")

    assert winner == x_id
    room = await _room(db)
    assert room.status == "done"
    assert room.winner_movie_id == x_id
    assert sub.queue.qsize() == 1


async def test_resolve_again_keeps_the_first_winner(db):
    x_id, y_id = await _voting_room(
        db, {"host": True, "guest": True}, {"host": True, "guest": True}
    )
    first = await WinnerResolver(db, shuffle=x_first).resolve("AB12CD")
    assert first == x_id

    # A resolver whose tie-break would favour Y must not overwrite X
    second = await WinnerResolver(db, shuffle=y_first).resolve("AB12CD")
    assert second == x_id
    assert (await _room(db)).winner_movie_id == x_id


async def test_racing_resolvers_commit_exactly_once(db, session_factory, monkeypatch):
    x_id, y_id = await _voting_room(
        db, {"host": True, "guest": True}, {"host": True, "guest": True}
    )
    sub = change_bus.subscribe("AB12CD", tables=["rooms"])

    slow = WinnerResolver(db, shuffle=x_first)
    original_load = slow.load

    async def load_then_lose_the_race(room_code):
        data = await original_load(room_code)
        # Another participant's resolver finishes first, picking Y
        async with session_factory() as other:
            fast = WinnerResolver(other, shuffle=y_first)
            assert await fast.resolve(room_code) == y_id
        return data

    monkeypatch.setattr(slow, "load", load_then_lose_the_race)

    # The slow resolver ranked X first but must report the committed Y
    assert await slow.resolve("AB12CD") == y_id
    assert (await _room(db)).winner_movie_id == y_id
    assert sub.queue.qsize() == 1


async def test_resolve_before_voting_is_rejected(db):
    await make_room(db)
    with pytest.raises(PhaseError):
        await WinnerResolver(db).resolve("AB12CD")


async def test_results_view_matches_committed_ranking(db):
    x_id, y_id = await _voting_room(
        db, {"host": True, "guest": False}, {"host": True, "guest": True}
    )
    winner = await WinnerResolver(db).resolve("AB12CD")
    assert winner == y_id

    results = await WinnerResolver(db).get_results("AB12CD", "guest")
    assert results["winner_movie_id"] == str(y_id)
    assert [r["id"] for r in results["results"]] == [str(y_id), str(x_id)]
    assert results["results"][0]["yes_ratio"] == 1.0
    assert results["participants"] == 2


async def test_results_view_puts_tied_winner_first(db):
    x_id, y_id = await _voting_room(
        db, {"host": True, "guest": True}, {"host": True, "guest": True}
    )
    winner = await WinnerResolver(db, shuffle=y_first).resolve("AB12CD")
    assert winner == y_id

    results = await WinnerResolver(db).get_results("AB12CD", "host")
    assert results["results"][0]["id"] == str(y_id)


async def test_results_view_before_done(db):
    await make_room(db, status=RoomStatus.VOTING)
    with pytest.raises(PhaseError) as exc_info:
        await WinnerResolver(db).get_results("AB12CD", "host")
    assert exc_info.value.extra["screen"] == "vote"


async def test_results_view_requires_membership(db):
    await _voting_room(db, {"host": True}, {"host": False})
    await WinnerResolver(db).resolve("AB12CD")
    with pytest.raises(NotMemberError):
        await WinnerResolver(db).get_results("AB12CD", "stranger")
