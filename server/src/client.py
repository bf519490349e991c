"""Async client for the MovieNight HTTP API.

VoteDeck mirrors the swipe screen: a swipe moves to the next card at once
and the vote is sent in the background. A failed send is logged and kept
in `errors`; the deck never moves back.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class MovieNightClientError(Exception):
    def __init__(self, status_code: int, code: str, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.code = code
        self.detail = detail


class MovieNightClient:
    def __init__(
        self,
        base_url: str,
        user_id: Optional[str] = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.user_id = user_id
        self.http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=None)

    async def __aenter__(self) -> "MovieNightClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.user_id:
            headers["X-User-Id"] = self.user_id
        response = await self.http.request(method, path, headers=headers, **kwargs)
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            detail = body.get("detail", response.text)
            if not isinstance(detail, str):
                detail = str(detail)
            raise MovieNightClientError(response.status_code, body.get("code", "error"), detail)
        return response.json()

    async def sign_in(self) -> str:
        if not self.user_id:
            data = await self._request("POST", "/auth/anonymous")
            self.user_id = data["user_id"]
        return self.user_id

    async def create_room(self, display_name: str) -> dict:
        await self.sign_in()
        return await self._request("POST", "/rooms", json={"display_name": display_name})

    async def join_room(self, room_code: str, display_name: str) -> dict:
        await self.sign_in()
        return await self._request(
            "POST", f"/rooms/{room_code}/join", json={"display_name": display_name}
        )

    async def get_room(self, room_code: str) -> dict:
        return await self._request("GET", f"/rooms/{room_code}")

    async def search(self, query: str) -> list[dict]:
        data = await self._request("GET", "/movies/search", params={"q": query})
        return data["results"]

    async def proposals(self, room_code: str) -> list[dict]:
        data = await self._request("GET", f"/rooms/{room_code}/proposals")
        return data["movies"]

    async def propose(self, room_code: str, tmdb_id: int) -> dict:
        return await self._request(
            "POST", f"/rooms/{room_code}/proposals", json={"tmdb_id": tmdb_id}
        )

    async def start_voting(self, room_code: str) -> dict:
        return await self._request("POST", f"/rooms/{room_code}/start")

    async def ballot(self, room_code: str) -> dict:
        return await self._request("GET", f"/rooms/{room_code}/ballot")

    async def vote(self, room_code: str, movie_id: str, value: bool) -> dict:
        return await self._request(
            "POST",
            f"/rooms/{room_code}/votes",
            json={"movie_id": movie_id, "value": value},
        )

    async def check_complete(self, room_code: str, force: bool = False) -> dict:
        return await self._request(
            "POST", f"/rooms/{room_code}/complete", json={"force": force}
        )

    async def results(self, room_code: str) -> dict:
        return await self._request("GET", f"/rooms/{room_code}/results")


class VoteDeck:
    def __init__(self, client: MovieNightClient, room_code: str, movies: list[dict]):
        self.client = client
        self.room_code = room_code
        self.movies = list(movies)
        self.position = 0
        self.errors: list[tuple[str, Exception]] = []
        self._pending: set[asyncio.Task] = set()

    @classmethod
    async def load(cls, client: MovieNightClient, room_code: str) -> "VoteDeck":
        ballot = await client.ballot(room_code)
        return cls(client, room_code, ballot["movies"])

    @property
    def current(self) -> Optional[dict]:
        if self.position < len(self.movies):
            return self.movies[self.position]
        return None

    @property
    def finished(self) -> bool:
        return self.position >= len(self.movies)

    def swipe(self, value: bool) -> Optional[dict]:
        """Vote on the current card and advance. Returns the next card, if any."""
        movie = self.current
        if movie is None:
            return None

        self.position += 1
        task = asyncio.create_task(self._send(movie["id"], value))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return self.current

    async def _send(self, movie_id: str, value: bool) -> None:
        try:
            await self.client.vote(self.room_code, movie_id, value)
        except (MovieNightClientError, httpx.HTTPError) as e:
            logger.error("Vote on %s in room %s failed: %s", movie_id, self.room_code, e)
            self.errors.append((movie_id, e))

    async def drain(self) -> Optional[dict]:
        """Wait for in-flight votes. Once the deck is finished, run a last completion check."""
        if self._pending:
            await asyncio.gather(*self._pending)
        if not self.finished:
            return None
        try:
            return await self.client.check_complete(self.room_code)
        except MovieNightClientError as e:
            logger.error("Completion check for room %s failed: %s", self.room_code, e)
            self.errors.append(("complete", e))
            return None
