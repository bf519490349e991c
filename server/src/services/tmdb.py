import logging
from typing import Optional

import httpx

from config import settings
from constants.tmdb import (
    DEFAULT_POSTER_SIZE,
    POSTER_SIZES,
    SEARCH_RESULT_FIELDS,
    TMDB_BASE_URL,
    TMDB_IMAGE_BASE_URL,
)

logger = logging.getLogger(__name__)


def poster_url(poster_path: Optional[str], size: str = DEFAULT_POSTER_SIZE) -> Optional[str]:
    if not poster_path:
        return None
    if size not in POSTER_SIZES:
        size = DEFAULT_POSTER_SIZE
    return f"{TMDB_IMAGE_BASE_URL}/{size}{poster_path}"


def release_year(release_date: Optional[str]) -> Optional[int]:
    if not release_date or len(release_date) < 4 or not release_date[:4].isdigit():
        return None
    return int(release_date[:4])


class TMDBClient:
    """Search and details lookups. Every failure degrades to an empty result."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        bearer: bool | None = None,
        language: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.TMDB_API_KEY
        self.bearer = settings.TMDB_BEARER if bearer is None else bearer
        self.language = language or settings.TMDB_LANGUAGE
        self.base_url = TMDB_BASE_URL

        headers = {"accept": "application/json"}
        if self.bearer:
            headers["Authorization"] = f"Bearer {self.api_key}"
        self.client = httpx.AsyncClient(
            timeout=settings.TMDB_TIMEOUT, headers=headers, transport=transport
        )

    def _params(self, **extra) -> dict:
        params = {"language": self.language, **extra}
        if not self.bearer:
            params["api_key"] = self.api_key
        return params

    async def _get(self, path: str, params: dict) -> Optional[dict]:
        try:
            response = await self.client.get(f"{self.base_url}{path}", params=params)
        except httpx.HTTPError as e:
            logger.warning("TMDB request %s failed: %s", path, e)
            return None

        if response.status_code != 200:
            logger.warning("TMDB request %s returned %s", path, response.status_code)
            return None

        try:
            return response.json()
        except ValueError:
            logger.warning("TMDB request %s returned invalid JSON", path)
            return None

    async def search(self, query: str) -> list[dict]:
        if not query:
            return []

        data = await self._get(
            "/search/movie",
            self._params(query=query, include_adult="false", page=1),
        )
        if not data:
            return []

        return [
            {field: m.get(field) for field in SEARCH_RESULT_FIELDS}
            for m in data.get("results", [])
            if m.get("id") is not None
        ]

    async def details(self, tmdb_id: int) -> Optional[dict]:
        data = await self._get(f"/movie/{tmdb_id}", self._params())
        if not data or data.get("id") is None:
            return None

        return {
            "id": data["id"],
            "title": data.get("title"),
            "poster_path": data.get("poster_path"),
            "release_date": data.get("release_date"),
            "overview": data.get("overview"),
            "runtime": data.get("runtime"),
            "genres": [g["name"] for g in data.get("genres", []) if g.get("name")],
        }

    async def aclose(self) -> None:
        await self.client.aclose()


_client: TMDBClient | None = None


def get_tmdb_client() -> TMDBClient:
    global _client
    if _client is None:
        _client = TMDBClient()
    return _client


async def close_tmdb_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
