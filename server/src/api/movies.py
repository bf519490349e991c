from fastapi import APIRouter, Depends, Query

from api.dependencies import current_user
from core.sanitization import sanitize_query
from services.tmdb import get_tmdb_client, poster_url

router = APIRouter(prefix="/movies", tags=["movies"])


@router.get("/search")
async def search_movies(
    q: str = Query(default=""),
    user_id: str = Depends(current_user),
):
    results = await get_tmdb_client().search(sanitize_query(q))
    return {
        "results": [
            {**movie, "poster_url": poster_url(movie.get("poster_path"), "w342")}
            for movie in results
        ]
    }
