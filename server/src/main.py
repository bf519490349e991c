import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from api.auth import router as auth_router
from api.events import router as events_router
from api.health import router as health_router
from api.movies import router as movies_router
from api.rooms import router as rooms_router
from config import settings
from core.database import engine
from core.errors import MovieNightError, StoreError
from models import Base
from services.tmdb import close_tmdb_client

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info(
        "%s ready: max %d proposals per user, voting needs %d participants and %d movies",
        settings.APP_NAME,
        settings.MAX_PROPOSALS_PER_USER,
        settings.MIN_PARTICIPANTS,
        settings.MIN_MOVIES,
    )

    yield
    await close_tmdb_client()
    await engine.dispose()


app = FastAPI(title=settings.APP_NAME, version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "X-User-Id"],
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        return response


app.add_middleware(SecurityHeadersMiddleware)


@app.exception_handler(MovieNightError)
async def movienight_error_handler(request: Request, exc: MovieNightError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc)
    error = StoreError("Something went wrong, please try again.")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


app.include_router(health_router)
app.include_router(auth_router)
app.include_router(movies_router)
app.include_router(rooms_router)
app.include_router(events_router)
