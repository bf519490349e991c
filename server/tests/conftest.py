import os

# Set env vars BEFORE any imports from the project happen
os.environ.setdefault("TMDB_API_KEY", "test-tmdb")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import core.database as database  # noqa: E402
import services.tmdb as tmdb_module  # noqa: E402
from core.notifications import change_bus  # noqa: E402
from core.rate_limiter import rate_limiter  # noqa: E402
from models import Base  # noqa: E402


class FakeTMDB:
    """Stands in for the TMDB client. Ids 1-99 exist, everything else is unknown."""

    def __init__(self):
        self.detail_calls: list[int] = []
        self.search_calls: list[str] = []

    async def details(self, tmdb_id: int):
        self.detail_calls.append(tmdb_id)
        if not 0 < tmdb_id < 100:
            return None
        return {
            "id": tmdb_id,
            "title": f"Movie {tmdb_id}",
            "poster_path": f"/poster{tmdb_id}.jpg",
            "release_date": "2010-07-16",
            "overview": "A film.",
            "runtime": 120,
            "genres": ["Drama"],
        }

    async def search(self, query: str):
        self.search_calls.append(query)
        if not query:
            return []
        return [
            {
                "id": 27205,
                "title": "Inception",
                "poster_path": "/inception.jpg",
                "release_date": "2010-07-16",
                "overview": "Dreams.",
            }
        ]

    async def aclose(self):
        pass


@pytest.fixture(autouse=True)
def reset_singletons():
    change_bus.reset()
    rate_limiter.reset()
    yield
    change_bus.reset()
    rate_limiter.reset()


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine, monkeypatch):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(database, "async_session", factory)
    return factory


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def tmdb(monkeypatch):
    fake = FakeTMDB()
    monkeypatch.setattr(tmdb_module, "_client", fake)
    return fake


@pytest.fixture
async def client(session_factory, tmdb):
    from main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
