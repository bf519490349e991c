from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str
    TMDB_API_KEY: str
    TMDB_BEARER: bool = False  # True when TMDB_API_KEY is a v4 read token
    TMDB_LANGUAGE: str = "en-US"
    TMDB_TIMEOUT: float = 10.0

    APP_NAME: str = "MovieNight"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Room rules
    MAX_PROPOSALS_PER_USER: int = 3
    MIN_PARTICIPANTS: int = 2
    MIN_MOVIES: int = 2
    ROOM_CODE_LENGTH: int = 6
    ROOM_CODE_ATTEMPTS: int = 5
    DISPLAY_NAME_MAX_LENGTH: int = 20

    RATE_LIMIT_PER_MINUTE: int = 30

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
