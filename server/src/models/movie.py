from sqlalchemy import JSON, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base


class Movie(Base):
    __tablename__ = "movies"
    __table_args__ = (
        UniqueConstraint("room_code", "tmdb_id", name="uq_movie_room_tmdb"),
    )

    room_code: Mapped[str] = mapped_column(
        String(6), ForeignKey("rooms.room_code"), nullable=False, index=True
    )
    tmdb_id: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    poster_path: Mapped[str | None] = mapped_column(String(255), nullable=True)
    release_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    runtime: Mapped[int | None] = mapped_column(Integer, nullable=True)
    overview: Mapped[str | None] = mapped_column(Text, nullable=True)
    genres: Mapped[list | None] = mapped_column(JSON, nullable=True)

    room: Mapped["Room"] = relationship(back_populates="movies")  # noqa: F821
    proposals: Mapped[list["Proposal"]] = relationship(back_populates="movie")  # noqa: F821
    votes: Mapped[list["Vote"]] = relationship(back_populates="movie")  # noqa: F821
