import uuid

from sqlalchemy import Boolean, ForeignKey, String, Uuid, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base


class Vote(Base):
    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("user_id", "movie_id", name="uq_vote_user_movie"),
    )

    room_code: Mapped[str] = mapped_column(
        String(6), ForeignKey("rooms.room_code"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    movie_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("movies.id"), nullable=False
    )
    value: Mapped[bool] = mapped_column(Boolean, nullable=False)

    movie: Mapped["Movie"] = relationship(back_populates="votes")  # noqa: F821
