import uuid

from sqlalchemy import ForeignKey, String, Uuid, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base


class Proposal(Base):
    __tablename__ = "proposals"
    __table_args__ = (
        UniqueConstraint("user_id", "movie_id", name="uq_proposal_user_movie"),
    )

    room_code: Mapped[str] = mapped_column(
        String(6), ForeignKey("rooms.room_code"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    movie_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("movies.id"), nullable=False
    )

    movie: Mapped["Movie"] = relationship(back_populates="proposals")  # noqa: F821
