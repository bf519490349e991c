import enum
import uuid

from sqlalchemy import CheckConstraint, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base


class RoomStatus(str, enum.Enum):
    PROPOSING = "proposing"
    VOTING = "voting"
    DONE = "done"


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = (
        CheckConstraint(
            "status IN ('proposing', 'voting', 'done')", name="ck_rooms_status"
        ),
    )

    room_code: Mapped[str] = mapped_column(String(6), unique=True, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=RoomStatus.PROPOSING.value
    )
    host_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # Written once, by the winner resolver
    winner_movie_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    participants: Mapped[list["Participant"]] = relationship(back_populates="room")  # noqa: F821
    movies: Mapped[list["Movie"]] = relationship(back_populates="room")  # noqa: F821
