from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base


class Participant(Base):
    __tablename__ = "participants"
    __table_args__ = (
        UniqueConstraint("room_code", "user_id", name="uq_participant_room_user"),
    )

    room_code: Mapped[str] = mapped_column(
        String(6), ForeignKey("rooms.room_code"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    display_name: Mapped[str] = mapped_column(String(20), nullable=False)

    room: Mapped["Room"] = relationship(back_populates="participants")  # noqa: F821
