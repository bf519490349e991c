"""create room tables

Revision ID: 2b7c1e9d4a10
Revises:
Create Date: 2026-10-12

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "2b7c1e9d4a10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "rooms",
        *_base_columns(),
        sa.Column("room_code", sa.String(6), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("host_user_id", sa.String(64), nullable=False),
        sa.Column("winner_movie_id", sa.Uuid(), nullable=True),
        sa.CheckConstraint(
            "status IN ('proposing', 'voting', 'done')", name="ck_rooms_status"
        ),
    )
    op.create_index("ix_rooms_room_code", "rooms", ["room_code"], unique=True)

    op.create_table(
        "participants",
        *_base_columns(),
        sa.Column("room_code", sa.String(6), sa.ForeignKey("rooms.room_code"), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("display_name", sa.String(20), nullable=False),
        sa.UniqueConstraint("room_code", "user_id", name="uq_participant_room_user"),
    )
    op.create_index("ix_participants_room_code", "participants", ["room_code"])

    op.create_table(
        "movies",
        *_base_columns(),
        sa.Column("room_code", sa.String(6), sa.ForeignKey("rooms.room_code"), nullable=False),
        sa.Column("tmdb_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("poster_path", sa.String(255), nullable=True),
        sa.Column("release_year", sa.Integer(), nullable=True),
        sa.Column("runtime", sa.Integer(), nullable=True),
        sa.Column("overview", sa.Text(), nullable=True),
        sa.Column("genres", sa.JSON(), nullable=True),
        sa.UniqueConstraint("room_code", "tmdb_id", name="uq_movie_room_tmdb"),
    )
    op.create_index("ix_movies_room_code", "movies", ["room_code"])

    op.create_table(
        "proposals",
        *_base_columns(),
        sa.Column("room_code", sa.String(6), sa.ForeignKey("rooms.room_code"), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("movie_id", sa.Uuid(), sa.ForeignKey("movies.id"), nullable=False),
        sa.UniqueConstraint("user_id", "movie_id", name="uq_proposal_user_movie"),
    )
    op.create_index("ix_proposals_room_code", "proposals", ["room_code"])

    op.create_table(
        "votes",
        *_base_columns(),
        sa.Column("room_code", sa.String(6), sa.ForeignKey("rooms.room_code"), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("movie_id", sa.Uuid(), sa.ForeignKey("movies.id"), nullable=False),
        sa.Column("value", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("user_id", "movie_id", name="uq_vote_user_movie"),
    )
    op.create_index("ix_votes_room_code", "votes", ["room_code"])


def downgrade() -> None:
    for table in ("votes", "proposals", "movies", "participants"):
        op.drop_index(f"ix_{table}_room_code", table_name=table)
        op.drop_table(table)
    op.drop_index("ix_rooms_room_code", table_name="rooms")
    op.drop_table("rooms")
