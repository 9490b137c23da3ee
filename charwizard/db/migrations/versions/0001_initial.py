"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from charwizard.db.types import JSONType

revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "creation_sessions",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("session_data", JSONType, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "characters",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("character_data", JSONType, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_characters_user_id", "characters", ["user_id"])
    op.create_index("ix_characters_created_at", "characters", ["created_at"])

    op.create_table(
        "daily_usage",
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("usage_date", sa.Date(), nullable=False),
        sa.Column("completion_call_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("user_id", "usage_date", name="pk_daily_usage"),
    )
    op.create_index("ix_daily_usage_usage_date", "daily_usage", ["usage_date"])


def downgrade() -> None:
    op.drop_index("ix_daily_usage_usage_date", table_name="daily_usage")
    op.drop_table("daily_usage")
    op.drop_index("ix_characters_created_at", table_name="characters")
    op.drop_index("ix_characters_user_id", table_name="characters")
    op.drop_table("characters")
    op.drop_table("creation_sessions")
