"""Create users, sessions and ephemeral_codes tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("uid", sa.String(64), primary_key=True),
        sa.Column("discord_id", sa.String(32), nullable=True),
        sa.Column(
            "timezone",
            sa.String(100),
            nullable=False,
            server_default="UTC",
        ),
        sa.Column("created_via", sa.String(20), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_users_discord_id", "users", ["discord_id"], unique=True)

    op.create_table(
        "sessions",
        sa.Column("token", sa.String(128), primary_key=True),
        sa.Column(
            "uid",
            sa.String(64),
            sa.ForeignKey("users.uid", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_sessions_uid", "sessions", ["uid"])
    op.create_index("ix_sessions_expires_at", "sessions", ["expires_at"])

    op.create_table(
        "ephemeral_codes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("code", sa.String(128), nullable=False),
        sa.Column(
            "uid",
            sa.String(64),
            sa.ForeignKey("users.uid", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("kind", "code", name="uq_ephemeral_codes_kind_code"),
    )
    op.create_index("ix_ephemeral_codes_uid", "ephemeral_codes", ["uid"])
    op.create_index("ix_ephemeral_codes_expires_at", "ephemeral_codes", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_ephemeral_codes_expires_at", table_name="ephemeral_codes")
    op.drop_index("ix_ephemeral_codes_uid", table_name="ephemeral_codes")
    op.drop_table("ephemeral_codes")

    op.drop_index("ix_sessions_expires_at", table_name="sessions")
    op.drop_index("ix_sessions_uid", table_name="sessions")
    op.drop_table("sessions")

    op.drop_index("ix_users_discord_id", table_name="users")
    op.drop_table("users")
