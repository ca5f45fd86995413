"""social: users / friend_requests / friendships / raid_left_snapshots / state_backups

- friend_requests: at most one PENDING row per (from, to) (partial unique index)
- friendships: pair stored as (lower id, higher id), unique

Revision ID: 0001_social
Revises:
Create Date: 2026-01-12
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_social"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("friend_code", sa.Text(), nullable=False),
        sa.Column("nickname", sa.Text(), nullable=True),
        sa.Column("share_mode", sa.Text(), nullable=False, server_default="PRIVATE"),  # PUBLIC|PRIVATE
        sa.Column("backup_password_salt", sa.Text(), nullable=True),
        sa.Column("backup_password_hash", sa.Text(), nullable=True),
        sa.Column("created_at", sa.Text(), nullable=False),
    )
    op.create_index("ix_users_friend_code", "users", ["friend_code"], unique=True)

    op.create_table(
        "friend_requests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("from_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("to_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="PENDING"),  # PENDING|ACCEPTED|REJECTED
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("responded_at", sa.Text(), nullable=True),
    )
    op.create_index("ix_friend_requests_from_user_id", "friend_requests", ["from_user_id"])
    op.create_index("ix_friend_requests_to_user_id", "friend_requests", ["to_user_id"])
    op.create_index(
        "uq_friend_request_pending",
        "friend_requests",
        ["from_user_id", "to_user_id"],
        unique=True,
        sqlite_where=sa.text("status='PENDING'"),
        postgresql_where=sa.text("status='PENDING'"),
    )

    op.create_table(
        "friendships",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_a", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("user_b", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.UniqueConstraint("user_a", "user_b", name="uq_friendships_pair"),
    )

    op.create_table(
        "raid_left_snapshots",
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("snapshot_json", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
    )

    op.create_table(
        "state_backups",
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("state_json", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("state_backups")
    op.drop_table("raid_left_snapshots")
    op.drop_table("friendships")
    op.drop_index("uq_friend_request_pending", table_name="friend_requests")
    op.drop_table("friend_requests")
    op.drop_index("ix_users_friend_code", table_name="users")
    op.drop_table("users")
