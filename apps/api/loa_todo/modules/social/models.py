from __future__ import annotations

from typing import Optional

from sqlalchemy import Index, UniqueConstraint, text
from sqlmodel import Field, SQLModel


# identity is a client-chosen friend code; no login
class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    friend_code: str = Field(unique=True, index=True)
    nickname: Optional[str] = Field(default=None)
    share_mode: str = Field(default="PRIVATE")  # PUBLIC|PRIVATE

    # scrypt, set on first backup use
    backup_password_salt: Optional[str] = Field(default=None)
    backup_password_hash: Optional[str] = Field(default=None)

    created_at: str


class FriendRequest(SQLModel, table=True):
    __tablename__ = "friend_requests"
    __table_args__ = (
        Index(
            "uq_friend_request_pending",
            "from_user_id",
            "to_user_id",
            unique=True,
            sqlite_where=text("status='PENDING'"),
            postgresql_where=text("status='PENDING'"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    from_user_id: int = Field(foreign_key="users.id", index=True)
    to_user_id: int = Field(foreign_key="users.id", index=True)
    status: str = Field(default="PENDING")  # PENDING|ACCEPTED|REJECTED
    created_at: str
    responded_at: Optional[str] = Field(default=None)


# user_a < user_b always
class Friendship(SQLModel, table=True):
    __tablename__ = "friendships"
    __table_args__ = (UniqueConstraint("user_a", "user_b", name="uq_friendships_pair"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_a: int = Field(foreign_key="users.id")
    user_b: int = Field(foreign_key="users.id")
    created_at: str


class RaidLeftSnapshot(SQLModel, table=True):
    __tablename__ = "raid_left_snapshots"

    user_id: int = Field(foreign_key="users.id", primary_key=True)
    snapshot_json: str
    updated_at: str


class StateBackup(SQLModel, table=True):
    __tablename__ = "state_backups"

    user_id: int = Field(foreign_key="users.id", primary_key=True)
    state_json: str
    updated_at: str
