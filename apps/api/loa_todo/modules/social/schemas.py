from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ShareMode = Literal["PUBLIC", "PRIVATE"]


class _Wire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OkOut(_Wire):
    ok: bool = True


class FriendOut(_Wire):
    friend_code: str
    nickname: Optional[str] = None


class IncomingRequestOut(_Wire):
    id: int
    from_friend_code: str
    created_at: str


class FriendRequestCreateIn(_Wire):
    to_friend_code: str = ""


class NicknameIn(_Wire):
    nickname: str = ""


class NicknameOut(OkOut):
    nickname: str


class ShareModeIn(_Wire):
    share_mode: ShareMode


class ShareModeOut(OkOut):
    share_mode: ShareMode


class BackupUploadIn(_Wire):
    password: str = ""
    state_json: str = ""


class BackupDownloadIn(_Wire):
    password: str = ""


class BackupDownloadOut(OkOut):
    state_json: str
    updated_at: str


class SnapshotUploadIn(_Wire):
    snapshot_json: str = ""


class SnapshotOut(_Wire):
    snapshot_json: str = Field(...)
