from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query

from loa_todo.core.identity import get_me

from .schemas import (
    BackupDownloadIn,
    BackupDownloadOut,
    BackupUploadIn,
    FriendOut,
    FriendRequestCreateIn,
    IncomingRequestOut,
    NicknameIn,
    NicknameOut,
    OkOut,
    ShareModeIn,
    ShareModeOut,
    SnapshotOut,
    SnapshotUploadIn,
)
from .service import (
    accept_friend_request,
    create_friend_request,
    download_state_backup,
    get_raid_left_snapshot,
    list_friends,
    list_incoming_requests,
    reject_friend_request,
    update_nickname,
    update_share_mode,
    upload_raid_left_snapshot,
    upload_state_backup,
)

router = APIRouter(tags=["social"])

Me = Dict[str, Any]


@router.get("/friends", response_model=List[FriendOut])
def api_list_friends(me: Me = Depends(get_me)) -> List[FriendOut]:
    return [FriendOut(**r) for r in list_friends(me)]


@router.get("/friend-requests/incoming", response_model=List[IncomingRequestOut])
def api_incoming_requests(me: Me = Depends(get_me)) -> List[IncomingRequestOut]:
    return [IncomingRequestOut(**r) for r in list_incoming_requests(me)]


@router.post("/friend-requests", response_model=OkOut)
def api_create_friend_request(body: FriendRequestCreateIn, me: Me = Depends(get_me)) -> OkOut:
    create_friend_request(me, body.to_friend_code)
    return OkOut()


@router.post("/friend-requests/{request_id}/accept", response_model=OkOut)
def api_accept_friend_request(request_id: str, me: Me = Depends(get_me)) -> OkOut:
    accept_friend_request(me, request_id)
    return OkOut()


@router.post("/friend-requests/{request_id}/reject", response_model=OkOut)
def api_reject_friend_request(request_id: str, me: Me = Depends(get_me)) -> OkOut:
    reject_friend_request(me, request_id)
    return OkOut()


@router.put("/me/nickname", response_model=NicknameOut)
def api_update_nickname(body: NicknameIn, me: Me = Depends(get_me)) -> NicknameOut:
    return NicknameOut(nickname=update_nickname(me, body.nickname))


@router.put("/me/share-mode", response_model=ShareModeOut)
def api_update_share_mode(body: ShareModeIn, me: Me = Depends(get_me)) -> ShareModeOut:
    return ShareModeOut(share_mode=update_share_mode(me, body.share_mode))


@router.put("/me/state-backup", response_model=OkOut)
def api_upload_state_backup(body: BackupUploadIn, me: Me = Depends(get_me)) -> OkOut:
    upload_state_backup(me, body.password, body.state_json)
    return OkOut()


@router.post("/me/state-backup", response_model=BackupDownloadOut)
def api_download_state_backup(body: BackupDownloadIn, me: Me = Depends(get_me)) -> BackupDownloadOut:
    return BackupDownloadOut(**download_state_backup(me, body.password))


@router.put("/me/raid-left-snapshot", response_model=OkOut)
def api_upload_raid_left_snapshot(body: SnapshotUploadIn, me: Me = Depends(get_me)) -> OkOut:
    upload_raid_left_snapshot(me, body.snapshot_json)
    return OkOut()


@router.get("/raid-left-snapshot", response_model=SnapshotOut)
def api_get_raid_left_snapshot(friend_code: str = Query("", alias="friendCode"), me: Me = Depends(get_me)) -> SnapshotOut:
    return SnapshotOut(snapshot_json=get_raid_left_snapshot(me, friend_code))
