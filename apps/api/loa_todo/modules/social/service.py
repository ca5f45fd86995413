from __future__ import annotations

import hashlib
import hmac
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from loa_todo.core.db import get_engine

# scrypt parameters for the backup password
_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1
_SCRYPT_DKLEN = 64
_SALT_BYTES = 16


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": "bad_request", "message": message})


def _not_found(message: str) -> HTTPException:
    return HTTPException(status_code=404, detail={"error": "not_found", "message": message})


def _conflict(code: str, message: str) -> HTTPException:
    return HTTPException(status_code=409, detail={"error": code, "message": message})


def _pair(a: int, b: int) -> Tuple[int, int]:
    # friendships store the lower id first
    return (min(a, b), max(a, b))


def _are_friends(conn: Connection, a: int, b: int) -> bool:
    ua, ub = _pair(a, b)
    row = conn.execute(
        text("SELECT id FROM friendships WHERE user_a=:a AND user_b=:b"),
        {"a": ua, "b": ub},
    ).first()
    return row is not None


def _user_by_code(conn: Connection, friend_code: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        text("SELECT id, friend_code, share_mode FROM users WHERE friend_code=:code"),
        {"code": friend_code},
    ).mappings().first()
    return dict(row) if row else None


# -------------------------
# Friends
# -------------------------
def list_friends(me: Dict[str, Any]) -> List[Dict[str, Any]]:
    with get_engine().connect() as conn:
        rows = conn.execute(
            text(
                """
                SELECT
                  CASE WHEN f.user_a = :me THEN u2.friend_code ELSE u1.friend_code END AS friend_code,
                  CASE WHEN f.user_a = :me THEN u2.nickname ELSE u1.nickname END AS nickname
                FROM friendships f
                JOIN users u1 ON u1.id = f.user_a
                JOIN users u2 ON u2.id = f.user_b
                WHERE f.user_a = :me OR f.user_b = :me
                ORDER BY f.created_at DESC, f.id DESC
                """
            ),
            {"me": me["id"]},
        ).mappings().all()
        return [dict(r) for r in rows]


def list_incoming_requests(me: Dict[str, Any]) -> List[Dict[str, Any]]:
    with get_engine().connect() as conn:
        rows = conn.execute(
            text(
                """
                SELECT fr.id, u.friend_code AS from_friend_code, fr.created_at
                FROM friend_requests fr
                JOIN users u ON u.id = fr.from_user_id
                WHERE fr.to_user_id = :me AND fr.status = 'PENDING'
                ORDER BY fr.created_at DESC, fr.id DESC
                """
            ),
            {"me": me["id"]},
        ).mappings().all()
        return [dict(r) for r in rows]


def create_friend_request(me: Dict[str, Any], to_friend_code: str) -> None:
    code = (to_friend_code or "").strip()
    if not code:
        raise _bad_request("Missing toFriendCode")
    if code == me["friend_code"]:
        raise _bad_request("Cannot friend yourself")

    try:
        with get_engine().begin() as conn:
            target = _user_by_code(conn, code)
            if target is None:
                raise _not_found("User not found")
            if _are_friends(conn, int(me["id"]), int(target["id"])):
                raise _conflict("already_friends", "Already friends")

            # duplicate pending requests hit the partial unique index
            conn.execute(
                text(
                    "INSERT INTO friend_requests (from_user_id, to_user_id, status, created_at) "
                    "VALUES (:src, :dst, 'PENDING', :now)"
                ),
                {"src": me["id"], "dst": target["id"], "now": _now_iso()},
            )
    except IntegrityError:
        raise _conflict("request_exists", "Request already exists")


def _parse_request_id(raw: str) -> int:
    try:
        request_id = int(str(raw).strip())
    except ValueError:
        raise _bad_request("Invalid id")
    if request_id <= 0:
        raise _bad_request("Invalid id")
    return request_id


def _pending_request_for(conn: Connection, me: Dict[str, Any], request_id: int) -> Dict[str, Any]:
    row = conn.execute(
        text("SELECT id, from_user_id, to_user_id, status FROM friend_requests WHERE id=:id"),
        {"id": request_id},
    ).mappings().first()
    if row is None:
        raise _not_found("Not found")
    if int(row["to_user_id"]) != int(me["id"]):
        raise HTTPException(status_code=403, detail={"error": "forbidden", "message": "Forbidden"})
    if row["status"] != "PENDING":
        raise _conflict("not_pending", "Not pending")
    return dict(row)


def accept_friend_request(me: Dict[str, Any], raw_id: str) -> None:
    request_id = _parse_request_id(raw_id)
    with get_engine().begin() as conn:
        row = _pending_request_for(conn, me, request_id)
        a, b = _pair(int(row["from_user_id"]), int(row["to_user_id"]))
        now = _now_iso()
        conn.execute(
            text(
                "INSERT INTO friendships (user_a, user_b, created_at) VALUES (:a, :b, :now) "
                "ON CONFLICT (user_a, user_b) DO NOTHING"
            ),
            {"a": a, "b": b, "now": now},
        )
        conn.execute(
            text("UPDATE friend_requests SET status='ACCEPTED', responded_at=:now WHERE id=:id"),
            {"now": now, "id": request_id},
        )


def reject_friend_request(me: Dict[str, Any], raw_id: str) -> None:
    request_id = _parse_request_id(raw_id)
    with get_engine().begin() as conn:
        _pending_request_for(conn, me, request_id)
        conn.execute(
            text("UPDATE friend_requests SET status='REJECTED', responded_at=:now WHERE id=:id"),
            {"now": _now_iso(), "id": request_id},
        )


# -------------------------
# Profile
# -------------------------
def update_nickname(me: Dict[str, Any], nickname: str) -> str:
    nick = (nickname or "").strip()
    if not nick:
        raise _bad_request("Missing nickname")
    with get_engine().begin() as conn:
        conn.execute(text("UPDATE users SET nickname=:nick WHERE id=:id"), {"nick": nick, "id": me["id"]})
    return nick


def update_share_mode(me: Dict[str, Any], share_mode: str) -> str:
    if share_mode not in ("PUBLIC", "PRIVATE"):
        raise _bad_request("invalid share mode")
    with get_engine().begin() as conn:
        conn.execute(text("UPDATE users SET share_mode=:mode WHERE id=:id"), {"mode": share_mode, "id": me["id"]})
    return share_mode


# -------------------------
# Backup password
# -------------------------
def hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt,
        n=_SCRYPT_N,
        r=_SCRYPT_R,
        p=_SCRYPT_P,
        dklen=_SCRYPT_DKLEN,
    )


def ensure_backup_password(conn: Connection, user_id: int, password: str) -> None:
    """First use stores the password; every later call must present the same one."""
    row = conn.execute(
        text("SELECT backup_password_salt, backup_password_hash FROM users WHERE id=:id"),
        {"id": user_id},
    ).mappings().first()
    if row is None:
        raise _not_found("User not found")

    if not row["backup_password_hash"]:
        salt = os.urandom(_SALT_BYTES)
        conn.execute(
            text("UPDATE users SET backup_password_salt=:salt, backup_password_hash=:hash WHERE id=:id"),
            {"salt": salt.hex(), "hash": hash_password(password, salt).hex(), "id": user_id},
        )
        return

    expected = bytes.fromhex(row["backup_password_hash"])
    actual = hash_password(password, bytes.fromhex(row["backup_password_salt"]))
    if not hmac.compare_digest(expected, actual):
        raise HTTPException(status_code=401, detail={"error": "wrong_password", "message": "Wrong backup password"})


# -------------------------
# State backup
# -------------------------
def upload_state_backup(me: Dict[str, Any], password: str, state_json: str) -> None:
    if not password:
        raise _bad_request("Missing password")
    if not state_json:
        raise _bad_request("Missing stateJson")

    with get_engine().begin() as conn:
        ensure_backup_password(conn, int(me["id"]), password)
        conn.execute(
            text(
                """
                INSERT INTO state_backups (user_id, state_json, updated_at)
                VALUES (:uid, :body, :now)
                ON CONFLICT (user_id)
                DO UPDATE SET state_json = excluded.state_json, updated_at = excluded.updated_at
                """
            ),
            {"uid": me["id"], "body": state_json, "now": _now_iso()},
        )


def download_state_backup(me: Dict[str, Any], password: str) -> Dict[str, Any]:
    if not password:
        raise _bad_request("Missing password")

    with get_engine().begin() as conn:
        ensure_backup_password(conn, int(me["id"]), password)
        row = conn.execute(
            text("SELECT state_json, updated_at FROM state_backups WHERE user_id=:uid"),
            {"uid": me["id"]},
        ).mappings().first()
    if row is None:
        raise _not_found("No backup found")
    return {"state_json": row["state_json"], "updated_at": row["updated_at"]}


# -------------------------
# Raid-left snapshots
# -------------------------
def upload_raid_left_snapshot(me: Dict[str, Any], snapshot_json: str) -> None:
    if not snapshot_json:
        raise _bad_request("Missing snapshotJson")

    with get_engine().begin() as conn:
        conn.execute(
            text(
                """
                INSERT INTO raid_left_snapshots (user_id, snapshot_json, updated_at)
                VALUES (:uid, :body, :now)
                ON CONFLICT (user_id)
                DO UPDATE SET snapshot_json = excluded.snapshot_json, updated_at = excluded.updated_at
                """
            ),
            {"uid": me["id"], "body": snapshot_json, "now": _now_iso()},
        )


def get_raid_left_snapshot(me: Dict[str, Any], friend_code: str) -> str:
    code = (friend_code or "").strip()
    if not code:
        raise _bad_request("Missing friendCode")

    with get_engine().connect() as conn:
        target = _user_by_code(conn, code)
        if target is None:
            raise _not_found("User not found")

        target_id = int(target["id"])
        owner = target_id == int(me["id"])
        if str(target["share_mode"]) == "PRIVATE" and not owner and not _are_friends(conn, int(me["id"]), target_id):
            raise HTTPException(status_code=403, detail={"error": "forbidden", "message": "Forbidden"})

        row = conn.execute(
            text("SELECT snapshot_json FROM raid_left_snapshots WHERE user_id=:uid"),
            {"uid": target_id},
        ).mappings().first()
    if row is None:
        raise _not_found("No snapshot")
    return str(row["snapshot_json"])
