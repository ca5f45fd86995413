"""
Header-based identity.

There is no login: the client sends `x-friend-code` (required) and
`x-nickname` (optional) on every request, and the user row is upserted
on first sight. Swap this dependency out if real auth is ever added.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Header, HTTPException
from sqlalchemy import text

from loa_todo.core.db import get_engine


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _select_user(conn, friend_code: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        text("SELECT id, friend_code, nickname, share_mode FROM users WHERE friend_code=:code"),
        {"code": friend_code},
    ).mappings().first()
    return dict(row) if row else None


def upsert_user(friend_code: str, nickname: str) -> Dict[str, Any]:
    eng = get_engine()
    with eng.begin() as conn:
        existed = _select_user(conn, friend_code)
        if existed:
            # fill an empty nickname
            if not existed.get("nickname") and nickname:
                conn.execute(
                    text("UPDATE users SET nickname=:nick WHERE id=:id"),
                    {"nick": nickname, "id": existed["id"]},
                )
                existed["nickname"] = nickname
            return existed

        conn.execute(
            text(
                "INSERT INTO users (friend_code, nickname, share_mode, created_at) "
                "VALUES (:code, :nick, 'PRIVATE', :now) ON CONFLICT (friend_code) DO NOTHING"
            ),
            {"code": friend_code, "nick": nickname, "now": _now_iso()},
        )
        created = _select_user(conn, friend_code)
        if created is None:
            raise RuntimeError(f"user upsert failed for {friend_code!r}")
        return created


def get_me(
    x_friend_code: Optional[str] = Header(None),
    x_nickname: Optional[str] = Header(None),
) -> Dict[str, Any]:
    friend_code = (x_friend_code or "").strip()
    if not friend_code:
        raise HTTPException(status_code=401, detail={"error": "unauthorized", "message": "Missing x-friend-code"})
    nickname = (x_nickname or friend_code).strip() or friend_code
    return upsert_user(friend_code, nickname)
