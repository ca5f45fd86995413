from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from loa_todo.core import observability
from loa_todo.core.db import auto_create_enabled, db_health, init_db
from loa_todo.core.storage import storage_health
from loa_todo.modules.exports_imports.router import router as exports_imports_router
from loa_todo.modules.social.router import router as social_router
from loa_todo.modules.todo_state.router import router as todo_router
from loa_todo.modules.todo_state.scheduler import (
    AutoResetTicker,
    get_interval_seconds,
    is_auto_reset_enabled,
    tick_once,
)

APP_VERSION = os.getenv("APP_VERSION", "0.1.0")

log = logging.getLogger("loa_todo")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if auto_create_enabled():
        init_db()

    # catch up whatever was missed while the service was down
    tick_once()
    ticker: Optional[AutoResetTicker] = None
    if is_auto_reset_enabled():
        ticker = AutoResetTicker(get_interval_seconds())
        ticker.start()
    try:
        yield
    finally:
        if ticker is not None:
            await ticker.stop()
        log.info("shutdown complete")


app = FastAPI(title="LOA Todo API", version=APP_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()],
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["content-type", "x-friend-code", "x-nickname", observability.REQUEST_ID_HEADER],
    expose_headers=[observability.REQUEST_ID_HEADER],
    max_age=86400,
)
observability.install(app)


@app.get("/health")
def health():
    db = db_health()
    storage = storage_health()
    ok = db["status"] == "ok" and storage["status"] == "ok"
    return {
        "status": "ok" if ok else "degraded",
        "version": APP_VERSION,
        "db": db,
        "storage": storage,
        "last_error_summary": db.get("error") or storage.get("error"),
    }


app.include_router(todo_router)
app.include_router(exports_imports_router)
app.include_router(social_router)
