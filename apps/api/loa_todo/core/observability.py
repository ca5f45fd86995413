"""
Request ids, JSON event lines and the error envelope.

- X-Request-Id in/out (missing -> generated; always echoed back, errors included)
- every error body is {error, message, request_id, details}
- one JSON line per request start/end on the ``loa_todo.http`` logger
"""
from __future__ import annotations

import datetime
import json
import logging
import os
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

REQUEST_ID_HEADER = "X-Request-Id"

_http_log = logging.getLogger("loa_todo.http")
_log = logging.getLogger("loa_todo")


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.datetime.fromtimestamp(record.created, datetime.timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
            "module": record.name,
        }
        payload.update(getattr(record, "fields", {}))
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging() -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    if not _http_log.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JsonLineFormatter())
        _http_log.addHandler(handler)
        _http_log.propagate = False


def emit(level: int, event: str, message: str, request_id: Optional[str], **extra: Any) -> None:
    _http_log.log(level, message, extra={"fields": {"event": event, "request_id": request_id, **extra}})


def error_response(error: str, message: str, request_id: Optional[str], details: Any, status_code: int) -> JSONResponse:
    headers = {REQUEST_ID_HEADER: request_id} if request_id else {}
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "request_id": request_id, "details": details},
        headers=headers,
    )


def request_id_of(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or request.headers.get(REQUEST_ID_HEADER)


async def _request_id_mw(request: Request, call_next):
    rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex.upper()
    request.state.request_id = rid
    started = time.perf_counter()
    emit(logging.INFO, "http.request.start", f"{request.method} {request.url.path}", rid)
    try:
        resp = await call_next(request)
    except Exception as e:
        emit(logging.ERROR, "http.request.exception", str(e), rid)
        raise
    resp.headers[REQUEST_ID_HEADER] = rid
    emit(
        logging.INFO,
        "http.request.end",
        f"{request.method} {request.url.path} -> {resp.status_code}",
        rid,
        status=resp.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 1),
    )
    return resp


async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
    # services raise HTTPException(detail={"error": code, "message": text})
    detail = exc.detail
    details: Dict[str, Any] = {"status_code": exc.status_code}
    if isinstance(detail, dict):
        error = str(detail.get("error") or "http_error")
        message = str(detail.get("message") or "")
        details.update(detail.get("details") or {})
    else:
        error, message = "http_error", str(detail)
    return error_response(error, message, request_id_of(request), details, exc.status_code)


async def _validation_exc_handler(request: Request, exc: RequestValidationError):
    return error_response(
        "validation_error", "request validation failed", request_id_of(request), jsonable_encoder(exc.errors()), 422
    )


async def _unhandled_exc_handler(request: Request, exc: Exception):
    _log.exception("unhandled error on %s %s", request.method, request.url.path)
    return error_response(
        "internal_error", "internal server error", request_id_of(request), {"type": type(exc).__name__}, 500
    )


def install(app: FastAPI) -> None:
    configure_logging()
    app.middleware("http")(_request_id_mw)
    app.add_exception_handler(StarletteHTTPException, _http_exc_handler)
    app.add_exception_handler(RequestValidationError, _validation_exc_handler)
    app.add_exception_handler(Exception, _unhandled_exc_handler)
