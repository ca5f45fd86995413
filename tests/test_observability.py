"""Error envelope, JSON log lines and engine URL handling."""

from __future__ import annotations

import json
import logging

from loa_todo.core.db import db_kind, engine_url
from loa_todo.core.observability import JsonLineFormatter, error_response


def test_error_response_envelope() -> None:
    resp = error_response("not_found", "gone", "RID", {"x": 1}, 404)
    assert resp.status_code == 404
    assert resp.headers["X-Request-Id"] == "RID"
    assert json.loads(resp.body) == {"error": "not_found", "message": "gone", "request_id": "RID", "details": {"x": 1}}


def test_json_line_formatter_merges_fields() -> None:
    record = logging.LogRecord("loa_todo.http", logging.INFO, __file__, 1, "GET /health", None, None)
    record.fields = {"event": "http.request.start", "request_id": "RID"}
    line = json.loads(JsonLineFormatter().format(record))
    assert line["level"] == "info"
    assert line["message"] == "GET /health"
    assert line["event"] == "http.request.start"
    assert line["request_id"] == "RID"


def test_engine_url_rewrites_postgres_scheme() -> None:
    assert engine_url("postgres://u:p@host/db") == "postgresql+psycopg://u:p@host/db"
    assert engine_url("postgresql://u:p@host/db") == "postgresql+psycopg://u:p@host/db"
    assert engine_url("postgresql+psycopg://u:p@host/db") == "postgresql+psycopg://u:p@host/db"
    assert engine_url("sqlite:////tmp/x.db") == "sqlite:////tmp/x.db"
    assert db_kind("postgres://h/db") == "postgresql"
    assert db_kind("sqlite:///x.db") == "sqlite"
