from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Optional

from loa_todo.modules.todo_state.normalize import normalize_state
from loa_todo.modules.todo_state.schemas import TodoState

from .schemas import EXPORT_VERSION, ExportEnvelope


class StateImportError(ValueError):
    pass


_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def sanitize_json_text(raw: str) -> str:
    """Strip what copy-pasting from a truncated view leaves behind: ellipses and trailing commas."""
    text = raw.replace("…", "...")
    text = text.replace("...", "")
    text = _TRAILING_COMMA.sub(r"\1", text)
    return text.strip()


def export_envelope(state: TodoState, exported_at: Optional[str] = None) -> ExportEnvelope:
    return ExportEnvelope(version=EXPORT_VERSION, exported_at=exported_at or _now_iso(), state=state)


def export_state_to_json(state: TodoState, exported_at: Optional[str] = None) -> str:
    env = export_envelope(state, exported_at)
    return json.dumps(env.model_dump(mode="json", by_alias=True), ensure_ascii=False, indent=2)


def _unwrap(parsed: Any) -> Any:
    if isinstance(parsed, dict) and parsed.get("state") is not None:
        return parsed["state"]
    return parsed


def import_state_from_json(raw: str) -> TodoState:
    """
    Accepts ``{version, exportedAt, state}`` or a bare state object and runs
    it through the same normalization used when loading the saved state, so
    snapshots from older schemas still import.
    """
    cleaned = sanitize_json_text(raw)
    try:
        parsed = json.loads(cleaned)
    except ValueError as e:
        raise StateImportError(f"Invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise StateImportError("Invalid JSON: expected an object")
    return normalize_state(_unwrap(parsed))
