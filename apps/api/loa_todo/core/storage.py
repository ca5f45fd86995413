"""
On-disk home of the checklist state.

STORAGE_ROOT (default ./data/storage, relative to the repo root) holds one
JSON document named TODO_STATE_FILE (default loa-todo.v1.json). Writes go
through a sibling temp file and os.replace so a crash never leaves half a
document behind.
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict

STATE_FILE_DEFAULT = "loa-todo.v1.json"


def get_storage_root() -> Path:
    p = Path(os.getenv("STORAGE_ROOT", "./data/storage"))
    if p.is_absolute():
        return p
    # apps/api/loa_todo/core/storage.py -> repo root = parents[4]
    return (Path(__file__).resolve().parents[4] / p).resolve()


def get_state_path() -> Path:
    return get_storage_root() / os.getenv("TODO_STATE_FILE", STATE_FILE_DEFAULT)


def write_json_atomic(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    os.replace(tmp, path)


def storage_health() -> Dict[str, Any]:
    root = get_storage_root()
    out: Dict[str, Any] = {"kind": "local_fs", "root": root.as_posix(), "state_file": get_state_path().name}
    try:
        root.mkdir(parents=True, exist_ok=True)
        probe = root / ".probe_write"
        probe.write_text("ok", encoding="utf-8")
        probe.unlink(missing_ok=True)
    except OSError as e:
        out.update(status="error", error=str(e))
    else:
        out["status"] = "ok"
    return out
