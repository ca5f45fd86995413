from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Optional

from loa_todo.core.storage import get_state_path, write_json_atomic

from .normalize import make_default_state, normalize_state
from .schemas import TodoState, state_to_dict

log = logging.getLogger(__name__)


class StateStore:
    """
    The persisted checklist state: one JSON document under a fixed key.

    Every write goes through ``update`` (or ``save``) under a per-file
    lock, so the reset ticker and request handlers never interleave a
    load/modify/save cycle. Last writer wins.
    """

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.RLock()

    def load(self) -> Optional[TodoState]:
        with self._lock:
            try:
                raw = self.path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None
            except OSError as e:
                log.warning("state file unreadable (%s): %s", self.path, e)
                return None

            try:
                parsed = json.loads(raw)
            except ValueError as e:
                log.warning("state file is not valid JSON (%s): %s", self.path, e)
                return None

            state = normalize_state(parsed)
            self.save(state)
            return state

    def save(self, state: TodoState) -> None:
        with self._lock:
            write_json_atomic(self.path, state_to_dict(state))

    def load_or_create(self) -> TodoState:
        with self._lock:
            state = self.load()
            if state is None:
                state = make_default_state()
                self.save(state)
            return state

    def update(self, fn: Callable[[TodoState], TodoState]) -> TodoState:
        with self._lock:
            cur = self.load_or_create()
            nxt = fn(cur)
            if nxt is not cur:
                self.save(nxt)
            return nxt


_stores: Dict[str, StateStore] = {}
_stores_lock = threading.Lock()


def get_store() -> StateStore:
    path = get_state_path()
    key = str(path)
    with _stores_lock:
        store = _stores.get(key)
        if store is None:
            store = _stores[key] = StateStore(path)
        return store
