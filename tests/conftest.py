from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from loa_todo.core.db import dispose_engine
from loa_todo.modules.todo_state.normalize import create_character, create_task
from loa_todo.modules.todo_state.schemas import (
    CORE_DAILY_TASK_ID,
    GUARDIAN_DAILY_TASK_ID,
    RestGauge,
    TodoState,
    TodoTable,
)


@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///" + (tmp_path / "app.db").as_posix())
    monkeypatch.setenv("STORAGE_ROOT", (tmp_path / "storage").as_posix())
    monkeypatch.setenv("AUTO_RESET_ENABLED", "0")
    monkeypatch.setenv("DB_AUTO_CREATE", "1")
    monkeypatch.setenv("EXPORT_IMPORT_ENABLED", "1")
    dispose_engine()
    yield tmp_path
    dispose_engine()


@pytest.fixture
def client(env):
    from loa_todo.main import app

    with TestClient(app) as c:
        yield c


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_state(chaos: int = 0, guardian: int = 0, **reset) -> TodoState:
    """One table, one character, the two gauge-driving daily tasks and one weekly task."""
    ch = create_character("Alpha", "1700", "3000")
    tasks = [
        create_task("Kurzan Front", "DAILY", "COUNTER", task_id=CORE_DAILY_TASK_ID, max=1, section="Daily", order=0),
        create_task("Guardian Raid", "DAILY", "COUNTER", task_id=GUARDIAN_DAILY_TASK_ID, max=1, section="Daily", order=1),
        create_task("Act 1", "WEEKLY", "CHECK", task_id="ACT_1", section="Weekly raid", order=2),
        create_task("Cube", "NONE", "TEXT", task_id="CUBE", section="Misc", order=3),
    ]
    table = TodoTable(
        id="tbl_1",
        name="Table 1",
        characters=[ch],
        values={},
        rest_gauges={ch.id: RestGauge(chaos=chaos, guardian=guardian)},
    )
    state = TodoState(tables=[table], active_table_id=table.id, tasks=tasks)
    if reset:
        state = state.model_copy(update={"reset": state.reset.model_copy(update=reset)})
    return state
