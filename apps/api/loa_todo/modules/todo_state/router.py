from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Body, HTTPException, Query

from . import reset, service
from .normalize import normalize_state
from .schemas import (
    ActiveTableIn,
    BuffIn,
    CellWriteIn,
    CharacterCreateIn,
    CharacterGoldOut,
    CharacterPatchIn,
    Period,
    ProgressOut,
    RaidPickOut,
    ReorderIn,
    ResetPeriod,
    RestGaugeIn,
    TableIn,
    TaskCreateIn,
    TaskPatchIn,
    TaskSectionOut,
    TodoState,
)
from .service import StateError
from .store import get_store

router = APIRouter(prefix="/todo", tags=["todo"])

_STATUS_BY_CODE = {"not_found": 404, "last_table": 409, "bad_request": 400}


def _to_http(e: StateError) -> HTTPException:
    return HTTPException(status_code=_STATUS_BY_CODE.get(e.code, 400), detail={"error": e.code, "message": e.message})


def _mutate(fn: Callable[[TodoState], TodoState]) -> TodoState:
    try:
        return get_store().update(fn)
    except StateError as e:
        raise _to_http(e)


# ---------- state ----------

@router.get("/state", response_model=TodoState)
def api_get_state() -> TodoState:
    return get_store().update(service.tick)


@router.put("/state", response_model=TodoState)
def api_put_state(body: Dict[str, Any] = Body(...)) -> TodoState:
    state = normalize_state(body)
    get_store().save(state)
    return state


@router.post("/reset/{period}", response_model=TodoState)
def api_manual_reset(period: ResetPeriod) -> TodoState:
    if period == "DAILY":
        return _mutate(lambda s: reset.run_daily_reset_now(s, True))
    return _mutate(lambda s: reset.reset_by_period(s, "WEEKLY", True))


# ---------- tables ----------

@router.post("/tables", response_model=TodoState)
def api_add_table(body: TableIn) -> TodoState:
    return _mutate(lambda s: service.add_table(s, body.name))


@router.patch("/tables/{table_id}", response_model=TodoState)
def api_rename_table(table_id: str, body: TableIn) -> TodoState:
    return _mutate(lambda s: service.rename_table(s, table_id, body.name))


@router.delete("/tables/{table_id}", response_model=TodoState)
def api_delete_table(table_id: str) -> TodoState:
    return _mutate(lambda s: service.delete_table(s, table_id))


@router.put("/active-table", response_model=TodoState)
def api_set_active_table(body: ActiveTableIn) -> TodoState:
    return _mutate(lambda s: service.set_active_table(s, body.table_id))


@router.get("/progress", response_model=ProgressOut)
def api_active_progress() -> ProgressOut:
    state = get_store().load_or_create()
    table = service.get_active_table(state)
    done, total = service.progress(state, table.id)
    return ProgressOut(table_id=table.id, done=done, total=total)


@router.get("/tables/{table_id}/progress", response_model=ProgressOut)
def api_progress(table_id: str) -> ProgressOut:
    state = get_store().load_or_create()
    try:
        done, total = service.progress(state, table_id)
    except StateError as e:
        raise _to_http(e)
    return ProgressOut(table_id=table_id, done=done, total=total)


@router.get("/tables/{table_id}/gold", response_model=List[CharacterGoldOut])
def api_table_gold(table_id: str) -> List[CharacterGoldOut]:
    state = get_store().load_or_create()
    try:
        rows = service.table_gold(state, table_id)
    except StateError as e:
        raise _to_http(e)
    return [
        CharacterGoldOut(
            character_id=ch.id,
            item_level=ch.item_level,
            gold=gold,
            raids=[RaidPickOut(raid=p.raid, difficulty=p.difficulty, gold=p.gold) for p in picks],
        )
        for ch, gold, picks in rows
    ]


# ---------- characters ----------

@router.post("/tables/{table_id}/characters", response_model=TodoState)
def api_add_character(table_id: str, body: CharacterCreateIn) -> TodoState:
    return _mutate(lambda s: service.add_character(s, table_id, body.name, body.item_level, body.power))


@router.patch("/tables/{table_id}/characters/{char_id}", response_model=TodoState)
def api_edit_character(table_id: str, char_id: str, body: CharacterPatchIn) -> TodoState:
    return _mutate(
        lambda s: service.edit_character(
            s, table_id, char_id, name=body.name, item_level=body.item_level, power=body.power
        )
    )


@router.delete("/tables/{table_id}/characters/{char_id}", response_model=TodoState)
def api_delete_character(table_id: str, char_id: str) -> TodoState:
    return _mutate(lambda s: service.delete_character(s, table_id, char_id))


@router.post("/tables/{table_id}/characters/reorder", response_model=TodoState)
def api_reorder_characters(table_id: str, body: ReorderIn) -> TodoState:
    return _mutate(lambda s: service.reorder_characters(s, table_id, body.from_id, body.to_id))


@router.put("/tables/{table_id}/characters/{char_id}/rest-gauge", response_model=TodoState)
def api_set_rest_gauge(table_id: str, char_id: str, body: RestGaugeIn) -> TodoState:
    return _mutate(lambda s: service.set_rest_gauge(s, table_id, char_id, chaos=body.chaos, guardian=body.guardian))


@router.put("/tables/{table_id}/characters/{char_id}/buff", response_model=TodoState)
def api_set_buff(table_id: str, char_id: str, body: BuffIn) -> TodoState:
    return _mutate(lambda s: service.set_buff(s, table_id, char_id, body.expires_at))


# ---------- tasks ----------

@router.get("/tasks", response_model=List[TaskSectionOut])
def api_tasks_by_section(period: Optional[Period] = Query(None)) -> List[TaskSectionOut]:
    state = get_store().load_or_create()
    return [TaskSectionOut(section=name, tasks=rows) for name, rows in service.tasks_by_section(state, period)]


@router.post("/tasks", response_model=TodoState)
def api_add_task(body: TaskCreateIn) -> TodoState:
    return _mutate(
        lambda s: service.add_task(
            s, body.title, body.period, body.cell_type, max=body.max, options=body.options, section=body.section
        )
    )


@router.patch("/tasks/{task_id}", response_model=TodoState)
def api_edit_task(task_id: str, body: TaskPatchIn) -> TodoState:
    return _mutate(
        lambda s: service.edit_task(
            s, task_id, title=body.title, section=body.section, max=body.max, options=body.options
        )
    )


@router.delete("/tasks/{task_id}", response_model=TodoState)
def api_delete_task(task_id: str) -> TodoState:
    return _mutate(lambda s: service.delete_task(s, task_id))


@router.post("/tasks/reorder", response_model=TodoState)
def api_reorder_tasks(body: ReorderIn) -> TodoState:
    return _mutate(lambda s: service.reorder_task_within_section(s, body.from_id, body.to_id))


# ---------- cells ----------

@router.put("/tables/{table_id}/cells/{task_id}/{char_id}", response_model=TodoState)
def api_write_cell(table_id: str, task_id: str, char_id: str, body: CellWriteIn) -> TodoState:
    return _mutate(lambda s: service.write_cell(s, table_id, task_id, char_id, body.value))


@router.post("/tables/{table_id}/cells/{task_id}/{char_id}/click", response_model=TodoState)
def api_click_cell(table_id: str, task_id: str, char_id: str) -> TodoState:
    return _mutate(lambda s: service.click_cell(s, table_id, task_id, char_id))
