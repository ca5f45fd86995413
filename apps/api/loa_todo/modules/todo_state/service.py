from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from loa_todo.core.ids import new_id

from .clock import aware, to_ms
from .normalize import DEFAULT_SECTION, create_character, create_task
from .raids import RaidPick, is_task_eligible, weekly_top3_gold
from .reset import apply_auto_reset_if_needed
from .schemas import (
    CHAOS_GAUGE_CAP,
    GUARDIAN_GAUGE_CAP,
    CellType,
    CellValue,
    Character,
    CheckCell,
    CounterCell,
    Period,
    RestGauge,
    SelectCell,
    TaskRow,
    TextCell,
    TodoState,
    TodoTable,
)

SECTION_BY_PERIOD: Dict[str, str] = {"DAILY": "Daily", "WEEKLY": "Weekly raid", "NONE": "Misc"}
DEFAULT_COUNTER_MAX = 2
DEFAULT_SELECT_OPTIONS = ["Done", "Not done"]


class StateError(ValueError):
    """A mutation that cannot apply to the current state (unknown id, last table...)."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def _clamp(n: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, n))


def _parse_iso(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        dt = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


# -------------------------
# lookups
# -------------------------
def get_active_table(state: TodoState) -> TodoTable:
    for t in state.tables:
        if t.id == state.active_table_id:
            return t
    return state.tables[0]


def get_table(state: TodoState, table_id: str) -> TodoTable:
    for t in state.tables:
        if t.id == table_id:
            return t
    raise StateError("not_found", f"table not found: {table_id}")


def get_task(state: TodoState, task_id: str) -> TaskRow:
    for t in state.tasks:
        if t.id == task_id:
            return t
    raise StateError("not_found", f"task not found: {task_id}")


def _get_character(table: TodoTable, char_id: str) -> Character:
    for c in table.characters:
        if c.id == char_id:
            return c
    raise StateError("not_found", f"character not found: {char_id}")


def _replace_table(state: TodoState, table: TodoTable) -> TodoState:
    return state.model_copy(update={"tables": [table if t.id == table.id else t for t in state.tables]})


def _replace_character(table: TodoTable, ch: Character) -> TodoTable:
    return table.model_copy(update={"characters": [ch if c.id == ch.id else c for c in table.characters]})


# -------------------------
# tables
# -------------------------
def add_table(state: TodoState, name: str) -> TodoState:
    tbl = TodoTable(id=new_id("tbl"), name=name.strip())
    return state.model_copy(update={"tables": [*state.tables, tbl], "active_table_id": tbl.id})


def rename_table(state: TodoState, table_id: str, name: str) -> TodoState:
    tbl = get_table(state, table_id)
    name = name.strip()
    if not name or name == tbl.name:
        return state
    return _replace_table(state, tbl.model_copy(update={"name": name}))


def set_active_table(state: TodoState, table_id: str) -> TodoState:
    get_table(state, table_id)
    return state.model_copy(update={"active_table_id": table_id})


def delete_table(state: TodoState, table_id: str) -> TodoState:
    get_table(state, table_id)
    if len(state.tables) <= 1:
        raise StateError("last_table", "at least one table must remain")
    tables = [t for t in state.tables if t.id != table_id]
    active = state.active_table_id if state.active_table_id != table_id else tables[0].id
    return state.model_copy(update={"tables": tables, "active_table_id": active})


# -------------------------
# characters (per table)
# -------------------------
def add_character(state: TodoState, table_id: str, name: str, item_level: str = "", power: str = "") -> TodoState:
    tbl = get_table(state, table_id)
    ch = create_character(name.strip(), item_level.strip(), power.strip())
    gauges = {**tbl.rest_gauges, ch.id: RestGauge()}
    return _replace_table(state, tbl.model_copy(update={"characters": [*tbl.characters, ch], "rest_gauges": gauges}))


def edit_character(
    state: TodoState,
    table_id: str,
    char_id: str,
    *,
    name: Optional[str] = None,
    item_level: Optional[str] = None,
    power: Optional[str] = None,
) -> TodoState:
    tbl = get_table(state, table_id)
    ch = _get_character(tbl, char_id)

    patch: Dict[str, Any] = {}
    if name is not None and name.strip():
        patch["name"] = name.strip()
    if item_level is not None:
        patch["item_level"] = item_level.strip()
    if power is not None:
        patch["power"] = power.strip()
    if not patch:
        return state

    return _replace_table(state, _replace_character(tbl, ch.model_copy(update=patch)))


def delete_character(state: TodoState, table_id: str, char_id: str) -> TodoState:
    tbl = get_table(state, table_id)
    _get_character(tbl, char_id)

    chars = [c for c in tbl.characters if c.id != char_id]
    values = {task_id: {k: v for k, v in row.items() if k != char_id} for task_id, row in tbl.values.items()}
    gauges = {k: v for k, v in tbl.rest_gauges.items() if k != char_id}
    return _replace_table(state, tbl.model_copy(update={"characters": chars, "values": values, "rest_gauges": gauges}))


def reorder_characters(state: TodoState, table_id: str, from_id: str, to_id: str) -> TodoState:
    if from_id == to_id:
        return state
    tbl = get_table(state, table_id)
    chars = list(tbl.characters)
    ids = [c.id for c in chars]
    if from_id not in ids or to_id not in ids:
        raise StateError("not_found", "character not found")

    moved = chars.pop(ids.index(from_id))
    chars.insert(ids.index(to_id), moved)
    return _replace_table(state, tbl.model_copy(update={"characters": chars}))


# -------------------------
# tasks (shared by every table)
# -------------------------
def _counter_max(raw: Optional[int]) -> int:
    return max(1, raw) if raw else DEFAULT_COUNTER_MAX


def _select_options(raw: Optional[List[str]]) -> List[str]:
    opts = [s.strip() for s in (raw or []) if s and s.strip()]
    return opts or list(DEFAULT_SELECT_OPTIONS)


def add_task(
    state: TodoState,
    title: str,
    period: Period,
    cell_type: CellType,
    *,
    max: Optional[int] = None,
    options: Optional[List[str]] = None,
    section: Optional[str] = None,
) -> TodoState:
    task = create_task(
        title.strip(),
        period,
        cell_type,
        max=_counter_max(max) if cell_type == "COUNTER" else None,
        options=_select_options(options) if cell_type == "SELECT" else None,
        section=(section or "").strip() or SECTION_BY_PERIOD[period],
    )
    return state.model_copy(update={"tasks": [*state.tasks, task]})


def edit_task(
    state: TodoState,
    task_id: str,
    *,
    title: Optional[str] = None,
    section: Optional[str] = None,
    max: Optional[int] = None,
    options: Optional[List[str]] = None,
) -> TodoState:
    task = get_task(state, task_id)

    patch: Dict[str, Any] = {}
    if title is not None and title.strip():
        patch["title"] = title.strip()
    if section is not None:
        patch["section"] = section.strip() or DEFAULT_SECTION
    if max is not None and task.cell_type == "COUNTER":
        patch["max"] = _counter_max(max)
    if options is not None and task.cell_type == "SELECT":
        patch["options"] = _select_options(options)
    if not patch:
        return state

    nxt = task.model_copy(update=patch)
    return state.model_copy(update={"tasks": [nxt if t.id == task_id else t for t in state.tasks]})


def delete_task(state: TodoState, task_id: str) -> TodoState:
    get_task(state, task_id)
    tasks = [t for t in state.tasks if t.id != task_id]
    tables = [
        t.model_copy(update={"values": {k: v for k, v in t.values.items() if k != task_id}}) if task_id in t.values else t
        for t in state.tables
    ]
    return state.model_copy(update={"tasks": tasks, "tables": tables})


def reorder_task_within_section(state: TodoState, from_id: str, to_id: str) -> TodoState:
    if from_id == to_id:
        return state
    src = get_task(state, from_id)
    dst = get_task(state, to_id)
    # moves across sections are ignored
    if src.section != dst.section:
        return state

    sec = sorted((t for t in state.tasks if t.section == src.section), key=lambda t: t.order)
    ids = [t.id for t in sec]
    moved = sec.pop(ids.index(from_id))
    sec.insert(ids.index(to_id), moved)

    base = min(t.order for t in sec)
    order = {t.id: base + i for i, t in enumerate(sec)}
    tasks = [t.model_copy(update={"order": order[t.id]}) if t.id in order else t for t in state.tasks]
    return state.model_copy(update={"tasks": tasks})


def tasks_by_section(state: TodoState, period: Optional[Period] = None) -> List[Tuple[str, List[TaskRow]]]:
    groups: Dict[str, List[TaskRow]] = {}
    for t in sorted(state.tasks, key=lambda t: t.order):
        if period is not None and t.period != period:
            continue
        groups.setdefault(t.section, []).append(t)
    return list(groups.items())


# -------------------------
# cells
# -------------------------
def get_cell(state: TodoState, table_id: str, task_id: str, char_id: str) -> Optional[CellValue]:
    return get_table(state, table_id).values.get(task_id, {}).get(char_id)


def set_cell(state: TodoState, table_id: str, task_id: str, char_id: str, cell: CellValue) -> TodoState:
    tbl = get_table(state, table_id)
    task = get_task(state, task_id)
    _get_character(tbl, char_id)
    if cell.type != task.cell_type:
        raise StateError("bad_request", f"task {task_id} takes {task.cell_type} cells, got {cell.type}")

    values = dict(tbl.values)
    values[task_id] = {**values.get(task_id, {}), char_id: cell}
    return _replace_table(state, tbl.model_copy(update={"values": values}))


def write_cell(
    state: TodoState,
    table_id: str,
    task_id: str,
    char_id: str,
    value: Any,
    now: Optional[datetime] = None,
) -> TodoState:
    """Build the cell matching the task's type from a raw value and store it."""
    task = get_task(state, task_id)
    stamp = to_ms(aware(now))

    cell: CellValue
    if task.cell_type == "CHECK":
        cell = CheckCell(checked=bool(value), updated_at=stamp)
    elif task.cell_type == "COUNTER":
        if isinstance(value, bool) or not isinstance(value, int):
            raise StateError("bad_request", "COUNTER cells take an integer")
        cell = CounterCell(count=_clamp(value, 0, max(1, task.max or 1)), updated_at=stamp)
    elif task.cell_type == "TEXT":
        cell = TextCell(text=str(value), updated_at=stamp)
    else:
        cell = SelectCell(value=str(value), updated_at=stamp)
    return set_cell(state, table_id, task_id, char_id, cell)


def click_cell(state: TodoState, table_id: str, task_id: str, char_id: str, now: Optional[datetime] = None) -> TodoState:
    """CHECK toggles, COUNTER cycles 0 -> 1 -> ... -> max -> 0; TEXT/SELECT are untouched."""
    task = get_task(state, task_id)
    cur = get_cell(state, table_id, task_id, char_id)
    stamp = to_ms(aware(now))

    if task.cell_type == "CHECK":
        checked = cur.checked if isinstance(cur, CheckCell) else False
        return set_cell(state, table_id, task_id, char_id, CheckCell(checked=not checked, updated_at=stamp))

    if task.cell_type == "COUNTER":
        top = max(1, task.max or 1)
        count = cur.count if isinstance(cur, CounterCell) else 0
        nxt = 0 if count >= top else count + 1
        return set_cell(state, table_id, task_id, char_id, CounterCell(count=nxt, updated_at=stamp))

    return state


def progress(state: TodoState, table_id: str) -> Tuple[int, int]:
    """(done, total) over CHECK/COUNTER cells of one table, skipping cells the character is not eligible for."""
    tbl = get_table(state, table_id)
    done = total = 0
    for task in state.tasks:
        if task.cell_type not in ("CHECK", "COUNTER"):
            continue
        row = tbl.values.get(task.id, {})
        for ch in tbl.characters:
            if not is_task_eligible(task, ch):
                continue
            total += 1
            cell = row.get(ch.id)
            if isinstance(cell, CheckCell) and cell.checked:
                done += 1
            elif isinstance(cell, CounterCell) and cell.count >= max(1, task.max or 1):
                done += 1
    return done, total


def table_gold(state: TodoState, table_id: str) -> List[Tuple[Character, int, List[RaidPick]]]:
    """Per character: weekly gold from its top raids, and which raids those are."""
    return [(ch, *weekly_top3_gold(ch.item_level)) for ch in get_table(state, table_id).characters]


# -------------------------
# rest gauges
# -------------------------
def set_rest_gauge(
    state: TodoState,
    table_id: str,
    char_id: str,
    *,
    chaos: Optional[int] = None,
    guardian: Optional[int] = None,
) -> TodoState:
    tbl = get_table(state, table_id)
    _get_character(tbl, char_id)
    cur = tbl.rest_gauges.get(char_id) or RestGauge()
    nxt = RestGauge(
        chaos=_clamp(cur.chaos if chaos is None else chaos, 0, CHAOS_GAUGE_CAP),
        guardian=_clamp(cur.guardian if guardian is None else guardian, 0, GUARDIAN_GAUGE_CAP),
    )
    return _replace_table(state, tbl.model_copy(update={"rest_gauges": {**tbl.rest_gauges, char_id: nxt}}))


# -------------------------
# buffs
# -------------------------
def set_buff(state: TodoState, table_id: str, char_id: str, expires_at: Optional[str]) -> TodoState:
    tbl = get_table(state, table_id)
    ch = _get_character(tbl, char_id)
    if expires_at is None:
        patch = {"buff_enabled": False, "buff_expires_at": None}
    else:
        dt = _parse_iso(expires_at)
        if dt is None:
            raise StateError("bad_request", f"invalid expiry: {expires_at!r}")
        patch = {"buff_enabled": True, "buff_expires_at": dt.astimezone(timezone.utc).isoformat()}
    return _replace_table(state, _replace_character(tbl, ch.model_copy(update=patch)))


def clear_expired_buffs(state: TodoState, now: Optional[datetime] = None) -> TodoState:
    """Disable buffs whose expiry has passed; returns ``state`` itself when nothing expired."""
    now = aware(now)
    changed = False
    tables = []
    for tbl in state.tables:
        chars = []
        for c in tbl.characters:
            exp = _parse_iso(c.buff_expires_at) if c.buff_enabled else None
            if exp is not None and exp <= now:
                c = c.model_copy(update={"buff_enabled": False, "buff_expires_at": None})
                changed = True
            chars.append(c)
        tables.append(tbl.model_copy(update={"characters": chars}) if chars != tbl.characters else tbl)
    return state.model_copy(update={"tables": tables}) if changed else state


def next_buff_expiry(state: TodoState, now: Optional[datetime] = None) -> Optional[datetime]:
    now = aware(now)
    pending = [
        exp
        for tbl in state.tables
        for c in tbl.characters
        if c.buff_enabled
        for exp in [_parse_iso(c.buff_expires_at)]
        if exp is not None and exp > now
    ]
    return min(pending) if pending else None


def tick(state: TodoState, now: Optional[datetime] = None) -> TodoState:
    """Startup / timer hook: catch up missed resets, then drop expired buffs."""
    return clear_expired_buffs(apply_auto_reset_if_needed(state, now), now)
