"""
Default state factory + normalization/migration of persisted or imported
state.

normalize_state accepts anything json.loads can return. Two shapes are
recognised:
- current: {"tables": [...], "activeTableId": "...", "tasks": [...], "reset": {...}}
- legacy single roster: {"characters": [...], "values": {...}, "restGauges": {...}, ...}
Missing fields are backfilled, out-of-range numbers clamped, and cells
that fail validation dropped.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from loa_todo.core.ids import new_id

from .schemas import (
    CHAOS_GAUGE_CAP,
    CORE_DAILY_TASK_ID,
    DEFAULT_DAILY_RESET_HOUR,
    DEFAULT_WEEKLY_RESET_WEEKDAY,
    GUARDIAN_DAILY_TASK_ID,
    GUARDIAN_GAUGE_CAP,
    CellType,
    CellValue,
    Character,
    GridValues,
    Period,
    ResetState,
    RestGauge,
    TaskRow,
    TodoState,
    TodoTable,
)

log = logging.getLogger(__name__)

_CELL = TypeAdapter(CellValue)

DEFAULT_SECTION = "Homework"
DEFAULT_TABLE_NAME = "Table 1"

# backfilled into current-shape saves when missing (title, period, section)
MEMO_TASK_TITLES = ("Cube", "큐브")
FIRST_RAID_TITLES = ("Act 1", "1막")


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def _clamp(n: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, n))


def _as_int(v: Any, default: int) -> int:
    if v is None or isinstance(v, bool):
        return default
    try:
        return int(float(v))
    except (TypeError, ValueError):
        return default


def _as_dict(v: Any) -> Dict[str, Any]:
    return v if isinstance(v, dict) else {}


def _as_list(v: Any) -> List[Any]:
    return v if isinstance(v, list) else []


# ---------- factories ----------


def create_character(name: str, item_level: str = "", power: str = "") -> Character:
    return Character(id=new_id("ch"), name=name, item_level=item_level, power=power)


def create_task(
    title: str,
    period: Period,
    cell_type: CellType,
    *,
    task_id: Optional[str] = None,
    max: Optional[int] = None,
    options: Optional[List[str]] = None,
    section: Optional[str] = None,
    order: Optional[int] = None,
) -> TaskRow:
    return TaskRow(
        id=task_id or new_id("task"),
        title=title,
        period=period,
        cell_type=cell_type,
        max=max,
        options=options,
        section=section or DEFAULT_SECTION,
        order=_now_ms() if order is None else order,
    )


def default_tasks() -> List[TaskRow]:
    base = _now_ms()
    rows = [
        ("Guild check-in", "DAILY", "CHECK", "Daily", None, None),
        ("Kurzan Front", "DAILY", "COUNTER", "Daily", 1, CORE_DAILY_TASK_ID),
        ("Guardian Raid", "DAILY", "COUNTER", "Daily", 1, GUARDIAN_DAILY_TASK_ID),
        ("Paradise", "WEEKLY", "CHECK", "Weekly exchange", None, None),
        ("Bloodstone exchange", "WEEKLY", "CHECK", "Weekly exchange", None, None),
        ("Clear medal exchange", "WEEKLY", "CHECK", "Weekly exchange", None, None),
        ("Pirate coin exchange", "WEEKLY", "CHECK", "Weekly exchange", None, None),
        ("Act 1", "WEEKLY", "CHECK", "Weekly raid", None, None),
        ("Act 2", "WEEKLY", "CHECK", "Weekly raid", None, None),
        ("Act 3", "WEEKLY", "CHECK", "Weekly raid", None, None),
        ("Act 4", "WEEKLY", "CHECK", "Weekly raid", None, None),
        ("Final Act", "WEEKLY", "CHECK", "Weekly raid", None, None),
        ("Serca", "WEEKLY", "CHECK", "Weekly raid", None, None),
        ("Cube", "NONE", "TEXT", "Misc", None, None),
    ]
    return [
        create_task(title, period, cell_type, task_id=task_id, max=mx, section=section, order=base + i)
        for i, (title, period, cell_type, section, mx, task_id) in enumerate(rows)
    ]


def make_default_state() -> TodoState:
    characters = [
        create_character("Character 1", "1710", "2500+"),
        create_character("Character 2", "1710", "2500+"),
        create_character("Character 3", "1770", "6000+"),
        create_character("Character 4", "1710", "2500+"),
        create_character("Character 5", "1710", "2500+"),
        create_character("Character 6", "1710", "2500+"),
    ]
    table = TodoTable(
        id=new_id("tbl"),
        name=DEFAULT_TABLE_NAME,
        characters=characters,
        values={},
        rest_gauges={c.id: RestGauge() for c in characters},
    )
    return TodoState(tables=[table], active_table_id=table.id, tasks=default_tasks(), reset=ResetState())


# ---------- normalization ----------


def _normalize_reset(raw: Any, legacy_weekday: Any = None) -> ResetState:
    r = _as_dict(raw)
    weekday_raw = legacy_weekday if isinstance(legacy_weekday, (int, float)) else r.get("weeklyResetWeekday")
    return ResetState(
        last_daily_reset_at=max(0, _as_int(r.get("lastDailyResetAt"), 0)),
        last_weekly_reset_at=max(0, _as_int(r.get("lastWeeklyResetAt"), 0)),
        daily_reset_hour=_clamp(_as_int(r.get("dailyResetHour"), DEFAULT_DAILY_RESET_HOUR), 0, 23),
        weekly_reset_weekday=_clamp(_as_int(weekday_raw, DEFAULT_WEEKLY_RESET_WEEKDAY), 0, 6),
    )


def _normalize_task(raw: Any, index: int) -> Optional[TaskRow]:
    d = dict(_as_dict(raw))
    d.setdefault("section", DEFAULT_SECTION)
    if d.get("section") is None:
        d["section"] = DEFAULT_SECTION
    d["order"] = _as_int(d.get("order"), index)
    try:
        return TaskRow.model_validate(d)
    except ValidationError:
        log.warning("dropping invalid task %r", d.get("id"))
        return None


def _normalize_tasks(raw: Any) -> List[TaskRow]:
    out: List[TaskRow] = []
    for i, t in enumerate(_as_list(raw)):
        task = _normalize_task(t, i)
        if task is not None:
            out.append(task)
    return out


def _backfill_tasks(tasks: List[TaskRow]) -> List[TaskRow]:
    out = list(tasks)
    if not any(t.title in MEMO_TASK_TITLES and t.period == "NONE" for t in out):
        out.append(create_task("Cube", "NONE", "TEXT", section="Misc"))
    if not any(t.title in FIRST_RAID_TITLES and t.period == "WEEKLY" for t in out):
        out.append(create_task("Act 1", "WEEKLY", "CHECK", section="Weekly raid", order=1))
    return out


def _normalize_character(raw: Any) -> Optional[Character]:
    d = dict(_as_dict(raw))
    # older saves named the buff after the in-game item
    if "azenaEnabled" in d and "buffEnabled" not in d:
        d["buffEnabled"] = d.pop("azenaEnabled")
    if "azenaExpiresAt" in d and "buffExpiresAt" not in d:
        d["buffExpiresAt"] = d.pop("azenaExpiresAt")
    for key in ("name", "itemLevel", "power"):
        if d.get(key) is not None and not isinstance(d[key], str):
            d[key] = str(d[key])
    d["buffEnabled"] = bool(d.get("buffEnabled") or False)
    try:
        return Character.model_validate(d)
    except ValidationError:
        log.warning("dropping invalid character %r", d.get("id"))
        return None


def _normalize_values(raw: Any) -> GridValues:
    out: GridValues = {}
    for task_id, row in _as_dict(raw).items():
        cells = {}
        for char_id, cell in _as_dict(row).items():
            try:
                cells[char_id] = _CELL.validate_python(cell)
            except ValidationError:
                log.warning("dropping invalid cell %s/%s", task_id, char_id)
        out[str(task_id)] = cells
    return out


def _normalize_gauges(raw: Any, characters: List[Character]) -> Dict[str, RestGauge]:
    src = _as_dict(raw)
    out: Dict[str, RestGauge] = {}
    for key, g in src.items():
        g = _as_dict(g)
        out[str(key)] = RestGauge(
            chaos=_clamp(_as_int(g.get("chaos"), 0), 0, CHAOS_GAUGE_CAP),
            guardian=_clamp(_as_int(g.get("guardian"), 0), 0, GUARDIAN_GAUGE_CAP),
        )
    for ch in characters:
        out.setdefault(ch.id, RestGauge())
    return out


def _normalize_table(raw: Any, default_name: str) -> TodoTable:
    d = _as_dict(raw)
    characters = [c for c in (_normalize_character(x) for x in _as_list(d.get("characters"))) if c is not None]
    name = d.get("name")
    return TodoTable(
        id=str(d.get("id") or new_id("tbl")),
        name=str(name) if name is not None else default_name,
        characters=characters,
        values=_normalize_values(d.get("values")),
        rest_gauges=_normalize_gauges(d.get("restGauges"), characters),
    )


def is_current_shape(parsed: Any) -> bool:
    return isinstance(parsed, dict) and isinstance(parsed.get("tables"), list) and isinstance(parsed.get("activeTableId"), str)


def normalize_state(parsed: Any) -> TodoState:
    if is_current_shape(parsed):
        tables = [_normalize_table(t, "Table") for t in parsed["tables"] if isinstance(t, dict)]
        if not tables:
            return make_default_state()

        active = parsed["activeTableId"]
        if not any(t.id == active for t in tables):
            active = tables[0].id

        return TodoState(
            tables=tables,
            active_table_id=active,
            tasks=_backfill_tasks(_normalize_tasks(parsed.get("tasks"))),
            reset=_normalize_reset(parsed.get("reset")),
        )

    # legacy single roster -> one table
    legacy = _as_dict(parsed)
    table = _normalize_table(
        {
            "name": DEFAULT_TABLE_NAME,
            "characters": legacy.get("characters"),
            "values": legacy.get("values"),
            "restGauges": legacy.get("restGauges"),
        },
        DEFAULT_TABLE_NAME,
    )
    tasks = _normalize_tasks(legacy.get("tasks")) or default_tasks()
    legacy_weekday = _as_dict(legacy.get("reset")).get("weeklyResetday")  # old typo

    return TodoState(
        tables=[table],
        active_table_id=table.id,
        tasks=tasks,
        reset=_normalize_reset(legacy.get("reset"), legacy_weekday),
    )
