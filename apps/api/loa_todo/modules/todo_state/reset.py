"""
Periodic reset core.

Pure transitions over ``TodoState``:
- apply_daily_rest_update: rest gauges from the pre-reset completion counts
- reset_by_period: clear every cell of DAILY or WEEKLY tasks
- apply_auto_reset_if_needed: replay each missed boundary in order
- run_daily_reset_now: the manual "reset daily now" button

The catch-up replays one gauge update + one clear per missed calendar
day; missed days are never folded into a single combined delta.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from .clock import aware, daily_anchor, from_ms, shift_days, to_ms, weekly_anchor
from .schemas import (
    CHAOS_GAUGE_CAP,
    CORE_DAILY_TASK_ID,
    GUARDIAN_DAILY_TASK_ID,
    GUARDIAN_GAUGE_CAP,
    GUARDIAN_TASK_TITLES,
    CounterCell,
    ResetPeriod,
    RestGauge,
    TaskRow,
    TodoState,
    TodoTable,
)

log = logging.getLogger(__name__)

# (credit when skipped, debit when done)
CHAOS_STEP = (20, 40)
GUARDIAN_STEP = (10, 20)


def _clamp(n: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, n))


def find_core_task(state: TodoState) -> Optional[TaskRow]:
    for t in state.tasks:
        if t.period == "DAILY" and t.id == CORE_DAILY_TASK_ID:
            return t
    return None


def find_guardian_task(state: TodoState) -> Optional[TaskRow]:
    by_title: Optional[TaskRow] = None
    for t in state.tasks:
        if t.period != "DAILY":
            continue
        if t.id == GUARDIAN_DAILY_TASK_ID:
            return t
        if by_title is None and t.title in GUARDIAN_TASK_TITLES:
            by_title = t
    return by_title


def _done_count(table: TodoTable, task: Optional[TaskRow], char_id: str) -> int:
    if task is None:
        return 0
    cell = table.values.get(task.id, {}).get(char_id)
    if isinstance(cell, CounterCell):
        return _clamp(cell.count, 0, 1)
    return 0


def step_gauge(current: int, done: bool, credit: int, debit: int, cap: int) -> int:
    """
    Skipped -> +credit (capped). Done -> -debit, but only when the gauge
    holds at least ``debit``; smaller gauges are left as they are.
    """
    current = _clamp(current, 0, cap)
    if not done:
        return _clamp(current + credit, 0, cap)
    if current >= debit:
        return current - debit
    return current


def _rest_update_table(table: TodoTable, core: Optional[TaskRow], guardian: Optional[TaskRow]) -> TodoTable:
    if not table.characters:
        return table

    gauges = dict(table.rest_gauges)
    for ch in table.characters:
        cur = gauges.get(ch.id) or RestGauge()
        chaos = step_gauge(cur.chaos, _done_count(table, core, ch.id) >= 1, *CHAOS_STEP, CHAOS_GAUGE_CAP)
        guard = step_gauge(cur.guardian, _done_count(table, guardian, ch.id) >= 1, *GUARDIAN_STEP, GUARDIAN_GAUGE_CAP)
        gauges[ch.id] = RestGauge(chaos=chaos, guardian=guard)

    return table.model_copy(update={"rest_gauges": gauges})


def apply_daily_rest_update(state: TodoState) -> TodoState:
    # must see the values as they were *before* the daily clear
    core = find_core_task(state)
    guardian = find_guardian_task(state)
    tables = [_rest_update_table(t, core, guardian) for t in state.tables]
    return state.model_copy(update={"tables": tables})


def reset_by_period(
    state: TodoState,
    period: ResetPeriod,
    hard: bool,
    now: Optional[datetime] = None,
) -> TodoState:
    target = {t.id for t in state.tasks if t.period == period}

    tables = []
    for tbl in state.tables:
        if target.isdisjoint(tbl.values):
            tables.append(tbl)
            continue
        values = {task_id: row for task_id, row in tbl.values.items() if task_id not in target}
        tables.append(tbl.model_copy(update={"values": values}))

    update = {"tables": tables}
    if hard:
        stamp = to_ms(aware(now))
        field = "last_daily_reset_at" if period == "DAILY" else "last_weekly_reset_at"
        update["reset"] = state.reset.model_copy(update={field: stamp})

    return state.model_copy(update=update)


def _with_stamp(state: TodoState, **stamps: int) -> TodoState:
    return state.model_copy(update={"reset": state.reset.model_copy(update=stamps)})


def run_daily_reset_now(state: TodoState, hard: bool, now: Optional[datetime] = None) -> TodoState:
    nxt = apply_daily_rest_update(state)
    nxt = reset_by_period(nxt, "DAILY", False)
    if hard:
        nxt = _with_stamp(nxt, last_daily_reset_at=to_ms(aware(now)))
    return nxt


def apply_auto_reset_if_needed(state: TodoState, now: Optional[datetime] = None) -> TodoState:
    now = aware(now)
    tz = now.tzinfo
    hour = state.reset.daily_reset_hour
    weekday = state.reset.weekly_reset_weekday

    d_anchor = daily_anchor(now, hour)
    w_anchor = weekly_anchor(now, weekday, hour)

    nxt = state

    # first run: adopt the current boundary, replay nothing
    if nxt.reset.last_daily_reset_at == 0:
        nxt = _with_stamp(nxt, last_daily_reset_at=to_ms(d_anchor))
    else:
        cursor = daily_anchor(from_ms(nxt.reset.last_daily_reset_at, tz), hour)
        replayed = 0
        while cursor < d_anchor:
            nxt = apply_daily_rest_update(nxt)
            nxt = reset_by_period(nxt, "DAILY", False)
            cursor = shift_days(cursor, 1)
            nxt = _with_stamp(nxt, last_daily_reset_at=to_ms(cursor))
            replayed += 1
        if replayed:
            log.info("daily reset replayed %d boundary(ies) up to %s", replayed, cursor.isoformat())

    if nxt.reset.last_weekly_reset_at == 0:
        nxt = _with_stamp(nxt, last_weekly_reset_at=to_ms(w_anchor))
    else:
        wcursor = weekly_anchor(from_ms(nxt.reset.last_weekly_reset_at, tz), weekday, hour)
        replayed = 0
        while wcursor < w_anchor:
            nxt = reset_by_period(nxt, "WEEKLY", False)
            wcursor = shift_days(wcursor, 7)
            nxt = _with_stamp(nxt, last_weekly_reset_at=to_ms(wcursor))
            replayed += 1
        if replayed:
            log.info("weekly reset replayed %d boundary(ies) up to %s", replayed, wcursor.isoformat())

    return nxt
