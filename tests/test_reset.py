"""Catch-up scheduler, rest gauges and period clears."""

from __future__ import annotations

from conftest import make_state, utc

from loa_todo.modules.todo_state import service
from loa_todo.modules.todo_state.clock import to_ms
from loa_todo.modules.todo_state.normalize import create_task
from loa_todo.modules.todo_state.reset import (
    apply_auto_reset_if_needed,
    apply_daily_rest_update,
    find_guardian_task,
    reset_by_period,
    run_daily_reset_now,
    step_gauge,
)
from loa_todo.modules.todo_state.schemas import (
    CORE_DAILY_TASK_ID,
    GUARDIAN_DAILY_TASK_ID,
    CheckCell,
    CounterCell,
    TextCell,
    TodoState,
)


def _char_id(state: TodoState) -> str:
    return state.tables[0].characters[0].id


def _gauge(state: TodoState):
    return state.tables[0].rest_gauges[_char_id(state)]


def _with(state: TodoState, task_id: str, cell) -> TodoState:
    return service.set_cell(state, state.tables[0].id, task_id, _char_id(state), cell)


def _core_done(state: TodoState) -> TodoState:
    return _with(state, CORE_DAILY_TASK_ID, CounterCell(count=1, updated_at=1))


# ---------- first run ----------


def test_first_run_only_adopts_the_anchor() -> None:
    state = _core_done(make_state(chaos=40))
    out = apply_auto_reset_if_needed(state, utc(2024, 5, 10, 5, 59))

    assert out.reset.last_daily_reset_at == to_ms(utc(2024, 5, 9, 6))
    assert out.reset.last_weekly_reset_at == to_ms(utc(2024, 5, 8, 6))
    assert _gauge(out).chaos == 40
    assert out.tables[0].values == state.tables[0].values


# ---------- single boundary ----------


def test_skipped_core_task_credits_the_gauge() -> None:
    state = make_state(chaos=150, last_daily_reset_at=to_ms(utc(2024, 5, 9, 6)), last_weekly_reset_at=to_ms(utc(2024, 5, 8, 6)))
    out = apply_auto_reset_if_needed(state, utc(2024, 5, 10, 6, 30))

    assert _gauge(out).chaos == 170
    assert _gauge(out).guardian == 10
    assert out.reset.last_daily_reset_at == to_ms(utc(2024, 5, 10, 6))


def test_done_with_small_gauge_is_left_alone() -> None:
    state = _core_done(make_state(chaos=30, last_daily_reset_at=to_ms(utc(2024, 5, 9, 6)), last_weekly_reset_at=to_ms(utc(2024, 5, 8, 6))))
    out = apply_auto_reset_if_needed(state, utc(2024, 5, 10, 6, 30))

    assert _gauge(out).chaos == 30
    assert CORE_DAILY_TASK_ID not in out.tables[0].values


def test_done_with_enough_gauge_is_debited() -> None:
    state = _with(
        make_state(guardian=50, last_daily_reset_at=to_ms(utc(2024, 5, 9, 6)), last_weekly_reset_at=to_ms(utc(2024, 5, 8, 6))),
        GUARDIAN_DAILY_TASK_ID,
        CounterCell(count=1, updated_at=1),
    )
    out = apply_auto_reset_if_needed(state, utc(2024, 5, 10, 6, 30))

    assert _gauge(out).guardian == 30
    assert _gauge(out).chaos == 20


def test_gauges_stay_within_caps() -> None:
    state = make_state(chaos=195, guardian=95)
    out = apply_daily_rest_update(state)
    assert _gauge(out).chaos == 200
    assert _gauge(out).guardian == 100

    again = apply_daily_rest_update(out)
    assert _gauge(again).chaos == 200
    assert _gauge(again).guardian == 100


def test_step_gauge_rules() -> None:
    assert step_gauge(0, False, 20, 40, 200) == 20
    assert step_gauge(40, True, 20, 40, 200) == 0
    assert step_gauge(39, True, 20, 40, 200) == 39
    assert step_gauge(250, False, 20, 40, 200) == 200


# ---------- catch-up ----------


def test_two_missed_days_replay_one_at_a_time() -> None:
    state = _core_done(make_state(chaos=50, last_daily_reset_at=to_ms(utc(2024, 5, 8, 6)), last_weekly_reset_at=to_ms(utc(2024, 5, 8, 6))))
    out = apply_auto_reset_if_needed(state, utc(2024, 5, 10, 7, 0))

    # day 1 done: 50 -> 10; day 2 skipped: 10 -> 30
    assert _gauge(out).chaos == 30
    assert out.reset.last_daily_reset_at == to_ms(utc(2024, 5, 10, 6))


def test_catch_up_matches_manual_replays() -> None:
    start = _core_done(make_state(chaos=100, guardian=20, last_daily_reset_at=to_ms(utc(2024, 5, 7, 6)), last_weekly_reset_at=to_ms(utc(2024, 5, 8, 6))))
    caught_up = apply_auto_reset_if_needed(start, utc(2024, 5, 10, 6, 5))

    manual = start
    for _ in range(3):
        manual = apply_daily_rest_update(manual)
        manual = reset_by_period(manual, "DAILY", False)

    assert caught_up.tables[0].rest_gauges == manual.tables[0].rest_gauges
    assert caught_up.tables[0].values == manual.tables[0].values


def test_catch_up_is_idempotent() -> None:
    state = _core_done(make_state(chaos=80, last_daily_reset_at=to_ms(utc(2024, 5, 6, 6)), last_weekly_reset_at=to_ms(utc(2024, 4, 24, 6))))
    now = utc(2024, 5, 10, 12, 0)
    once = apply_auto_reset_if_needed(state, now)
    twice = apply_auto_reset_if_needed(once, now)
    assert twice == once


def test_nothing_due_returns_same_values() -> None:
    state = _core_done(make_state(chaos=80, last_daily_reset_at=to_ms(utc(2024, 5, 10, 6)), last_weekly_reset_at=to_ms(utc(2024, 5, 8, 6))))
    out = apply_auto_reset_if_needed(state, utc(2024, 5, 10, 23, 0))
    assert out == state


def test_weekly_catch_up_clears_only_weekly_and_leaves_gauges() -> None:
    state = make_state(
        chaos=60,
        guardian=40,
        last_daily_reset_at=to_ms(utc(2024, 5, 16, 6)),
        last_weekly_reset_at=to_ms(utc(2024, 5, 8, 6)),
    )
    state = _core_done(state)
    state = _with(state, "ACT_1", CheckCell(checked=True, updated_at=1))
    state = _with(state, "CUBE", TextCell(text="2 left", updated_at=1))

    out = apply_auto_reset_if_needed(state, utc(2024, 5, 16, 12, 0))

    values = out.tables[0].values
    assert "ACT_1" not in values
    assert CORE_DAILY_TASK_ID in values
    assert "CUBE" in values
    assert _gauge(out) == _gauge(state)
    assert out.reset.last_weekly_reset_at == to_ms(utc(2024, 5, 15, 6))


# ---------- manual resets ----------


def test_reset_by_period_hard_stamps_now() -> None:
    state = _with(make_state(), "ACT_1", CheckCell(checked=True, updated_at=1))
    now = utc(2024, 5, 10, 9, 15)

    soft = reset_by_period(state, "WEEKLY", False, now)
    assert soft.reset.last_weekly_reset_at == 0
    assert "ACT_1" not in soft.tables[0].values

    hard = reset_by_period(state, "WEEKLY", True, now)
    assert hard.reset.last_weekly_reset_at == to_ms(now)
    assert hard.reset.last_daily_reset_at == 0


def test_run_daily_reset_now_updates_gauges_and_clears() -> None:
    state = _core_done(make_state(chaos=100))
    now = utc(2024, 5, 10, 9, 15)
    out = run_daily_reset_now(state, True, now)

    assert _gauge(out).chaos == 60
    assert _gauge(out).guardian == 10
    assert CORE_DAILY_TASK_ID not in out.tables[0].values
    assert out.reset.last_daily_reset_at == to_ms(now)


def test_tables_without_characters_are_untouched() -> None:
    state = make_state()
    empty = service.add_table(state, "Alts")
    out = apply_daily_rest_update(empty)
    assert out.tables[1] is empty.tables[1]


def test_guardian_found_by_legacy_title() -> None:
    state = make_state()
    legacy = create_task("가디언 토벌", "DAILY", "COUNTER", task_id="task_old", max=1)
    tasks = [t for t in state.tasks if t.id != GUARDIAN_DAILY_TASK_ID] + [legacy]
    state = state.model_copy(update={"tasks": tasks})
    assert find_guardian_task(state).id == "task_old"
