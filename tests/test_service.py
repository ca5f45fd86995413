"""State mutators used by the checklist routes."""

from __future__ import annotations

import pytest
from conftest import make_state, utc

from loa_todo.modules.todo_state import service
from loa_todo.modules.todo_state.schemas import (
    CORE_DAILY_TASK_ID,
    CheckCell,
    CounterCell,
    TextCell,
)
from loa_todo.modules.todo_state.service import StateError

NOW = utc(2024, 5, 10, 12, 0)


def _ids(state):
    return state.tables[0].id, state.tables[0].characters[0].id


# ---------- tables ----------


def test_add_table_becomes_active() -> None:
    state = service.add_table(make_state(), "  Alts ")
    assert len(state.tables) == 2
    assert state.tables[1].name == "Alts"
    assert state.active_table_id == state.tables[1].id


def test_rename_and_switch_table() -> None:
    state = service.add_table(make_state(), "Alts")
    state = service.rename_table(state, "tbl_1", "Mains")
    state = service.set_active_table(state, "tbl_1")
    assert state.tables[0].name == "Mains"
    assert state.active_table_id == "tbl_1"


def test_rename_to_blank_is_ignored() -> None:
    state = make_state()
    assert service.rename_table(state, "tbl_1", "   ") is state


def test_last_table_cannot_be_deleted() -> None:
    with pytest.raises(StateError) as exc:
        service.delete_table(make_state(), "tbl_1")
    assert exc.value.code == "last_table"


def test_delete_active_table_falls_back_to_first() -> None:
    state = service.add_table(make_state(), "Alts")
    removed = service.delete_table(state, state.active_table_id)
    assert [t.id for t in removed.tables] == ["tbl_1"]
    assert removed.active_table_id == "tbl_1"


def test_unknown_table_is_not_found() -> None:
    with pytest.raises(StateError) as exc:
        service.set_active_table(make_state(), "missing")
    assert exc.value.code == "not_found"


# ---------- characters ----------


def test_add_character_gets_a_gauge() -> None:
    state = service.add_character(make_state(), "tbl_1", "Beta", "1680", "2000")
    ch = state.tables[0].characters[-1]
    assert ch.name == "Beta"
    assert ch.item_level == "1680"
    assert state.tables[0].rest_gauges[ch.id].chaos == 0


def test_edit_character_patches_given_fields() -> None:
    state = make_state()
    table_id, char_id = _ids(state)
    state = service.edit_character(state, table_id, char_id, power="4000")
    ch = state.tables[0].characters[0]
    assert ch.power == "4000"
    assert ch.name == "Alpha"


def test_delete_character_cascades() -> None:
    state = make_state()
    table_id, char_id = _ids(state)
    state = service.click_cell(state, table_id, "ACT_1", char_id, NOW)
    state = service.delete_character(state, table_id, char_id)
    tbl = state.tables[0]
    assert tbl.characters == []
    assert char_id not in tbl.rest_gauges
    assert char_id not in tbl.values.get("ACT_1", {})


def test_reorder_characters() -> None:
    state = make_state()
    state = service.add_character(state, "tbl_1", "Beta")
    state = service.add_character(state, "tbl_1", "Gamma")
    a, b, c = (ch.id for ch in state.tables[0].characters)
    state = service.reorder_characters(state, "tbl_1", c, a)
    assert [ch.id for ch in state.tables[0].characters] == [c, a, b]


# ---------- tasks ----------


def test_add_task_defaults() -> None:
    state = service.add_task(make_state(), "Chaos Gate", "DAILY", "COUNTER")
    task = state.tasks[-1]
    assert task.max == 2
    assert task.section == "Daily"

    state = service.add_task(state, "Mood", "NONE", "SELECT", options=[" ", ""])
    assert state.tasks[-1].options == ["Done", "Not done"]
    assert state.tasks[-1].section == "Misc"

    state = service.add_task(state, "Tiny", "DAILY", "COUNTER", max=-3)
    assert state.tasks[-1].max == 1


def test_edit_task_ignores_fields_of_other_types() -> None:
    state = service.edit_task(make_state(), "ACT_1", title="Act One", max=5)
    task = service.get_task(state, "ACT_1")
    assert task.title == "Act One"
    assert task.max is None


def test_delete_task_cascades_into_every_table() -> None:
    state = make_state()
    table_id, char_id = _ids(state)
    state = service.click_cell(state, table_id, "ACT_1", char_id, NOW)
    state = service.delete_task(state, "ACT_1")
    assert "ACT_1" not in {t.id for t in state.tasks}
    assert "ACT_1" not in state.tables[0].values


def test_reorder_within_section_only() -> None:
    state = service.add_task(make_state(), "Chaos Gate", "DAILY", "CHECK", section="Daily")
    gate = state.tasks[-1].id

    moved = service.reorder_task_within_section(state, gate, CORE_DAILY_TASK_ID)
    daily = [t.id for _, ts in service.tasks_by_section(moved) for t in ts if t.section == "Daily"]
    assert daily[0] == gate
    orders = sorted(t.order for t in moved.tasks if t.section == "Daily")
    assert orders == list(range(orders[0], orders[0] + len(orders)))

    across = service.reorder_task_within_section(state, gate, "ACT_1")
    assert across is state


# ---------- cells ----------


def test_click_check_toggles() -> None:
    state = make_state()
    table_id, char_id = _ids(state)
    on = service.click_cell(state, table_id, "ACT_1", char_id, NOW)
    assert service.get_cell(on, table_id, "ACT_1", char_id).checked is True
    off = service.click_cell(on, table_id, "ACT_1", char_id, NOW)
    assert service.get_cell(off, table_id, "ACT_1", char_id).checked is False


def test_click_counter_cycles_back_to_zero() -> None:
    state = service.edit_task(make_state(), CORE_DAILY_TASK_ID, max=2)
    table_id, char_id = _ids(state)
    seen = []
    for _ in range(3):
        state = service.click_cell(state, table_id, CORE_DAILY_TASK_ID, char_id, NOW)
        seen.append(service.get_cell(state, table_id, CORE_DAILY_TASK_ID, char_id).count)
    assert seen == [1, 2, 0]


def test_click_text_is_a_no_op() -> None:
    state = make_state()
    table_id, char_id = _ids(state)
    assert service.click_cell(state, table_id, "CUBE", char_id, NOW) is state


def test_write_cell_builds_typed_cells() -> None:
    state = make_state()
    table_id, char_id = _ids(state)
    state = service.write_cell(state, table_id, "CUBE", char_id, "3 left", NOW)
    state = service.write_cell(state, table_id, CORE_DAILY_TASK_ID, char_id, 7, NOW)
    assert service.get_cell(state, table_id, "CUBE", char_id) == TextCell(text="3 left", updated_at=service.to_ms(NOW))
    assert service.get_cell(state, table_id, CORE_DAILY_TASK_ID, char_id).count == 1

    with pytest.raises(StateError):
        service.write_cell(state, table_id, CORE_DAILY_TASK_ID, char_id, "lots", NOW)


def test_set_cell_rejects_wrong_type() -> None:
    state = make_state()
    table_id, char_id = _ids(state)
    with pytest.raises(StateError) as exc:
        service.set_cell(state, table_id, "ACT_1", char_id, CounterCell(count=1))
    assert exc.value.code == "bad_request"


def test_progress_counts_check_and_counter_cells() -> None:
    state = make_state()
    table_id, char_id = _ids(state)
    # Act 1 is outside a 1700 character's three best-paying raids
    assert service.progress(state, table_id) == (0, 2)
    state = service.set_cell(state, table_id, "ACT_1", char_id, CheckCell(checked=True))
    state = service.click_cell(state, table_id, CORE_DAILY_TASK_ID, char_id, NOW)
    assert service.progress(state, table_id) == (1, 2)

    # at 1660 Act 1 is the only raid it can enter, so it counts
    state = service.edit_character(state, table_id, char_id, item_level="1660")
    assert service.progress(state, table_id) == (2, 3)

    # below every raid entry level no raid row counts
    state = service.edit_character(state, table_id, char_id, item_level="")
    assert service.progress(state, table_id) == (1, 2)


def test_table_gold_per_character() -> None:
    state = make_state()
    table_id, char_id = _ids(state)
    [(ch, gold, picks)] = service.table_gold(state, table_id)
    assert ch.id == char_id
    assert gold == 33000 + 27000 + 23000
    assert [p.raid for p in picks] == ["ACT4", "ACT3", "ACT2"]
    with pytest.raises(StateError):
        service.table_gold(state, "missing")


def test_tasks_by_section_filters_period() -> None:
    state = make_state()
    sections = service.tasks_by_section(state, "DAILY")
    assert [name for name, _ in sections] == ["Daily"]
    assert [t.id for t in sections[0][1]] == [CORE_DAILY_TASK_ID, "GUARDIAN_DAILY"]
    assert [name for name, _ in service.tasks_by_section(state)] == ["Daily", "Weekly raid", "Misc"]


# ---------- gauges and buffs ----------


def test_set_rest_gauge_clamps() -> None:
    state = make_state(chaos=10, guardian=10)
    table_id, char_id = _ids(state)
    state = service.set_rest_gauge(state, table_id, char_id, chaos=500)
    gauge = state.tables[0].rest_gauges[char_id]
    assert gauge.chaos == 200
    assert gauge.guardian == 10


def test_buff_expiry_lifecycle() -> None:
    state = make_state()
    table_id, char_id = _ids(state)
    state = service.set_buff(state, table_id, char_id, "2024-05-10T15:00:00Z")
    assert state.tables[0].characters[0].buff_enabled is True
    assert service.next_buff_expiry(state, NOW) == utc(2024, 5, 10, 15, 0)

    assert service.clear_expired_buffs(state, NOW) is state

    expired = service.clear_expired_buffs(state, utc(2024, 5, 10, 15, 0))
    ch = expired.tables[0].characters[0]
    assert ch.buff_enabled is False
    assert ch.buff_expires_at is None
    assert service.next_buff_expiry(expired, NOW) is None


def test_set_buff_rejects_bad_timestamps() -> None:
    state = make_state()
    table_id, char_id = _ids(state)
    with pytest.raises(StateError):
        service.set_buff(state, table_id, char_id, "tomorrow-ish")
    cleared = service.set_buff(state, table_id, char_id, None)
    assert cleared.tables[0].characters[0].buff_enabled is False


def test_tick_runs_catch_up_and_buff_expiry() -> None:
    state = make_state()
    table_id, char_id = _ids(state)
    state = service.set_buff(state, table_id, char_id, "2024-05-01T00:00:00Z")
    out = service.tick(state, NOW)
    assert out.reset.last_daily_reset_at > 0
    assert out.tables[0].characters[0].buff_enabled is False
