from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Period = Literal["DAILY", "WEEKLY", "NONE"]
ResetPeriod = Literal["DAILY", "WEEKLY"]
CellType = Literal["CHECK", "COUNTER", "TEXT", "SELECT"]

# well-known task ids the rest gauges key off
CORE_DAILY_TASK_ID = "MAIN_DAILY"
GUARDIAN_DAILY_TASK_ID = "GUARDIAN_DAILY"
# saves older than the guardian id only carry the title
GUARDIAN_TASK_TITLES = ("Guardian Raid", "가디언 토벌")

CHAOS_GAUGE_CAP = 200
GUARDIAN_GAUGE_CAP = 100

DEFAULT_DAILY_RESET_HOUR = 6
DEFAULT_WEEKLY_RESET_WEEKDAY = 3  # 0=Sunday


class _StateModel(BaseModel):
    # snake_case in python, camelCase on the wire (persisted/exported JSON)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Character(_StateModel):
    id: str
    name: str
    item_level: str = ""
    power: str = ""

    # time-boxed buff; auto-disabled once expires_at passes
    buff_enabled: bool = False
    buff_expires_at: Optional[str] = None


class TaskRow(_StateModel):
    id: str
    title: str
    period: Period
    cell_type: CellType
    max: Optional[int] = None
    options: Optional[List[str]] = None
    section: str = "Homework"
    order: int = 0


class CheckCell(_StateModel):
    type: Literal["CHECK"] = "CHECK"
    checked: bool = False
    updated_at: int = 0


class CounterCell(_StateModel):
    type: Literal["COUNTER"] = "COUNTER"
    count: int = 0
    updated_at: int = 0


class TextCell(_StateModel):
    type: Literal["TEXT"] = "TEXT"
    text: str = ""
    updated_at: int = 0


class SelectCell(_StateModel):
    type: Literal["SELECT"] = "SELECT"
    value: str = ""
    updated_at: int = 0


CellValue = Annotated[Union[CheckCell, CounterCell, TextCell, SelectCell], Field(discriminator="type")]

# task_id -> char_id -> cell
GridValues = Dict[str, Dict[str, CellValue]]


class RestGauge(_StateModel):
    chaos: int = Field(default=0, ge=0, le=CHAOS_GAUGE_CAP)
    guardian: int = Field(default=0, ge=0, le=GUARDIAN_GAUGE_CAP)


class ResetState(_StateModel):
    # epoch ms; 0 means never initialized
    last_daily_reset_at: int = 0
    last_weekly_reset_at: int = 0
    daily_reset_hour: int = Field(default=DEFAULT_DAILY_RESET_HOUR, ge=0, le=23)
    weekly_reset_weekday: int = Field(default=DEFAULT_WEEKLY_RESET_WEEKDAY, ge=0, le=6)


class TodoTable(_StateModel):
    id: str
    name: str
    characters: List[Character] = Field(default_factory=list)
    values: GridValues = Field(default_factory=dict)
    rest_gauges: Dict[str, RestGauge] = Field(default_factory=dict)


class TodoState(_StateModel):
    tables: List[TodoTable]
    active_table_id: str
    tasks: List[TaskRow] = Field(default_factory=list)
    reset: ResetState = Field(default_factory=ResetState)


def state_to_dict(state: TodoState) -> Dict[str, Any]:
    return state.model_dump(mode="json", by_alias=True)


# ---------- request bodies ----------


class TableIn(BaseModel):
    name: str = Field(min_length=1)


class ActiveTableIn(BaseModel):
    table_id: str = Field(min_length=1)


class CharacterCreateIn(BaseModel):
    name: str = Field(min_length=1)
    item_level: str = ""
    power: str = ""


class CharacterPatchIn(BaseModel):
    name: Optional[str] = None
    item_level: Optional[str] = None
    power: Optional[str] = None


class ReorderIn(BaseModel):
    from_id: str
    to_id: str


class TaskCreateIn(BaseModel):
    title: str = Field(min_length=1)
    period: Period
    cell_type: CellType = "CHECK"
    max: Optional[int] = None
    options: Optional[List[str]] = None
    section: Optional[str] = None


class TaskPatchIn(BaseModel):
    title: Optional[str] = None
    section: Optional[str] = None
    max: Optional[int] = None
    options: Optional[List[str]] = None


class CellWriteIn(BaseModel):
    # bool for CHECK, int for COUNTER, str for TEXT/SELECT
    value: Union[bool, int, str]


class RestGaugeIn(BaseModel):
    chaos: Optional[int] = None
    guardian: Optional[int] = None


class BuffIn(BaseModel):
    # ISO-8601; null disables the buff
    expires_at: Optional[str] = None


class ProgressOut(BaseModel):
    table_id: str
    done: int
    total: int


class TaskSectionOut(_StateModel):
    section: str
    tasks: List[TaskRow]


class RaidPickOut(BaseModel):
    raid: str
    difficulty: str
    gold: int


class CharacterGoldOut(BaseModel):
    character_id: str
    item_level: str
    gold: int
    raids: List[RaidPickOut]
