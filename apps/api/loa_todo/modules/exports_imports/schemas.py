from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from loa_todo.modules.todo_state.schemas import TodoState

EXPORT_VERSION = 1


class ExportEnvelope(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: int = EXPORT_VERSION
    exported_at: str
    state: TodoState


class ImportStateIn(BaseModel):
    # pasted text: an export envelope or a bare state, copy-paste noise allowed
    raw: str = Field(min_length=1)
