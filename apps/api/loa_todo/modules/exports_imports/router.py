from __future__ import annotations

import logging
import os

from fastapi import APIRouter, Request

from loa_todo.core.observability import error_response, request_id_of
from loa_todo.modules.todo_state.schemas import TodoState
from loa_todo.modules.todo_state.store import get_store

from . import service
from .schemas import ExportEnvelope, ImportStateIn

log = logging.getLogger(__name__)

router = APIRouter()


# EXPORT_IMPORT_ENABLED=0 turns both routes off (503)
def _enabled() -> bool:
    return os.getenv("EXPORT_IMPORT_ENABLED", "1") == "1"


def _disabled(request: Request):
    return error_response("export_import_disabled", "EXPORT_IMPORT_ENABLED=0", request_id_of(request), {}, 503)


@router.get("/exports/state", response_model=ExportEnvelope, tags=["exports"])
def exports_state(request: Request):
    if not _enabled():
        return _disabled(request)
    return service.export_envelope(get_store().load_or_create())


@router.post("/imports/state", response_model=TodoState, tags=["imports"])
def imports_state(payload: ImportStateIn, request: Request):
    if not _enabled():
        return _disabled(request)
    try:
        state = service.import_state_from_json(payload.raw)
    except service.StateImportError as e:
        # the saved state stays as it was
        log.info("state import rejected: %s", e)
        return error_response(
            "import_failed", "import failed: check the JSON format", request_id_of(request), {"reason": str(e)}, 400
        )
    get_store().save(state)
    return state
