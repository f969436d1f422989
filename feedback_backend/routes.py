"""
HTTP routes for feedback and improvement records.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from feedback_backend.dependencies import (
    get_feedback_store,
    get_improvement_store,
    require_identity,
)
from feedback_backend.errors import ValidationError
from feedback_backend.records import FEEDBACK, IMPROVEMENT, RecordKind
from feedback_backend.schemas import (
    ErrorResponse,
    FeedbackDeletedResponse,
    ImprovementDeletedResponse,
)
from feedback_backend.sessions import SessionRecord
from feedback_backend.store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


async def read_json_body(request: Request, kind: RecordKind) -> Any:
    body = await request.body()
    if not body:
        raise ValidationError(f"{kind.label} payload must be a JSON object")
    try:
        return await request.json()
    except ValueError as exc:
        raise ValidationError("Request body is not valid JSON") from exc


def _actor(session: Optional[SessionRecord]) -> str:
    return session.identity.email if session else "anonymous"


def record_router(
    kind: RecordKind,
    path: str,
    get_store: Callable[[], RecordStore],
    deleted_model: type[BaseModel],
) -> APIRouter:
    """
    Build the list/create/update/delete routes for one record type.

    Reads are open to everyone; writes pass through ``require_identity``
    before the body is read.
    """
    records = APIRouter(prefix=path, tags=[kind.name], responses=ERROR_RESPONSES)
    record_model = kind.record_model

    @records.get("", response_model=list[record_model])
    async def list_records(store: RecordStore = Depends(get_store)):
        return await run_in_threadpool(store.list_all)

    @records.post("", response_model=record_model, status_code=201)
    async def create_record(
        request: Request,
        session: Optional[SessionRecord] = Depends(require_identity),
        store: RecordStore = Depends(get_store),
    ):
        payload = await read_json_body(request, kind)
        created = await run_in_threadpool(store.create, payload)
        logger.info("Created %s %s (by %s)", kind.name, created.id, _actor(session))
        return created

    @records.put("/{record_id}", response_model=record_model)
    async def update_record(
        record_id: str,
        request: Request,
        session: Optional[SessionRecord] = Depends(require_identity),
        store: RecordStore = Depends(get_store),
    ):
        payload = await read_json_body(request, kind)
        updated = await run_in_threadpool(store.update_by_id, record_id, payload)
        logger.info("Updated %s %s (by %s)", kind.name, record_id, _actor(session))
        return updated

    @records.delete("/{record_id}", response_model=deleted_model)
    async def delete_record(
        record_id: str,
        session: Optional[SessionRecord] = Depends(require_identity),
        store: RecordStore = Depends(get_store),
    ):
        deleted = await run_in_threadpool(store.delete_by_id, record_id)
        logger.info("Deleted %s %s (by %s)", kind.name, record_id, _actor(session))
        return deleted_model(
            message=f"{kind.label} deleted successfully", deleted=deleted
        )

    return records


router.include_router(
    record_router(FEEDBACK, "/feedback", get_feedback_store, FeedbackDeletedResponse)
)
router.include_router(
    record_router(
        IMPROVEMENT, "/improvements", get_improvement_store, ImprovementDeletedResponse
    )
)
