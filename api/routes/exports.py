"""
Export triggering and history endpoints
"""

from typing import Callable, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from api.dependencies import get_db, get_events, get_sink_factory
from core.config import settings
from core.events import EventBus
from core.exceptions import QueryNotFoundError, SinkConnectionError
from exporter.base import ExternalSink
from exporter.context import ExportContext
from exporter.engine import ExportEngine
from exporter.history import HistoryStore
from exporter.queries import QueryRepository
from exporter.sources.sql_source import SQLGradeSource
from schemas.api import (
    CourseQueriesResponse,
    ExportedItemsResponse,
    ExportResponse,
    HistoryListResponse,
    WipeHistoryResponse,
)
from schemas.export import HistoryRecord, QueryRecord
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Exports"])


async def _load_query(db: AsyncSession, events: EventBus, query_id: int) -> QueryRecord:
    query = await QueryRepository(db, events).get({"id": query_id})
    if query is None:
        raise QueryNotFoundError(f"Query {query_id} not found", context={"query_id": query_id})
    return query


@router.get("/courses/{course_id}/queries", response_model=CourseQueriesResponse)
async def get_course_queries(
    course_id: int,
    db: AsyncSession = Depends(get_db),
    events: EventBus = Depends(get_events)
):
    """Manually triggered queries configured for a course"""
    queries = await QueryRepository(db, events).find_by_course(course_id)
    return CourseQueriesResponse(course_id=course_id, queries=list(queries.values()))


@router.post("/queries/{query_id}/export", response_model=ExportResponse)
async def export_query(
    request: Request,
    query_id: int,
    user_id: Optional[int] = Query(None, description="User triggering the export"),
    db: AsyncSession = Depends(get_db),
    events: EventBus = Depends(get_events),
    sink_factory: Callable[[QueryRecord], ExternalSink] = Depends(get_sink_factory)
):
    """
    Export a query's grades now.

    Returns the successes and errors of the run. exported is False when the
    query's grade item no longer exists or the course has no gradable users.
    """
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")
    logger.info(f"[{request_id}] POST /queries/{query_id}/export")

    query = await _load_query(db, events, query_id)

    try:
        sink = sink_factory(query)
    except ValueError as e:
        raise HTTPException(status_code=503, detail=str(e))

    engine = ExportEngine(
        source=SQLGradeSource(db),
        history=HistoryStore(db),
        event_bus=events
    )

    try:
        outcome = await engine.export_grades(query, sink, user_id=user_id)
    except SinkConnectionError as e:
        logger.error(f"[{request_id}] {e}")
        raise HTTPException(status_code=503, detail=e.message)

    if outcome is None:
        return ExportResponse(query_id=query_id, exported=False)

    return ExportResponse(
        query_id=query_id,
        exported=True,
        success=outcome.success,
        successes=outcome.successes,
        errors=outcome.errors,
        inconsistencies=outcome.inconsistencies,
        history_id=outcome.history_id
    )


@router.get("/queries/{query_id}/history", response_model=HistoryListResponse)
async def get_query_history(
    query_id: int,
    limit: int = Query(10, ge=1, le=100, description="Number of recent runs to return"),
    db: AsyncSession = Depends(get_db),
    events: EventBus = Depends(get_events)
):
    query = await _load_query(db, events, query_id)
    history = await HistoryStore(db).get_history(query, limit=limit)
    return HistoryListResponse(query_id=query_id, history=history)


@router.get("/queries/{query_id}/history/last", response_model=Optional[HistoryRecord])
async def get_last_export(
    query_id: int,
    only_successful: bool = Query(False, description="Only consider successful runs"),
    db: AsyncSession = Depends(get_db),
    events: EventBus = Depends(get_events)
):
    """Most recent run of the query, null if it was never exported"""
    query = await _load_query(db, events, query_id)
    return await HistoryStore(db).get_last_export(query, only_successful=only_successful)


@router.get("/queries/{query_id}/history/{history_id}/items", response_model=ExportedItemsResponse)
async def get_exported_items(
    query_id: int,
    history_id: int,
    db: AsyncSession = Depends(get_db),
    events: EventBus = Depends(get_events)
):
    """Grades stored for one run, limited to users the query still resolves"""
    query = await _load_query(db, events, query_id)
    store = HistoryStore(db)

    history = await store.get_record(query, history_id)
    if history is None:
        raise HTTPException(status_code=404, detail=f"History {history_id} not found for query {query_id}")

    context = ExportContext(query, SQLGradeSource(db), settings.gradebook_role_list)
    items = await store.get_exported_items(context, history)
    return ExportedItemsResponse(query_id=query_id, history_id=history_id, items=items)


@router.delete("/queries/{query_id}/history", response_model=WipeHistoryResponse)
async def wipe_query_history(
    query_id: int,
    db: AsyncSession = Depends(get_db),
    events: EventBus = Depends(get_events)
):
    query = await _load_query(db, events, query_id)
    wiped = await HistoryStore(db).wipe_history(query)
    if not wiped:
        raise HTTPException(status_code=500, detail=f"Failed to wipe history for query {query_id}")
    return WipeHistoryResponse(query_id=query_id, wiped=True)
