"""
Build the configured sink for a query
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from exporter.base import ExternalSink
from exporter.sinks.database_sink import ExternalDatabaseSink, build_grade_table
from exporter.sinks.http_sink import HTTPSink
from schemas.export import QueryRecord
from core.config import settings
import logging

logger = logging.getLogger(__name__)

_external_engine: Optional[AsyncEngine] = None
_grade_table = None


def get_external_engine() -> AsyncEngine:
    """Shared engine for the external database, created on first use"""
    global _external_engine
    if _external_engine is None:
        if not settings.EXTERNAL_DATABASE_URL:
            raise ValueError("EXTERNAL_DATABASE_URL is not configured")
        _external_engine = create_async_engine(settings.EXTERNAL_DATABASE_URL, echo=False)
    return _external_engine


async def dispose_external_engine():
    global _external_engine
    if _external_engine is not None:
        await _external_engine.dispose()
        _external_engine = None


def build_sink(query: QueryRecord) -> ExternalSink:
    """
    Sink for one query according to SINK_TYPE.

    Raises:
        ValueError: If the sink type is unknown or not configured
    """
    global _grade_table

    if settings.SINK_TYPE == "database":
        if _grade_table is None:
            _grade_table = build_grade_table(settings.EXTERNAL_TABLE)
        return ExternalDatabaseSink(
            engine=get_external_engine(),
            table=_grade_table,
            external_id=query.external_name,
            timeout=settings.SINK_TIMEOUT
        )

    if settings.SINK_TYPE == "http":
        if not settings.SINK_URL:
            raise ValueError("SINK_URL is not configured")
        return HTTPSink(
            url=settings.SINK_URL,
            external_id=query.external_name,
            api_key=settings.API_KEY,
            timeout=settings.SINK_TIMEOUT
        )

    raise ValueError(f"Unknown SINK_TYPE: {settings.SINK_TYPE}")
