"""
FastAPI dependencies
"""

from typing import AsyncGenerator, Callable
from sqlalchemy.ext.asyncio import AsyncSession
from core.database import async_session_maker
from core.events import EventBus, get_event_bus
from exporter.base import ExternalSink
from exporter.sinks.factory import build_sink
from schemas.export import QueryRecord


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Database session per request"""
    async with async_session_maker() as session:
        yield session


def get_events() -> EventBus:
    return get_event_bus()


def get_sink_factory() -> Callable[[QueryRecord], ExternalSink]:
    """Sink builder; overridden in tests"""
    return build_sink
