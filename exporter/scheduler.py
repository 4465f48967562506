import logging
from typing import Callable, Dict, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from core.config import settings
from core.events import EventBus, get_event_bus
from exporter.base import ExternalSink
from exporter.engine import ExportEngine
from exporter.history import HistoryStore
from exporter.queries import QueryRepository
from exporter.sinks.factory import build_sink
from exporter.sources.sql_source import SQLGradeSource
from schemas.export import ExportOutcome, QueryRecord

logger = logging.getLogger(__name__)

SinkFactory = Callable[[QueryRecord], ExternalSink]


async def run_automated_exports(
    session: AsyncSession,
    event_bus: EventBus,
    sink_factory: SinkFactory = build_sink
) -> Dict[int, Optional[ExportOutcome]]:
    """
    Export every automated query once.

    A failing query is logged and its work rolled back; the others still run.

    Returns:
        Outcome per query id (None when the query had nothing to export
        or failed)
    """
    repository = QueryRepository(session, event_bus)
    engine = ExportEngine(
        source=SQLGradeSource(session),
        history=HistoryStore(session),
        event_bus=event_bus
    )

    queries = await repository.get_all({"automated": True})
    logger.info(f"Running {len(queries)} automated export(s)")

    outcomes: Dict[int, Optional[ExportOutcome]] = {}
    for query_id, query in queries.items():
        try:
            outcomes[query_id] = await engine.export_grades(query, sink_factory(query))
        except Exception as e:
            logger.error(f"Export failed for query {query_id}: {str(e)}")
            outcomes[query_id] = None
            # A failed statement leaves the shared transaction unusable
            await session.rollback()

    return outcomes


class ExportScheduler:
    def __init__(self, event_bus: Optional[EventBus] = None):
        self.scheduler = AsyncIOScheduler()
        self.engine = create_async_engine(settings.DATABASE_URL, echo=False)
        self.SessionLocal = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )
        self.event_bus = event_bus or get_event_bus()

    async def run_export_job(self):
        """Job exporting all automated queries"""
        logger.info("Scheduler: Starting export job")
        async with self.SessionLocal() as session:
            try:
                await run_automated_exports(session, self.event_bus)
            except Exception as e:
                logger.error(f"Scheduler: export job failed - {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_export_job,
            trigger=IntervalTrigger(minutes=settings.EXPORT_INTERVAL_MINUTES),
            id="grade_export_job",
            replace_existing=True,
            max_instances=1
        )
        self.scheduler.start()
        logger.info("Export Scheduler started")

    def stop(self):
        self.scheduler.shutdown()
        logger.info("Export Scheduler stopped")
