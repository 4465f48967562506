"""
Export history persistence.

HistoryStore is the only writer of export_history and export_history_items.
Items carry no cascading delete, so they are always removed before the
history rows they reference.
"""

from typing import Dict, List, Optional
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from models.history import ExportHistory, ExportHistoryItem
from schemas.export import ExportOutcome, HistoryRecord, QueryRecord
from exporter.context import ExportContext
from core.exceptions import PersistenceError
import logging

logger = logging.getLogger(__name__)


class HistoryStore:
    """
    Records export runs and answers history lookups.

    Responsibilities:
    - One history row plus one item row per attempted user for each run
    - Latest / latest successful run lookup
    - Per-user results of a past run
    - Bulk history removal for a query
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def record_export(
        self,
        query: QueryRecord,
        outcome: ExportOutcome,
        success: bool,
        user_id: Optional[int] = None
    ) -> HistoryRecord:
        """
        Write one history record and its items in a single transaction.

        Raises:
            PersistenceError: If the write fails; nothing is stored
        """
        try:
            history = ExportHistory(
                query_id=query.id,
                timestamp=datetime.utcnow(),
                success=success,
                user_id=user_id,
                success_count=len(outcome.successes),
                error_count=len(outcome.errors)
            )
            self.db.add(history)
            await self.db.flush()

            for result in outcome.successes:
                self.db.add(ExportHistoryItem(
                    history_id=history.id,
                    user_id=result.user_id,
                    grade=result.final_grade,
                    success=True
                ))
            for result in outcome.errors:
                self.db.add(ExportHistoryItem(
                    history_id=history.id,
                    user_id=result.user_id,
                    grade=result.final_grade,
                    success=False
                ))

            await self.db.commit()
            await self.db.refresh(history)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(
                "Failed to record export history",
                context={
                    "operation": "INSERT",
                    "table_name": "export_history",
                    "query_id": query.id,
                    "items": outcome.attempted
                },
                original_exception=e
            )

        logger.info(
            f"Recorded export history {history.id} for query {query.id} "
            f"(success={success}, items={outcome.attempted})"
        )
        return HistoryRecord.model_validate(history)

    async def get_last_export(
        self,
        query: QueryRecord,
        only_successful: bool = False
    ) -> Optional[HistoryRecord]:
        """
        Most recent run of this query.

        Args:
            query: The query
            only_successful: Only consider successful runs
        """
        stmt = select(ExportHistory).where(ExportHistory.query_id == query.id)
        if only_successful:
            stmt = stmt.where(ExportHistory.success.is_(True))

        result = await self.db.execute(
            stmt.order_by(ExportHistory.timestamp.desc(), ExportHistory.id.desc()).limit(1)
        )
        history = result.scalar_one_or_none()
        return HistoryRecord.model_validate(history) if history else None

    async def get_record(self, query: QueryRecord, history_id: int) -> Optional[HistoryRecord]:
        """One run of this query by id"""
        result = await self.db.execute(
            select(ExportHistory).where(
                ExportHistory.id == history_id,
                ExportHistory.query_id == query.id
            )
        )
        history = result.scalar_one_or_none()
        return HistoryRecord.model_validate(history) if history else None

    async def get_history(self, query: QueryRecord, limit: int = 10) -> List[HistoryRecord]:
        """Recent runs of this query, newest first"""
        result = await self.db.execute(
            select(ExportHistory)
            .where(ExportHistory.query_id == query.id)
            .order_by(ExportHistory.timestamp.desc(), ExportHistory.id.desc())
            .limit(limit)
        )
        return [HistoryRecord.model_validate(h) for h in result.scalars().all()]

    async def wipe_history(self, query: QueryRecord) -> bool:
        """
        Delete every history record of this query and their items.

        Returns:
            False if the delete failed and was rolled back
        """
        try:
            result = await self.db.execute(
                select(ExportHistory.id).where(ExportHistory.query_id == query.id)
            )
            history_ids = list(result.scalars().all())

            if not history_ids:
                return True

            await self.db.execute(
                delete(ExportHistoryItem).where(ExportHistoryItem.history_id.in_(history_ids))
            )
            await self.db.execute(
                delete(ExportHistory).where(ExportHistory.id.in_(history_ids))
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to wipe history for query {query.id}: {str(e)}")
            return False

        logger.info(f"Wiped {len(history_ids)} history records for query {query.id}")
        return True

    async def get_exported_items(
        self,
        context: ExportContext,
        history: HistoryRecord
    ) -> Dict[int, Optional[float]]:
        """
        Per-user grades stored for one past run of the context's query.

        Only users the query can still resolve are returned.

        Returns:
            Grade keyed by user id
        """
        users = await context.pull_users()
        if not users:
            return {}

        result = await self.db.execute(
            select(ExportHistoryItem.user_id, ExportHistoryItem.grade)
            .join(ExportHistory, ExportHistory.id == ExportHistoryItem.history_id)
            .where(
                ExportHistoryItem.history_id == history.id,
                ExportHistory.query_id == context.query.id
            )
            .order_by(ExportHistoryItem.id)
        )

        return {
            user_id: grade
            for user_id, grade in result.all()
            if user_id in users
        }
