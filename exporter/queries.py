"""
Export query persistence with lifecycle events
"""

from typing import Any, Dict, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from models.query import ExportQuery
from models.host import Course, GradeItem
from schemas.export import QueryRecord
from core.events import EventBus, EventTypes
from core.exceptions import PersistenceError
import logging

logger = logging.getLogger(__name__)


class QueryRepository:
    """
    Keyed CRUD over export_queries.

    Write failures are caught here and reported as a False result; events
    are only published for writes that committed, except query_deleted
    (see delete()).
    """

    def __init__(self, db_session: AsyncSession, event_bus: EventBus):
        self.db = db_session
        self.events = event_bus

    async def find_by_course(self, course_id: int) -> Dict[int, QueryRecord]:
        """
        Manually triggered queries whose grade item belongs to the course.

        Queries whose grade item was deleted do not join and are left out.
        """
        result = await self.db.execute(
            select(ExportQuery)
            .join(GradeItem, GradeItem.id == ExportQuery.item_id)
            .join(Course, Course.id == GradeItem.course_id)
            .where(
                Course.id == course_id,
                ExportQuery.automated.is_(False)
            )
            .order_by(ExportQuery.id)
        )
        return {row.id: QueryRecord.model_validate(row) for row in result.scalars().all()}

    async def get_all(self, filters: Optional[Dict[str, Any]] = None) -> Dict[int, QueryRecord]:
        """
        Gets all the queries matching these column filters

        Args:
            filters: Column name to value, e.g. {"automated": True}
        """
        stmt = select(ExportQuery).order_by(ExportQuery.id)
        if filters:
            stmt = stmt.filter_by(**filters)

        result = await self.db.execute(stmt)
        return {row.id: QueryRecord.model_validate(row) for row in result.scalars().all()}

    async def get(self, filters: Dict[str, Any]) -> Optional[QueryRecord]:
        """First query matching the filters, or None"""
        queries = await self.get_all(filters)
        return next(iter(queries.values()), None)

    async def save(self, query: QueryRecord) -> Tuple[bool, bool]:
        """
        Insert a query without an id, update one with an id.

        On insert the new id is assigned to query.id.

        Returns:
            (ok, created)
        """
        if query.id is None:
            try:
                row = await self._insert(query)
            except PersistenceError as e:
                logger.error(f"Failed to create query: {e.message}", extra={"error_context": e.to_dict()})
                return False, True

            query.id = row.id
            logger.info(f"Created query {query.id} for grade item {query.item_id}")
            await self.events.publish(EventTypes.QUERY_CREATED, {"query": query})
            return True, True

        try:
            old_query = await self._snapshot(query.id)
            await self._update(query)
        except PersistenceError as e:
            logger.error(f"Failed to update query {query.id}: {e.message}", extra={"error_context": e.to_dict()})
            return False, False

        logger.info(f"Updated query {query.id}")
        await self.events.publish(EventTypes.QUERY_UPDATED, {"old": old_query, "new": query})
        return True, False

    async def delete(self, query: QueryRecord) -> bool:
        """
        Delete a query.

        query_deleted is published before the delete is attempted, so
        listeners are notified even when the delete then fails. Export
        history is not touched; wipe it explicitly through HistoryStore.
        """
        await self.events.publish(EventTypes.QUERY_DELETED, {"query": query})

        try:
            result = await self.db.execute(
                delete(ExportQuery).where(ExportQuery.id == query.id)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to delete query {query.id}: {str(e)}")
            return False

        deleted = result.rowcount > 0
        if deleted:
            logger.info(f"Deleted query {query.id}")
        return deleted

    async def _insert(self, query: QueryRecord) -> ExportQuery:
        row = ExportQuery(
            external_id=query.external_id,
            item_id=query.item_id,
            automated=query.automated
        )
        try:
            self.db.add(row)
            await self.db.commit()
            await self.db.refresh(row)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(
                "Failed to insert query",
                context={"operation": "INSERT", "table_name": "export_queries"},
                original_exception=e
            )
        return row

    async def _update(self, query: QueryRecord) -> None:
        try:
            result = await self.db.execute(
                select(ExportQuery).where(ExportQuery.id == query.id)
            )
            row = result.scalar_one_or_none()
            if row is None:
                raise PersistenceError(
                    "Query does not exist",
                    context={"operation": "UPDATE", "table_name": "export_queries", "query_id": query.id}
                )

            row.external_id = query.external_id
            row.item_id = query.item_id
            row.automated = query.automated
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(
                "Failed to update query",
                context={"operation": "UPDATE", "table_name": "export_queries", "query_id": query.id},
                original_exception=e
            )

    async def _snapshot(self, query_id: int) -> Optional[QueryRecord]:
        try:
            return await self.get({"id": query_id})
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(
                "Failed to read query before update",
                context={"operation": "SELECT", "table_name": "export_queries", "query_id": query_id},
                original_exception=e
            )
