"""
Export grades into an external database table with upsert logic (idempotency)
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional
from sqlalchemy import (
    Table, Column, MetaData, Integer, String, Float, DateTime, Index
)
from sqlalchemy import insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from exporter.base import ExternalSink, SinkSession
from schemas.export import GradeRecord, UserRecord
from core.exceptions import SinkConnectionError
import logging

logger = logging.getLogger(__name__)


def build_grade_table(table_name: str, metadata: Optional[MetaData] = None) -> Table:
    """Layout of the external grade table, one row per (query, user)"""
    metadata = metadata or MetaData()
    return Table(
        table_name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("external_id", String(255), nullable=False),
        Column("user_id", Integer, nullable=False),
        Column("username", String(100), nullable=True),
        Column("idnumber", String(255), nullable=True),
        Column("final_grade", Float, nullable=False),
        Column("exported_at", DateTime, nullable=False, default=datetime.utcnow),
        Index(f"idx_{table_name}_external_user", "external_id", "user_id", unique=True),
    )


class ExternalDatabaseSink(ExternalSink):
    """
    Sink writing into a table of an external database.

    Ensures:
    - One transaction per session
    - One savepoint per import, so a rejected row never poisons the rest
    - No duplicate rows on repeated runs (upsert keyed on external_id and user_id)

    Rows are keyed by the query's external id, so one is required.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        table: Table,
        external_id: str,
        timeout: Optional[float] = None
    ):
        if not external_id:
            raise ValueError("The database sink requires a query with an external id")
        super().__init__(external_id=external_id, timeout=timeout)
        self.engine = engine
        self.table = table

    @asynccontextmanager
    async def session(self) -> AsyncIterator[SinkSession]:
        try:
            conn = await self.engine.connect()
        except SQLAlchemyError as e:
            raise SinkConnectionError(
                "Could not connect to external database",
                context={"table_name": self.table.name, "external_id": self.external_id},
                original_exception=e
            )

        try:
            async with conn.begin():
                yield _DatabaseSinkSession(conn, self.table, self.external_id)
        finally:
            await conn.close()


class _DatabaseSinkSession(SinkSession):

    def __init__(self, conn: AsyncConnection, table: Table, external_id: str):
        self.conn = conn
        self.table = table
        self.external_id = external_id

    def _statement(self, values: dict):
        dialect = self.conn.dialect.name
        if dialect in ("postgresql", "sqlite"):
            upsert = pg_insert if dialect == "postgresql" else sqlite_insert
            stmt = upsert(self.table).values(**values)
            return stmt.on_conflict_do_update(
                index_elements=["external_id", "user_id"],
                set_={
                    "username": stmt.excluded.username,
                    "idnumber": stmt.excluded.idnumber,
                    "final_grade": stmt.excluded.final_grade,
                    "exported_at": stmt.excluded.exported_at,
                }
            )
        return insert(self.table).values(**values)

    async def import_grade(self, user: UserRecord, grade: GradeRecord) -> bool:
        values = {
            "external_id": self.external_id,
            "user_id": user.id,
            "username": user.username,
            "idnumber": user.idnumber,
            "final_grade": grade.final_grade,
            "exported_at": datetime.utcnow(),
        }

        try:
            async with self.conn.begin_nested():
                await self.conn.execute(self._statement(values))
        except SQLAlchemyError as e:
            logger.warning(f"External database rejected grade for user {user.id}: {str(e)}")
            return False

        return True
