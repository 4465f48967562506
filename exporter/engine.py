# ============================================================================
# File: exporter/engine.py
# Description: Grade export orchestrator with per-record failure isolation
# ============================================================================
"""
Export Engine - Orchestrates pull, send and record for one query.

This module provides export orchestration with:
- Partial failure support (one rejected grade never aborts the batch)
- Scoped sink sessions released on every exit path
- Per-record timeouts classified as per-record errors
- Durable history of every completed run
- Lifecycle events before and after each export
"""

import asyncio
from typing import List, Optional

from exporter.base import ExternalSink, GradeSource, SinkSession
from exporter.context import ExportContext
from exporter.history import HistoryStore
from schemas.export import (
    ExportOutcome,
    ExportResult,
    GradeRecord,
    GradeSnapshot,
    QueryRecord,
    UserRecord,
    UserSnapshot,
)
from core.config import settings
from core.events import EventBus, EventTypes
from core.exceptions import (
    DataConsistencyError,
    PersistenceError,
    SinkError,
    SinkTimeout,
)
import logging

logger = logging.getLogger(__name__)


class ExportEngine:
    """
    Grade export orchestrator

    Responsibilities:
    - Resolve a query to its gradable users and their grades
    - Let pre-export listeners adjust the snapshots
    - Send each non-empty grade to the sink and partition the results
    - Record the run in the history store
    - Announce the results to post-export listeners
    """

    def __init__(
        self,
        source: GradeSource,
        history: HistoryStore,
        event_bus: EventBus,
        roles: Optional[List[str]] = None
    ):
        self.source = source
        self.history = history
        self.events = event_bus
        self.roles = roles if roles is not None else settings.gradebook_role_list

    def new_context(self, query: QueryRecord) -> ExportContext:
        """Fresh snapshot cache for one run of the query"""
        return ExportContext(query, self.source, self.roles)

    async def export_grades(
        self,
        query: QueryRecord,
        sink: ExternalSink,
        user_id: Optional[int] = None,
        context: Optional[ExportContext] = None
    ) -> Optional[ExportOutcome]:
        """
        Export the query's grades to the sink.

        Args:
            query: Query to export
            sink: External datastore connection
            user_id: User who triggered the run (None for scheduled runs)
            context: Run context to reuse; a new one is created if omitted

        Returns:
            The run outcome, or None when there was nothing to export (grade
            item deleted or no gradable users). No history is written and the
            sink is not contacted in that case.
        """
        context = context or self.new_context(query)

        # --------------------------------------------------
        # PHASE 1: PULL
        # --------------------------------------------------
        if not await context.can_pull_grades():
            logger.info(f"Query {query.id}: grade item {query.item_id} not found, skipping export")
            return None

        users, grades = await context.pull_user_grades()
        if not users or grades is None:
            logger.info(f"Query {query.id}: no gradable users, skipping export")
            return None

        logger.info(f"Query {query.id}: pulled {len(users)} users and {len(grades)} grades")

        # --------------------------------------------------
        # PHASE 2: PRE-EXPORT LISTENERS
        # --------------------------------------------------
        payload = await self.events.publish(
            EventTypes.PRE_EXPORT_GRADES,
            {"query": query, "users": users, "grades": grades}
        )
        users = payload["users"]
        grades = payload["grades"]

        # --------------------------------------------------
        # PHASE 3: SEND
        # --------------------------------------------------
        async with sink.session() as session:
            outcome = await self._send(query, session, sink.timeout, users, grades)

        logger.info(
            f"Query {query.id}: exported {len(outcome.successes)} grades, "
            f"{len(outcome.errors)} errors, {len(outcome.inconsistencies)} inconsistencies"
        )

        # --------------------------------------------------
        # PHASE 4: RECORD HISTORY
        # --------------------------------------------------
        history = None
        try:
            history = await self.history.record_export(
                query, outcome, success=outcome.success, user_id=user_id
            )
            outcome.history_id = history.id
        except PersistenceError as e:
            logger.error(
                f"Query {query.id}: export finished but history was not recorded: {e.message}",
                extra={"error_context": e.to_dict()}
            )

        # --------------------------------------------------
        # PHASE 5: POST-EXPORT LISTENERS
        # --------------------------------------------------
        await self.events.publish(
            EventTypes.EXPORTED_GRADES,
            {
                "query": query,
                "user_id": user_id,
                "results": outcome.successes,
                "errors": outcome.errors,
                "history": history,
            }
        )

        return outcome

    async def _send(
        self,
        query: QueryRecord,
        session: SinkSession,
        timeout: Optional[float],
        users: UserSnapshot,
        grades: GradeSnapshot
    ) -> ExportOutcome:
        """Send every exportable grade, in grade snapshot order"""
        outcome = ExportOutcome()

        for grade in grades.values():
            user = users.get(grade.user_id)
            if user is None:
                error = DataConsistencyError(
                    "Grade references a user missing from the user snapshot",
                    context={"query_id": query.id, "user_id": grade.user_id}
                )
                logger.error(error.message, extra={"error_context": error.to_dict()})
                outcome.inconsistencies.append(grade.user_id)
                continue

            if grade.is_empty:
                continue

            result = ExportResult(user_id=user.id, final_grade=grade.final_grade)

            if await self._import(session, timeout, user, grade):
                outcome.successes.append(result)
            else:
                outcome.errors.append(result)

        return outcome

    async def _import(
        self,
        session: SinkSession,
        timeout: Optional[float],
        user: UserRecord,
        grade: GradeRecord
    ) -> bool:
        """One import call; any failure counts against this user only"""
        try:
            if timeout:
                try:
                    return await asyncio.wait_for(session.import_grade(user, grade), timeout=timeout)
                except asyncio.TimeoutError as e:
                    raise SinkTimeout(
                        "Import timed out",
                        context={"user_id": user.id, "final_grade": grade.final_grade, "timeout": timeout},
                        original_exception=e
                    )
            return await session.import_grade(user, grade)

        except SinkError as e:
            logger.warning(f"Import failed for user {user.id}: {e.message}", extra={"error_context": e.to_dict()})
            return False

        except Exception as e:
            logger.exception(f"Unexpected error importing grade for user {user.id}: {str(e)}")
            return False
