"""
Per-run export context.

An ExportContext binds one query to a grade source for the lifetime of a
single export run and memoizes everything it pulls. A new run gets a new
context; nothing is cached across runs.
"""

from typing import List, Optional, Tuple
from exporter.base import GradeSource
from schemas.export import (
    CourseRecord,
    GradeItemRecord,
    GradeSnapshot,
    QueryRecord,
    UserSnapshot,
)
import logging

logger = logging.getLogger(__name__)


class ExportContext:
    """
    Snapshot cache for one query during one run.

    Attributes:
        query: The query being exported
        source: Host gradebook to pull from
        roles: Role identifiers eligible for gradebook participation
    """

    def __init__(self, query: QueryRecord, source: GradeSource, roles: List[str]):
        self.query = query
        self.source = source
        self.roles = list(roles)

        self._grade_item: Optional[GradeItemRecord] = None
        self._grade_item_loaded = False
        self._course: Optional[CourseRecord] = None
        self._users: Optional[UserSnapshot] = None
        self._grades: Optional[GradeSnapshot] = None

    async def get_grade_item(self) -> Optional[GradeItemRecord]:
        if not self._grade_item_loaded:
            self._grade_item = await self.source.get_grade_item(self.query.item_id)
            self._grade_item_loaded = True
        return self._grade_item

    async def get_course(self) -> Optional[CourseRecord]:
        if self._course is None:
            grade_item = await self.get_grade_item()
            if grade_item:
                self._course = await self.source.get_course(grade_item.course_id)
        return self._course

    async def can_pull_grades(self) -> bool:
        """True while the query's grade item still exists in the host"""
        return await self.get_grade_item() is not None

    async def pull_users(self) -> Optional[UserSnapshot]:
        """
        Gradable users of the grade item's course.

        Returns:
            Users keyed by id, or None when the grade item is gone
        """
        if self._users is not None:
            return self._users

        if not await self.can_pull_grades():
            return None

        self._users = await self.source.resolve_course_roles(
            self._grade_item.course_id, self.roles
        )
        logger.debug(f"Pulled {len(self._users)} users for query {self.query.id}")
        return self._users

    async def pull_grades(self) -> Optional[GradeSnapshot]:
        """
        Grades of the pulled users for the query's grade item.

        Returns:
            Grades keyed by user id, or None when there is no grade item or
            no gradable user
        """
        if self._grades is not None:
            return self._grades

        if not await self.can_pull_grades():
            return None

        users = await self.pull_users()
        if not users:
            return None

        self._grades = await self.source.fetch_grades(self.query.item_id, users.keys())
        logger.debug(f"Pulled {len(self._grades)} grades for query {self.query.id}")
        return self._grades

    async def pull_user_grades(self) -> Tuple[Optional[UserSnapshot], Optional[GradeSnapshot]]:
        return await self.pull_users(), await self.pull_grades()
