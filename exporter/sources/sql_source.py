"""
Grade source reading the host gradebook tables through SQLAlchemy
"""

from typing import Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from models.host import Course, HostUser, RoleAssignment, GradeItem, GradeGrade
from schemas.export import (
    CourseRecord,
    GradeItemRecord,
    GradeRecord,
    GradeSnapshot,
    UserRecord,
    UserSnapshot,
)
from exporter.base import GradeSource
import logging

logger = logging.getLogger(__name__)


class SQLGradeSource(GradeSource):
    """
    Host gradebook backed by the course, role and grade tables.

    Responsibilities:
    - Grade item and course lookup
    - Gradable user resolution by course role
    - Grade fetching for a fixed user set
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_grade_item(self, item_id: int) -> Optional[GradeItemRecord]:
        result = await self.db.execute(
            select(GradeItem).where(GradeItem.id == item_id)
        )
        item = result.scalar_one_or_none()
        return GradeItemRecord.model_validate(item) if item else None

    async def get_course(self, course_id: int) -> Optional[CourseRecord]:
        result = await self.db.execute(
            select(Course).where(Course.id == course_id)
        )
        course = result.scalar_one_or_none()
        return CourseRecord.model_validate(course) if course else None

    async def resolve_course_roles(self, course_id: int, roles: List[str]) -> UserSnapshot:
        """Fetch the distinct course members holding any of the roles"""
        if not roles:
            return {}

        result = await self.db.execute(
            select(HostUser)
            .join(RoleAssignment, RoleAssignment.user_id == HostUser.id)
            .where(
                and_(
                    RoleAssignment.course_id == course_id,
                    RoleAssignment.role.in_(roles)
                )
            )
            .distinct()
            .order_by(HostUser.id)
        )
        users = result.scalars().all()

        logger.debug(f"Resolved {len(users)} users with roles {roles} in course {course_id}")

        return {user.id: UserRecord.model_validate(user) for user in users}

    async def fetch_grades(self, item_id: int, user_ids: Iterable[int]) -> GradeSnapshot:
        """Fetch grades for the users, filling in empty records for ungraded users"""
        user_ids = list(user_ids)
        if not user_ids:
            return {}

        result = await self.db.execute(
            select(GradeGrade).where(
                and_(
                    GradeGrade.item_id == item_id,
                    GradeGrade.user_id.in_(user_ids)
                )
            )
        )
        stored = {grade.user_id: grade for grade in result.scalars().all()}

        grades: GradeSnapshot = {}
        for user_id in user_ids:
            grade = stored.get(user_id)
            grades[user_id] = GradeRecord(
                user_id=user_id,
                item_id=item_id,
                final_grade=grade.finalgrade if grade else None
            )

        return grades
