"""
Host gradebook tables.

The export pipeline only reads these; they are owned by the learning
management host and mapped here so the grade source and the course lookup
can join against them.
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey, Index
from models.base import Base


class Course(Base):
    __tablename__ = "course"

    id = Column(Integer, primary_key=True)
    fullname = Column(String(254), nullable=False, default="")
    shortname = Column(String(255), nullable=False, default="")


class HostUser(Base):
    __tablename__ = "host_users"

    id = Column(Integer, primary_key=True)
    username = Column(String(100), nullable=False, unique=True)
    firstname = Column(String(100), nullable=True)
    lastname = Column(String(100), nullable=True)
    email = Column(String(100), nullable=True)
    idnumber = Column(String(255), nullable=True)  # Institution-wide identifier


class RoleAssignment(Base):
    """A user holding a role within a course"""
    __tablename__ = "role_assignments"

    id = Column(Integer, primary_key=True)
    course_id = Column(Integer, ForeignKey("course.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("host_users.id"), nullable=False)
    role = Column(String(100), nullable=False)

    __table_args__ = (
        Index("idx_role_assignment_course_role", "course_id", "role"),
    )


class GradeItem(Base):
    """One gradable column within a course gradebook"""
    __tablename__ = "grade_items"

    id = Column(Integer, primary_key=True)
    course_id = Column(Integer, ForeignKey("course.id"), nullable=False, index=True)
    itemname = Column(String(255), nullable=True)
    grademax = Column(Float, nullable=False, default=100.0)


class GradeGrade(Base):
    """A user's grade for one grade item; finalgrade is None until graded"""
    __tablename__ = "grade_grades"

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey("grade_items.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("host_users.id"), nullable=False)
    finalgrade = Column(Float, nullable=True)

    __table_args__ = (
        Index("idx_grade_grades_item_user", "item_id", "user_id", unique=True),
    )
