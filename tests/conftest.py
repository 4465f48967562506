"""
Pytest configuration and fixtures
"""

import os

# Settings are read at import time; point them at a throwaway database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("GRADEBOOK_ROLES", "student")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from typing import AsyncGenerator
from models.base import Base
from models.query import ExportQuery
from models.history import ExportHistory, ExportHistoryItem
from models.host import Course, HostUser, RoleAssignment, GradeItem, GradeGrade
from core.events import EventBus
from schemas.export import GradeRecord, QueryRecord, UserRecord

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,  # One shared in-memory database per test
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def event_bus():
    """Fresh event bus per test"""
    return EventBus()


@pytest_asyncio.fixture
async def gradebook(db_session):
    """
    Course 1 with grade item 10 and three students graded 85, (none), 60,
    plus an instructor who must never be exported. Course 2 holds grade item 20.
    """
    db_session.add_all([
        Course(id=1, fullname="Biology 101", shortname="BIO101"),
        Course(id=2, fullname="Chemistry 101", shortname="CHEM101"),
    ])
    db_session.add_all([
        HostUser(id=1, username="alice", firstname="Alice", lastname="Adams", idnumber="S001"),
        HostUser(id=2, username="bob", firstname="Bob", lastname="Brown", idnumber="S002"),
        HostUser(id=3, username="carol", firstname="Carol", lastname="Clark", idnumber="S003"),
        HostUser(id=4, username="tina", firstname="Tina", lastname="Teacher", idnumber="T001"),
    ])
    db_session.add_all([
        RoleAssignment(course_id=1, user_id=1, role="student"),
        RoleAssignment(course_id=1, user_id=2, role="student"),
        RoleAssignment(course_id=1, user_id=3, role="student"),
        RoleAssignment(course_id=1, user_id=4, role="editingteacher"),
    ])
    db_session.add_all([
        GradeItem(id=10, course_id=1, itemname="Course total", grademax=100.0),
        GradeItem(id=20, course_id=2, itemname="Course total", grademax=100.0),
    ])
    db_session.add_all([
        GradeGrade(item_id=10, user_id=1, finalgrade=85.0),
        GradeGrade(item_id=10, user_id=2, finalgrade=None),
        GradeGrade(item_id=10, user_id=3, finalgrade=60.0),
        GradeGrade(item_id=10, user_id=4, finalgrade=99.0),
    ])
    await db_session.commit()
    return db_session


@pytest.fixture
def mock_users():
    """User snapshot for three students"""
    return {
        1: UserRecord(id=1, username="alice", idnumber="S001"),
        2: UserRecord(id=2, username="bob", idnumber="S002"),
        3: UserRecord(id=3, username="carol", idnumber="S003"),
    }


@pytest.fixture
def mock_grades():
    """Grade snapshot with final grades 85, empty, 60"""
    return {
        1: GradeRecord(user_id=1, item_id=10, final_grade=85.0),
        2: GradeRecord(user_id=2, item_id=10, final_grade=None),
        3: GradeRecord(user_id=3, item_id=10, final_grade=60.0),
    }


@pytest.fixture
def query():
    return QueryRecord(id=1, external_id="SIS-BIO101", item_id=10, automated=False)
