"""
Collaborator interfaces for the export pipeline
"""

import inspect
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, List, Optional, TypeVar

from schemas.export import (
    CourseRecord,
    GradeItemRecord,
    GradeRecord,
    GradeSnapshot,
    UserRecord,
    UserSnapshot,
)

T = TypeVar("T")


class GradeSource(ABC):
    """
    Read-only view of the host gradebook.

    Each call must be read-consistent on its own; nothing is assumed across
    calls.
    """

    @abstractmethod
    async def get_grade_item(self, item_id: int) -> Optional[GradeItemRecord]:
        """Return the grade item, or None if it no longer exists"""
        pass

    @abstractmethod
    async def get_course(self, course_id: int) -> Optional[CourseRecord]:
        pass

    @abstractmethod
    async def resolve_course_roles(self, course_id: int, roles: List[str]) -> UserSnapshot:
        """
        Fetch every member of the course holding any of the given roles.

        Returns:
            Users keyed by id, in id order
        """
        pass

    @abstractmethod
    async def fetch_grades(self, item_id: int, user_ids: Iterable[int]) -> GradeSnapshot:
        """
        Fetch grade records for exactly the given users.

        Users without a stored grade get a record with an empty final grade.
        """
        pass


class SinkSession(ABC):
    """An open connection to the external datastore"""

    @abstractmethod
    async def import_grade(self, user: UserRecord, grade: GradeRecord) -> bool:
        """
        Send one user grade.

        Returns:
            True if the external system accepted the grade, False if it
            rejected it
        """
        pass


class ExternalSink(ABC):
    """
    Transactional connection to the external datastore.

    Attributes:
        external_id: Identifier of the query being exported, as known externally
        timeout: Seconds allowed for one import call, None for no limit
    """

    def __init__(self, external_id: Optional[str] = None, timeout: Optional[float] = None):
        self.external_id = external_id
        self.timeout = timeout

    @abstractmethod
    def session(self) -> Any:
        """
        Open a scoped session.

        Must return an async context manager yielding a SinkSession and
        releasing it on every exit path.
        """
        pass

    async def with_session(self, fn: Callable[[SinkSession], Awaitable[T]]) -> T:
        """Run fn inside a scoped session and return its result"""
        async with self.session() as session:
            return await fn(session)


class CallableSink(ExternalSink):
    """
    Sink backed by a plain import function.

    Handy for tests and for wiring listeners that forward grades elsewhere.
    """

    def __init__(
        self,
        import_fn: Callable[[UserRecord, GradeRecord], Any],
        external_id: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        super().__init__(external_id=external_id, timeout=timeout)
        self.import_fn = import_fn
        self.sessions_opened = 0
        self.sessions_closed = 0

    @asynccontextmanager
    async def session(self) -> AsyncIterator[SinkSession]:
        self.sessions_opened += 1
        try:
            yield _CallableSinkSession(self.import_fn)
        finally:
            self.sessions_closed += 1


class _CallableSinkSession(SinkSession):

    def __init__(self, import_fn: Callable[[UserRecord, GradeRecord], Any]):
        self.import_fn = import_fn

    async def import_grade(self, user: UserRecord, grade: GradeRecord) -> bool:
        result = self.import_fn(user, grade)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)
