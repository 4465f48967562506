"""
Unit tests for the per-run export context
"""

import pytest
from unittest.mock import AsyncMock
from exporter.base import GradeSource
from exporter.context import ExportContext
from schemas.export import GradeItemRecord


def make_source(users, grades, grade_item=None):
    source = AsyncMock(spec=GradeSource)
    source.get_grade_item.return_value = grade_item
    source.resolve_course_roles.return_value = users
    source.fetch_grades.return_value = grades
    return source


class TestExportContext:
    """Test snapshot resolution and caching"""

    @pytest.mark.asyncio
    async def test_pull_users_resolves_course_roles(self, query, mock_users, mock_grades):
        source = make_source(mock_users, mock_grades, GradeItemRecord(id=10, course_id=1))
        context = ExportContext(query, source, ["student"])

        users = await context.pull_users()

        assert users == mock_users
        source.resolve_course_roles.assert_awaited_once_with(1, ["student"])

    @pytest.mark.asyncio
    async def test_snapshots_are_cached_within_a_run(self, query, mock_users, mock_grades):
        source = make_source(mock_users, mock_grades, GradeItemRecord(id=10, course_id=1))
        context = ExportContext(query, source, ["student"])

        first_users, first_grades = await context.pull_user_grades()
        second_users = await context.pull_users()
        second_grades = await context.pull_grades()

        assert first_users is second_users
        assert first_grades is second_grades
        assert source.get_grade_item.await_count == 1
        assert source.resolve_course_roles.await_count == 1
        assert source.fetch_grades.await_count == 1

    @pytest.mark.asyncio
    async def test_fetch_grades_for_exactly_the_pulled_users(self, query, mock_users, mock_grades):
        source = make_source(mock_users, mock_grades, GradeItemRecord(id=10, course_id=1))
        context = ExportContext(query, source, ["student"])

        await context.pull_grades()

        item_id, user_ids = source.fetch_grades.await_args.args
        assert item_id == 10
        assert list(user_ids) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_new_context_does_not_share_cache(self, query, mock_users, mock_grades):
        source = make_source(mock_users, mock_grades, GradeItemRecord(id=10, course_id=1))

        await ExportContext(query, source, ["student"]).pull_users()
        await ExportContext(query, source, ["student"]).pull_users()

        assert source.resolve_course_roles.await_count == 2

    @pytest.mark.asyncio
    async def test_missing_grade_item_is_not_an_error(self, query, mock_users, mock_grades):
        source = make_source(mock_users, mock_grades, grade_item=None)
        context = ExportContext(query, source, ["student"])

        assert await context.can_pull_grades() is False
        assert await context.pull_users() is None
        assert await context.pull_grades() is None
        assert await context.get_course() is None
        source.resolve_course_roles.assert_not_called()
        source.fetch_grades.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_users_means_no_grades(self, query):
        source = make_source({}, {}, GradeItemRecord(id=10, course_id=1))
        context = ExportContext(query, source, ["student"])

        users, grades = await context.pull_user_grades()

        assert users == {}
        assert grades is None
        source.fetch_grades.assert_not_called()
