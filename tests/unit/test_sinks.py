"""
Unit tests for external sinks
"""

import json
import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from sqlalchemy.dialects.postgresql import Insert as PGInsert
from sqlalchemy.dialects.sqlite import Insert as SQLiteInsert
from sqlalchemy.exc import IntegrityError, OperationalError
from core.exceptions import SinkConnectionError, SinkImportError, SinkTimeout
from exporter.base import CallableSink
from exporter.sinks.database_sink import ExternalDatabaseSink, _DatabaseSinkSession, build_grade_table
from exporter.sinks.http_sink import HTTPSink
from exporter.sinks.factory import build_sink
from core.config import settings
from schemas.export import GradeRecord, QueryRecord, UserRecord

USER = UserRecord(id=1, username="alice", idnumber="S001")
GRADE = GradeRecord(user_id=1, item_id=10, final_grade=85.0)


class TestHTTPSink:
    """Test grade posting over HTTP"""

    @pytest.mark.asyncio
    async def test_accepted_grade(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={"ok": True})

        sink = HTTPSink(
            url="https://sis.example.com/grades",
            external_id="SIS-BIO101",
            api_key="secret",
            transport=httpx.MockTransport(handler)
        )

        async with sink.session() as session:
            assert await session.import_grade(USER, GRADE) is True

        body = json.loads(requests[0].content)
        assert body == {
            "external_id": "SIS-BIO101",
            "user_id": 1,
            "username": "alice",
            "idnumber": "S001",
            "final_grade": 85.0,
        }
        assert requests[0].headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_rejected_grade(self):
        sink = HTTPSink(
            url="https://sis.example.com/grades",
            transport=httpx.MockTransport(lambda request: httpx.Response(422, text="unknown student"))
        )

        async with sink.session() as session:
            assert await session.import_grade(USER, GRADE) is False

    @pytest.mark.asyncio
    async def test_server_error_raises_import_error(self):
        sink = HTTPSink(
            url="https://sis.example.com/grades",
            transport=httpx.MockTransport(lambda request: httpx.Response(503))
        )

        async with sink.session() as session:
            with pytest.raises(SinkImportError):
                await session.import_grade(USER, GRADE)

    @pytest.mark.asyncio
    async def test_timeout_raises_sink_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        sink = HTTPSink(url="https://sis.example.com/grades", transport=httpx.MockTransport(handler))

        async with sink.session() as session:
            with pytest.raises(SinkTimeout):
                await session.import_grade(USER, GRADE)


class TestExternalDatabaseSink:
    """Test external database writes"""

    def _conn(self, dialect="postgresql", execute_error=None):
        conn = MagicMock()
        conn.dialect.name = dialect
        conn.execute = AsyncMock(side_effect=execute_error)
        conn.begin_nested.return_value.__aexit__.return_value = False
        return conn

    @pytest.mark.asyncio
    async def test_postgres_import_upserts(self):
        conn = self._conn()
        session = _DatabaseSinkSession(conn, build_grade_table("exported_grades"), "SIS-BIO101")

        assert await session.import_grade(USER, GRADE) is True

        stmt = conn.execute.await_args.args[0]
        assert isinstance(stmt, PGInsert)
        conn.begin_nested.assert_called_once()

    @pytest.mark.asyncio
    async def test_sqlite_import_upserts(self):
        conn = self._conn(dialect="sqlite")
        session = _DatabaseSinkSession(conn, build_grade_table("exported_grades"), "SIS-BIO101")

        assert await session.import_grade(USER, GRADE) is True

        stmt = conn.execute.await_args.args[0]
        assert isinstance(stmt, SQLiteInsert)

    def test_external_id_required(self):
        with pytest.raises(ValueError):
            ExternalDatabaseSink(MagicMock(), build_grade_table("exported_grades"), None)

    @pytest.mark.asyncio
    async def test_rejected_row_returns_false(self):
        conn = self._conn(
            dialect="sqlite",
            execute_error=IntegrityError("INSERT", {}, Exception("constraint failed"))
        )
        session = _DatabaseSinkSession(conn, build_grade_table("exported_grades"), "SIS-BIO101")

        assert await session.import_grade(USER, GRADE) is False

    @pytest.mark.asyncio
    async def test_connection_failure_raises(self):
        engine = MagicMock()
        engine.connect = AsyncMock(side_effect=OperationalError("connect", {}, Exception("refused")))
        sink = ExternalDatabaseSink(engine, build_grade_table("exported_grades"), "SIS-BIO101")

        with pytest.raises(SinkConnectionError):
            async with sink.session():
                pass


class TestCallableSink:

    @pytest.mark.asyncio
    async def test_with_session_releases_session(self):
        sink = CallableSink(lambda user, grade: True)

        async def send(session):
            return await session.import_grade(USER, GRADE)

        assert await sink.with_session(send) is True
        assert sink.sessions_opened == sink.sessions_closed == 1


class TestBuildSink:
    """Test sink selection from settings"""

    def test_http_sink_for_query(self):
        with patch.object(settings, "SINK_TYPE", "http"), \
             patch.object(settings, "SINK_URL", "https://sis.example.com/grades"):
            sink = build_sink(QueryRecord(id=1, external_id="SIS-BIO101", item_id=10))

        assert isinstance(sink, HTTPSink)
        assert sink.external_id == "SIS-BIO101"
        assert sink.timeout == settings.SINK_TIMEOUT

    def test_http_sink_requires_url(self):
        with patch.object(settings, "SINK_TYPE", "http"), \
             patch.object(settings, "SINK_URL", None):
            with pytest.raises(ValueError):
                build_sink(QueryRecord(id=1, item_id=10))

    def test_database_sink_requires_external_url(self):
        with patch.object(settings, "SINK_TYPE", "database"), \
             patch.object(settings, "EXTERNAL_DATABASE_URL", None):
            with pytest.raises(ValueError):
                build_sink(QueryRecord(id=1, item_id=10))

    def test_unknown_sink_type(self):
        with patch.object(settings, "SINK_TYPE", "ftp"):
            with pytest.raises(ValueError, match="Unknown SINK_TYPE"):
                build_sink(QueryRecord(id=1, item_id=10))
