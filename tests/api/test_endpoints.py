"""
API endpoint tests
"""

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock
from sqlalchemy.exc import OperationalError
from httpx import ASGITransport, AsyncClient
from api.main import app
from api.dependencies import get_db, get_events, get_sink_factory
from exporter.base import CallableSink
from exporter.queries import QueryRepository
from schemas.export import QueryRecord


@pytest.fixture
def sink_calls():
    return []


@pytest_asyncio.fixture
async def client(gradebook, event_bus, sink_calls):
    """Create test client with database, event bus and sink overrides"""

    async def override_get_db():
        yield gradebook

    def accept(user, grade):
        sink_calls.append((user.id, grade.final_grade))
        return True

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_events] = lambda: event_bus
    app.dependency_overrides[get_sink_factory] = lambda: (
        lambda query: CallableSink(accept, external_id=query.external_name)
    )

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def manual_query(gradebook, event_bus):
    query = QueryRecord(external_id="SIS-BIO101", item_id=10, automated=False)
    await QueryRepository(gradebook, event_bus).save(query)
    return query


@pytest.mark.asyncio
async def test_health_endpoint_database_connected(client):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database_connected"] is True
    assert data["total_queries"] == 0
    assert data["last_export_success"] is None
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    response = await client.get("/", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_course_queries_lists_manual_queries(client, gradebook, event_bus, manual_query):
    await QueryRepository(gradebook, event_bus).save(
        QueryRecord(external_id="AUTO", item_id=10, automated=True)
    )

    response = await client.get("/courses/1/queries")

    assert response.status_code == 200
    data = response.json()
    assert data["course_id"] == 1
    assert [q["id"] for q in data["queries"]] == [manual_query.id]


@pytest.mark.asyncio
async def test_export_endpoint(client, manual_query, sink_calls):
    """Test on-demand export sends student grades and records history"""
    response = await client.post(f"/queries/{manual_query.id}/export", params={"user_id": 7})

    assert response.status_code == 200
    data = response.json()
    assert data["exported"] is True
    assert data["success"] is True
    assert data["successes"] == [
        {"user_id": 1, "final_grade": 85.0},
        {"user_id": 3, "final_grade": 60.0},
    ]
    assert data["errors"] == []
    assert data["history_id"] is not None
    assert sink_calls == [(1, 85.0), (3, 60.0)]

    last = (await client.get(f"/queries/{manual_query.id}/history/last")).json()
    assert last["id"] == data["history_id"]
    assert last["user_id"] == 7
    assert last["success"] is True


@pytest.mark.asyncio
async def test_export_of_stale_query(client, gradebook, event_bus, sink_calls):
    stale = QueryRecord(item_id=999)
    await QueryRepository(gradebook, event_bus).save(stale)

    response = await client.post(f"/queries/{stale.id}/export")

    assert response.status_code == 200
    assert response.json()["exported"] is False
    assert sink_calls == []


@pytest.mark.asyncio
async def test_export_without_configured_sink(client, manual_query):
    def unconfigured(query):
        raise ValueError("SINK_URL is not configured")

    app.dependency_overrides[get_sink_factory] = lambda: unconfigured

    response = await client.post(f"/queries/{manual_query.id}/export")

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_unknown_query_returns_404(client):
    for response in (
        await client.post("/queries/404/export"),
        await client.get("/queries/404/history"),
        await client.delete("/queries/404/history"),
    ):
        assert response.status_code == 404
        assert "404" in response.json()["detail"]


@pytest.mark.asyncio
async def test_history_and_exported_items(client, manual_query):
    first = (await client.post(f"/queries/{manual_query.id}/export")).json()
    second = (await client.post(f"/queries/{manual_query.id}/export")).json()

    history = (await client.get(f"/queries/{manual_query.id}/history", params={"limit": 5})).json()
    assert [h["id"] for h in history["history"]] == [second["history_id"], first["history_id"]]

    items = await client.get(f"/queries/{manual_query.id}/history/{first['history_id']}/items")
    assert items.status_code == 200
    assert items.json()["items"] == {"1": 85.0, "3": 60.0}

    missing = await client.get(f"/queries/{manual_query.id}/history/9999/items")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_last_export_is_null_before_first_run(client, manual_query):
    response = await client.get(f"/queries/{manual_query.id}/history/last")

    assert response.status_code == 200
    assert response.json() is None


@pytest.mark.asyncio
async def test_wipe_history(client, manual_query):
    await client.post(f"/queries/{manual_query.id}/export")

    response = await client.delete(f"/queries/{manual_query.id}/history")

    assert response.status_code == 200
    assert response.json() == {"query_id": manual_query.id, "wiped": True}
    history = (await client.get(f"/queries/{manual_query.id}/history")).json()
    assert history["history"] == []


@pytest.mark.asyncio
async def test_health_endpoint_database_down(client):
    broken = AsyncMock()
    broken.execute = AsyncMock(side_effect=OperationalError("SELECT 1", {}, Exception("refused")))

    async def override_get_db():
        yield broken

    app.dependency_overrides[get_db] = override_get_db

    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["database_connected"] is False
