"""Health checks - liveness always up, readiness follows the database."""

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from pairing.infrastructure import database
from pairing.infrastructure.database import DatabaseSessionManager
from pairing.main import app


async def _get(path: str):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        return await ac.get(path)


async def test_liveness():
    resp = await _get("/api/v1/health/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


async def test_not_ready_without_database(monkeypatch):
    monkeypatch.setattr(database, "db_manager", None)
    resp = await _get("/api/v1/health/ready")
    assert resp.status_code == 503
    assert resp.json()["reason"] == "database_unavailable"


async def test_ready_with_database(monkeypatch):
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    monkeypatch.setattr(database, "db_manager", DatabaseSessionManager.from_engine(engine))
    try:
        resp = await _get("/api/v1/health/ready")
    finally:
        await engine.dispose()
    assert resp.status_code == 200
    assert resp.json()["checks"] == {"database": "healthy"}
