"""
Health check and API root tests.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from app.main import app
from app.core.middleware import SECURITY_HEADERS


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Health endpoint should return status ok."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Frame-Options"] == SECURITY_HEADERS["X-Frame-Options"]


@pytest.mark.asyncio
async def test_ready_check(client: AsyncClient):
    """Ready endpoint should return status ready."""
    response = await client.get("/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


@pytest.mark.asyncio
async def test_api_root(client: AsyncClient):
    """API v1 root should list the group endpoints."""
    response = await client.get("/api/v1/")
    assert response.status_code == 200
    data = response.json()
    assert data["api"] == "v1"
    assert "/groups" in data["endpoints"]


@pytest.mark.asyncio
async def test_unknown_route_uses_error_body(client: AsyncClient):
    response = await client.get("/api/v1/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}
