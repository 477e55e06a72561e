"""
Health endpoint tests using pytest-asyncio and httpx.AsyncClient.
"""

import pytest


@pytest.mark.asyncio
async def test_health_endpoint(test_client):
    """Health reports database connectivity and scheduler state."""
    response = await test_client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()

    assert data["status"] == "ok"
    assert data["uptime"].startswith("PT")
    assert data["checks"]["database"] == "ok"
    assert data["scheduler"]["running"] is False


@pytest.mark.asyncio
async def test_root_health_endpoint(test_client):
    response = await test_client.get("/health")

    assert response.status_code == 200
    assert "checks" in response.json()
