"""Tests for Health endpoint."""

import pytest
from httpx import AsyncClient, ASGITransport

from matchslot.main import app


@pytest.mark.asyncio
async def test_health_check():
    """
    Health reports the environment and version once the database answers.

    Uses its own client: the shared `db` fixture holds the in-memory
    connection inside an open transaction.
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert "env" in data
    assert "version" in data
