"""
tests.test_smoke

Minimal smoke tests to validate the service can boot and serve core endpoints.

Responsibilities:
- Ensure the FastAPI app starts and DB readiness probe works in test mode.
- Ensure dev token minting is disabled outside dev/test.
"""

from __future__ import annotations

import httpx
import pytest

from finance_app.api.app import create_app
from finance_app.settings import Settings


@pytest.mark.asyncio
async def test_health_endpoints(client: httpx.AsyncClient) -> None:
    r = await client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["service"] == "finance-app"

    r = await client.get("/readyz")
    assert r.status_code == 200
    assert r.json() == {"status": "ready", "database": "sqlite"}
    assert r.headers["x-request-id"]


@pytest.mark.asyncio
async def test_dev_token_is_usable(client: httpx.AsyncClient) -> None:
    r = await client.post("/dev/token", json={"username": "alice", "roles": ["ROLE_user"]})
    assert r.status_code == 200
    token = r.json()["access_token"]

    r = await client.get("/categories", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json() == []


@pytest.mark.asyncio
async def test_dev_token_hidden_in_prod(tmp_path) -> None:
    settings = Settings(env="prod", database_url=f"sqlite+aiosqlite:///{tmp_path / 'prod.db'}")
    app = create_app(settings=settings)

    # httpx ASGITransport does not manage lifespan automatically; do it explicitly.
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            r = await client.post("/dev/token", json={"username": "mallory", "roles": ["ROLE_admin"]})
            assert r.status_code == 404


# --- Module Notes -----------------------------------------------------------
# Endpoint-level behaviour lives in `test_api.py`; these only prove the app boots.
