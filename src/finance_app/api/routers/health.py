"""
finance_app.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Report liveness with the service name and version (`/healthz`).
- Report readiness once the ledger database answers a trivial query (`/readyz`).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from finance_app import __version__
from finance_app.api.deps import db_session, settings_dep
from finance_app.settings import Settings

router = APIRouter()


@router.get("/healthz")
async def healthz(settings: Settings = Depends(settings_dep)) -> dict[str, str]:
    return {"status": "ok", "service": settings.service_name, "version": __version__}


@router.get("/readyz")
async def readyz(session: AsyncSession = Depends(db_session)) -> dict[str, str]:
    # The IdP is not probed: an IdP outage only affects provisioning, not reads.
    await session.execute(text("SELECT 1"))
    return {"status": "ready", "database": session.get_bind().dialect.name}
