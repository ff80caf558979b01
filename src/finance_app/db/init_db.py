"""
finance_app.db.init_db

Schema bootstrap for local runs and the test-suite.

Responsibilities:
- Create the user and ledger tables on an empty database.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine

from finance_app.db import models  # noqa: F401  # registers tables on Base.metadata
from finance_app.db.base import Base
from finance_app.observability.logging import get_logger

log = get_logger(__name__)


async def init_db(engine: AsyncEngine) -> list[str]:
    """
    Create missing tables and return the names of every mapped table.
    """

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    tables = sorted(Base.metadata.tables)
    log.info("db.schema_ready", dialect=engine.dialect.name, tables=tables)
    return tables


# --- Module Notes -----------------------------------------------------------
# `api.app` calls this only when env is dev or test; prod schemas come from `alembic/`.
