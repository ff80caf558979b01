"""
finance_app.api.app

FastAPI app factory for the finance service.

Responsibilities:
- Build the FastAPI application and register routers/middleware/error handlers.
- Initialize and dispose shared infrastructure (DB engine, IdP HTTP client).
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from finance_app import __version__
from finance_app.api.errors import register_exception_handlers
from finance_app.api.routers.budgets import router as budgets_router
from finance_app.api.routers.categories import router as categories_router
from finance_app.api.routers.dev_auth import router as dev_auth_router
from finance_app.api.routers.health import router as health_router
from finance_app.api.routers.transactions import router as transactions_router
from finance_app.api.routers.users import router as users_router
from finance_app.db.init_db import init_db
from finance_app.db.session import create_engine, create_sessionmaker
from finance_app.idp.client import build_http_client
from finance_app.observability.logging import configure_logging, get_logger
from finance_app.observability.middleware import RequestContextMiddleware
from finance_app.settings import Settings, get_settings

log = get_logger(__name__)


def create_app(*, settings: Settings) -> FastAPI:
    # Configure structured logging once at process startup (before app serves requests).
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        # Shared infrastructure lives on app.state; routers reach it via `api.deps`.
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        app.state.idp_http = build_http_client(settings)
        if settings.env in ("dev", "test"):
            # Dev/test convenience: create tables automatically. Prod should use Alembic migrations.
            await init_db(engine)
        try:
            yield
        finally:
            await app.state.idp_http.aclose()
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="Finance App",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    # Every `Depends(get_settings)` resolves to this app's settings.
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(RequestContextMiddleware)
    register_exception_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(dev_auth_router)
    app.include_router(users_router)
    app.include_router(categories_router)
    app.include_router(budgets_router)
    app.include_router(transactions_router)
    return app


# --- Module Notes -----------------------------------------------------------
# Business logic stays in services; this file only wires things together.
