"""
finance_app.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings, DB sessions and the IdP client.
- Build request-scoped services from those pieces.
- Encapsulate app.state access patterns (engine/sessionmaker/http client).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import timedelta

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from finance_app.db.repositories.users import UserRepo
from finance_app.idp.client import IdentityProvider, KeycloakClient
from finance_app.services.accounts import AccountService
from finance_app.services.provisioning import UserProvisioningService
from finance_app.settings import Settings, get_settings


def settings_dep(settings: Settings = Depends(get_settings)) -> Settings:
    # `create_app` overrides `get_settings` so every dependency sees the app's settings.
    return settings


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # Created on app startup in `finance_app.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Commit/rollback is managed explicitly by the service layer.
    async with session_factory() as session:
        yield session


def idp_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.idp_http  # type: ignore[attr-defined]


def identity_provider(
    http: httpx.AsyncClient = Depends(idp_http_client),
    settings: Settings = Depends(settings_dep),
) -> IdentityProvider:
    # One client per request; the pooled httpx client underneath is shared.
    return KeycloakClient(settings=settings, http=http)


def provisioning_service(
    session: AsyncSession = Depends(db_session),
    idp: IdentityProvider = Depends(identity_provider),
    settings: Settings = Depends(settings_dep),
) -> UserProvisioningService:
    return UserProvisioningService(
        session=session,
        idp=idp,
        default_role=settings.idp_default_role,
        protected_usernames=frozenset(settings.idp_protected_usernames),
        reconcile_grace=timedelta(seconds=settings.idp_reconcile_grace_seconds),
    )


def account_service(
    session: AsyncSession = Depends(db_session),
    provisioning: UserProvisioningService = Depends(provisioning_service),
) -> AccountService:
    return AccountService(provisioning=provisioning, users=UserRepo(session))


# --- Module Notes -----------------------------------------------------------
# Tests swap the IdP by overriding `identity_provider` in `app.dependency_overrides`.
