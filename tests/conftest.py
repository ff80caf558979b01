"""
tests.conftest

Shared fixtures for the finance service test-suite.

Responsibilities:
- Provide an in-memory fake of the identity provider with switchable failures.
- Provide a file-backed SQLite database per test.
- Provide an app + ASGI client with the IdP dependency overridden.
"""

from __future__ import annotations

import dataclasses
import itertools
from datetime import UTC, datetime, timedelta
from collections.abc import AsyncIterator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from finance_app.api.app import create_app
from finance_app.api.deps import identity_provider
from finance_app.auth.jwt import JwtConfig, issue_token
from finance_app.db.init_db import init_db
from finance_app.db.session import create_engine, create_sessionmaker
from finance_app.errors import (
    AccountAbsentError,
    DuplicateAccountError,
    NotFoundError,
    ProvisioningError,
)
from finance_app.idp.client import IdpAccount
from finance_app.settings import Settings


class FakeIdentityProvider:
    """
    Keeps accounts in a dict. Add an operation name to `failing` to make it raise.
    """

    def __init__(self) -> None:
        self.accounts: dict[str, IdpAccount] = {}
        self.roles: dict[str, set[str]] = {}
        self.failing: set[str] = set()
        self.calls: list[str] = []
        self._ids = itertools.count(1)

    def _maybe_fail(self, op: str) -> None:
        self.calls.append(op)
        if op in self.failing:
            raise ProvisioningError(f"simulated {op} failure")

    def usernames(self) -> set[str]:
        return {a.username for a in self.accounts.values()}

    def backdate(self, username: str, by: timedelta = timedelta(hours=1)) -> None:
        for account_id, account in self.accounts.items():
            if account.username == username.lower():
                self.accounts[account_id] = dataclasses.replace(
                    account, created_at=account.created_at - by
                )

    async def create_account(
        self,
        *,
        username: str,
        password: str,
        email: str,
        first_name: str,
        last_name: str,
    ) -> str:
        self._maybe_fail("create_account")
        if username.lower() in {u.lower() for u in self.usernames()}:
            raise DuplicateAccountError(f"duplicate {username}")
        account_id = f"kc-{next(self._ids)}"
        self.accounts[account_id] = IdpAccount(
            id=account_id, username=username.lower(), created_at=datetime.now(tz=UTC)
        )
        return account_id

    async def assign_role(self, *, account_id: str, role_name: str) -> None:
        self._maybe_fail("assign_role")
        self.roles.setdefault(account_id, set()).add(role_name)

    async def find_account_id_by_username(self, username: str) -> str:
        self._maybe_fail("find_account_id_by_username")
        for account in self.accounts.values():
            if account.username == username.lower():
                return account.id
        raise NotFoundError(f"no account {username}")

    async def delete_account(self, account_id: str) -> None:
        self._maybe_fail("delete_account")
        if account_id not in self.accounts:
            raise AccountAbsentError(f"no account {account_id}")
        del self.accounts[account_id]

    async def list_accounts(self) -> list[IdpAccount]:
        self._maybe_fail("list_accounts")
        return list(self.accounts.values())


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'finance-test.db'}",
        jwt_secret="test-secret",
        log_level="WARNING",
    )


@pytest.fixture
def fake_idp() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest_asyncio.fixture
async def sessionmaker(settings: Settings) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_engine(settings)
    await init_db(engine)
    try:
        yield create_sessionmaker(engine)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def app(settings: Settings, fake_idp: FakeIdentityProvider) -> AsyncIterator[FastAPI]:
    app = create_app(settings=settings)
    app.dependency_overrides[identity_provider] = lambda: fake_idp
    # httpx ASGITransport does not manage lifespan; run it explicitly.
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def auth_header(settings: Settings):
    def _make(
        username: str,
        roles: tuple[str, ...] = ("ROLE_user",),
        client_roles: tuple[str, ...] = (),
    ) -> dict[str, str]:
        token = issue_token(
            cfg=JwtConfig.from_settings(settings),
            subject=f"sub-{username}",
            username=username,
            roles=list(roles),
            client_id=settings.client_id,
            client_roles=list(client_roles),
        )
        return {"Authorization": f"Bearer {token}"}

    return _make


# --- Module Notes -----------------------------------------------------------
# The fake lower-cases usernames like the real IdP does, which the reconciliation
# tests rely on.
