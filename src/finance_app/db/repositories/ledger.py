"""
finance_app.db.repositories.ledger

Repositories for owned ledger records (categories, budgets, transactions).

Responsibilities:
- Keyed create/read/update/delete/exists over one model each.
- Optional narrowing of listings to one owner.
"""

from __future__ import annotations

from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from finance_app.db.models import Budget, Category, Transaction

M = TypeVar("M", Category, Budget, Transaction)


class OwnedRepo(Generic[M]):
    model: ClassVar[type]

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, owner_username: str, **fields: Any) -> M:
        row = self.model(owner_username=owner_username, **fields)
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, record_id: int) -> M | None:
        return await self._session.get(self.model, record_id)

    async def list_all(self, *, owner_username: str | None = None) -> list[M]:
        stmt = select(self.model).order_by(self.model.id)
        if owner_username is not None:
            stmt = stmt.where(self.model.owner_username == owner_username)
        return list((await self._session.execute(stmt)).scalars().all())

    async def exists(self, record_id: int) -> bool:
        stmt = select(exists().where(self.model.id == record_id))
        return bool((await self._session.execute(stmt)).scalar())

    async def update(self, row: M, **fields: Any) -> M:
        # owner_username is never part of an update.
        fields.pop("owner_username", None)
        for name, value in fields.items():
            setattr(row, name, value)
        await self._session.flush()
        return row

    async def delete(self, row: M) -> None:
        await self._session.delete(row)
        await self._session.flush()


class CategoryRepo(OwnedRepo[Category]):
    model = Category


class BudgetRepo(OwnedRepo[Budget]):
    model = Budget


class TransactionRepo(OwnedRepo[Transaction]):
    model = Transaction


# --- Module Notes -----------------------------------------------------------
# Authorization is not checked here; `services.ledger` decides before calling in.
