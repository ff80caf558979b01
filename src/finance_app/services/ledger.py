"""
finance_app.services.ledger

Caller-scoped CRUD over owned ledger records.

Responsibilities:
- Stamp new records with the caller as owner.
- Narrow listings and gate single-record access via `auth.policy`.
- Check that budgets and transactions reference a category the caller may use.
"""

from __future__ import annotations

from typing import Any, Generic

from sqlalchemy.ext.asyncio import AsyncSession

from finance_app.auth.deps import enforce
from finance_app.auth.models import CallerIdentity
from finance_app.auth.policy import Operation, OwnerFilter, can_access
from finance_app.db.repositories.ledger import (
    BudgetRepo,
    CategoryRepo,
    M,
    OwnedRepo,
    TransactionRepo,
)
from finance_app.errors import NotFoundError, ValidationError
from finance_app.observability.logging import get_logger

log = get_logger(__name__)


class OwnedResourceService(Generic[M]):
    def __init__(self, *, session: AsyncSession, repo: OwnedRepo[M], kind: str) -> None:
        self._session = session
        self._repo = repo
        self._kind = kind

    async def _load(self, caller: CallerIdentity, record_id: int, operation: Operation) -> M:
        # Missing -> 404; present but not owned -> 403.
        row = await self._repo.get(record_id)
        if row is None:
            raise NotFoundError(f"{self._kind.capitalize()} {record_id} not found")
        enforce(can_access(caller, row.owner_username, operation))
        return row

    async def _check_fields(self, caller: CallerIdentity, fields: dict[str, Any]) -> None:
        return None

    async def list_visible(self, caller: CallerIdentity) -> list[M]:
        decision = can_access(caller, None, Operation.list)
        if isinstance(decision, OwnerFilter):
            return await self._repo.list_all(owner_username=decision.owner_username)
        return await self._repo.list_all()

    async def get(self, caller: CallerIdentity, record_id: int) -> M:
        return await self._load(caller, record_id, Operation.read)

    async def create(self, caller: CallerIdentity, **fields: Any) -> M:
        enforce(can_access(caller, caller.username, Operation.create))
        await self._check_fields(caller, fields)
        row = await self._repo.create(owner_username=caller.username, **fields)
        await self._session.commit()
        log.info("ledger.created", kind=self._kind, record_id=row.id)
        return row

    async def update(self, caller: CallerIdentity, record_id: int, **fields: Any) -> M:
        row = await self._load(caller, record_id, Operation.update)
        await self._check_fields(caller, fields)
        row = await self._repo.update(row, **fields)
        await self._session.commit()
        return row

    async def delete(self, caller: CallerIdentity, record_id: int) -> None:
        row = await self._load(caller, record_id, Operation.delete)
        await self._repo.delete(row)
        await self._session.commit()
        log.info("ledger.deleted", kind=self._kind, record_id=record_id)


class CategorizedService(OwnedResourceService[M]):
    """
    Budgets and transactions: `category_id` must name a category the caller can read.
    """

    async def _check_fields(self, caller: CallerIdentity, fields: dict[str, Any]) -> None:
        category_id = fields.get("category_id")
        if category_id is None:
            return
        category = await CategoryRepo(self._session).get(category_id)
        if category is None:
            raise ValidationError(f"Category {category_id} does not exist")
        enforce(can_access(caller, category.owner_username, Operation.read))


def category_service(session: AsyncSession) -> OwnedResourceService:
    return OwnedResourceService(session=session, repo=CategoryRepo(session), kind="category")


def budget_service(session: AsyncSession) -> CategorizedService:
    return CategorizedService(session=session, repo=BudgetRepo(session), kind="budget")


def transaction_service(session: AsyncSession) -> CategorizedService:
    return CategorizedService(session=session, repo=TransactionRepo(session), kind="transaction")
