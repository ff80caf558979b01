"""
finance_app.api.routers.budgets

CRUD endpoints for per-category spending limits.
"""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED, HTTP_204_NO_CONTENT

from finance_app.api.deps import db_session
from finance_app.auth.deps import require_member
from finance_app.auth.models import CallerIdentity
from finance_app.services.ledger import CategorizedService, budget_service

router = APIRouter(prefix="/budgets", tags=["budgets"])


class BudgetRequest(BaseModel):
    # Null leaves the record uncategorized (also the state after its category is deleted).
    category_id: int | None = None
    limit_amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2)


class BudgetResponse(BaseModel):
    id: int
    owner_username: str
    category_id: int | None
    limit_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


def _service(session: AsyncSession = Depends(db_session)) -> CategorizedService:
    return budget_service(session)


@router.get("", response_model=list[BudgetResponse])
async def list_budgets(
    caller: CallerIdentity = Depends(require_member),
    svc: CategorizedService = Depends(_service),
) -> list[BudgetResponse]:
    return [BudgetResponse.model_validate(b) for b in await svc.list_visible(caller)]


@router.get("/{budget_id}", response_model=BudgetResponse)
async def get_budget(
    budget_id: int,
    caller: CallerIdentity = Depends(require_member),
    svc: CategorizedService = Depends(_service),
) -> BudgetResponse:
    return BudgetResponse.model_validate(await svc.get(caller, budget_id))


@router.post("", status_code=HTTP_201_CREATED, response_model=BudgetResponse)
async def create_budget(
    body: BudgetRequest,
    caller: CallerIdentity = Depends(require_member),
    svc: CategorizedService = Depends(_service),
) -> BudgetResponse:
    return BudgetResponse.model_validate(await svc.create(caller, **body.model_dump()))


@router.put("/{budget_id}", response_model=BudgetResponse)
async def update_budget(
    budget_id: int,
    body: BudgetRequest,
    caller: CallerIdentity = Depends(require_member),
    svc: CategorizedService = Depends(_service),
) -> BudgetResponse:
    return BudgetResponse.model_validate(await svc.update(caller, budget_id, **body.model_dump()))


@router.delete("/{budget_id}", status_code=HTTP_204_NO_CONTENT)
async def delete_budget(
    budget_id: int,
    caller: CallerIdentity = Depends(require_member),
    svc: CategorizedService = Depends(_service),
) -> Response:
    await svc.delete(caller, budget_id)
    return Response(status_code=HTTP_204_NO_CONTENT)
