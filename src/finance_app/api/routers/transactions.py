"""
finance_app.api.routers.transactions

CRUD endpoints for income/expense transactions.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED, HTTP_204_NO_CONTENT

from finance_app.api.deps import db_session
from finance_app.auth.deps import require_member
from finance_app.auth.models import CallerIdentity
from finance_app.db.models import TransactionType
from finance_app.services.ledger import CategorizedService, transaction_service

router = APIRouter(prefix="/transactions", tags=["transactions"])


class TransactionRequest(BaseModel):
    # Null leaves the record uncategorized (also the state after its category is deleted).
    category_id: int | None = None
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    type: TransactionType
    # Defaults to "now" on create; left unchanged on update when omitted.
    date: datetime | None = None

    def as_fields(self) -> dict[str, Any]:
        data = self.model_dump()
        if data["date"] is None:
            del data["date"]
        elif data["date"].tzinfo is not None:
            # Stored as naive UTC.
            data["date"] = data["date"].astimezone(UTC).replace(tzinfo=None)
        return data


class TransactionResponse(BaseModel):
    id: int
    owner_username: str
    category_id: int | None
    amount: Decimal
    type: TransactionType
    date: datetime

    model_config = ConfigDict(from_attributes=True)


def _service(session: AsyncSession = Depends(db_session)) -> CategorizedService:
    return transaction_service(session)


@router.get("", response_model=list[TransactionResponse])
async def list_transactions(
    caller: CallerIdentity = Depends(require_member),
    svc: CategorizedService = Depends(_service),
) -> list[TransactionResponse]:
    return [TransactionResponse.model_validate(t) for t in await svc.list_visible(caller)]


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: int,
    caller: CallerIdentity = Depends(require_member),
    svc: CategorizedService = Depends(_service),
) -> TransactionResponse:
    return TransactionResponse.model_validate(await svc.get(caller, transaction_id))


@router.post("", status_code=HTTP_201_CREATED, response_model=TransactionResponse)
async def create_transaction(
    body: TransactionRequest,
    caller: CallerIdentity = Depends(require_member),
    svc: CategorizedService = Depends(_service),
) -> TransactionResponse:
    return TransactionResponse.model_validate(await svc.create(caller, **body.as_fields()))


@router.put("/{transaction_id}", response_model=TransactionResponse)
async def update_transaction(
    transaction_id: int,
    body: TransactionRequest,
    caller: CallerIdentity = Depends(require_member),
    svc: CategorizedService = Depends(_service),
) -> TransactionResponse:
    row = await svc.update(caller, transaction_id, **body.as_fields())
    return TransactionResponse.model_validate(row)


@router.delete("/{transaction_id}", status_code=HTTP_204_NO_CONTENT)
async def delete_transaction(
    transaction_id: int,
    caller: CallerIdentity = Depends(require_member),
    svc: CategorizedService = Depends(_service),
) -> Response:
    await svc.delete(caller, transaction_id)
    return Response(status_code=HTTP_204_NO_CONTENT)
