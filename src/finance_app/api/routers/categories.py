"""
finance_app.api.routers.categories

CRUD endpoints for spending/income categories.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED, HTTP_204_NO_CONTENT

from finance_app.api.deps import db_session
from finance_app.auth.deps import require_member
from finance_app.auth.models import CallerIdentity
from finance_app.services.ledger import OwnedResourceService, category_service

router = APIRouter(prefix="/categories", tags=["categories"])


class CategoryRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None


class CategoryResponse(BaseModel):
    id: int
    owner_username: str
    name: str
    description: str | None

    model_config = ConfigDict(from_attributes=True)


def _service(session: AsyncSession = Depends(db_session)) -> OwnedResourceService:
    return category_service(session)


@router.get("", response_model=list[CategoryResponse])
async def list_categories(
    caller: CallerIdentity = Depends(require_member),
    svc: OwnedResourceService = Depends(_service),
) -> list[CategoryResponse]:
    return [CategoryResponse.model_validate(c) for c in await svc.list_visible(caller)]


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(
    category_id: int,
    caller: CallerIdentity = Depends(require_member),
    svc: OwnedResourceService = Depends(_service),
) -> CategoryResponse:
    return CategoryResponse.model_validate(await svc.get(caller, category_id))


@router.post("", status_code=HTTP_201_CREATED, response_model=CategoryResponse)
async def create_category(
    body: CategoryRequest,
    caller: CallerIdentity = Depends(require_member),
    svc: OwnedResourceService = Depends(_service),
) -> CategoryResponse:
    return CategoryResponse.model_validate(await svc.create(caller, **body.model_dump()))


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    body: CategoryRequest,
    caller: CallerIdentity = Depends(require_member),
    svc: OwnedResourceService = Depends(_service),
) -> CategoryResponse:
    row = await svc.update(caller, category_id, **body.model_dump())
    return CategoryResponse.model_validate(row)


@router.delete("/{category_id}", status_code=HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: int,
    caller: CallerIdentity = Depends(require_member),
    svc: OwnedResourceService = Depends(_service),
) -> Response:
    await svc.delete(caller, category_id)
    return Response(status_code=HTTP_204_NO_CONTENT)
