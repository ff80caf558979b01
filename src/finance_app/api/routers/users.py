"""
finance_app.api.routers.users

User registration and account endpoints.

Responsibilities:
- Open registration (`POST /users`), backed by the provisioning service.
- Caller-scoped reads, profile updates and account closure.
- Admin-only reconciliation of orphaned IdP accounts.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, Field
from starlette.status import HTTP_201_CREATED, HTTP_204_NO_CONTENT

from finance_app.api.deps import account_service, provisioning_service
from finance_app.auth.deps import get_caller, require_member
from finance_app.auth.models import CallerIdentity
from finance_app.services.accounts import AccountService
from finance_app.services.provisioning import UserProvisioningService

router = APIRouter(prefix="/users", tags=["users"])


class UserCreateRequest(BaseModel):
    # Blank username/password are rejected by the service (ValidationError -> 400).
    username: str = Field(max_length=255)
    password: str = Field(max_length=1024, repr=False)
    email: str = Field(max_length=320)
    first_name: str = Field(max_length=255)
    last_name: str = Field(max_length=255)


class UserUpdateRequest(BaseModel):
    email: str | None = Field(default=None, max_length=320)
    first_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)


class UserResponse(BaseModel):
    # No password field: credentials live only at the IdP.
    id: int
    username: str
    idp_account_id: str
    email: str
    first_name: str
    last_name: str
    active: bool

    model_config = ConfigDict(from_attributes=True)


class ReconcileResponse(BaseModel):
    dry_run: bool
    orphaned_usernames: list[str]


@router.post("", status_code=HTTP_201_CREATED, response_model=UserResponse)
async def register_user(
    body: UserCreateRequest,
    provisioning: UserProvisioningService = Depends(provisioning_service),
) -> UserResponse:
    user = await provisioning.create(
        username=body.username,
        password=body.password,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return UserResponse.model_validate(user)


@router.get("", response_model=list[UserResponse])
async def list_users(
    caller: CallerIdentity = Depends(require_member),
    accounts: AccountService = Depends(account_service),
) -> list[UserResponse]:
    return [UserResponse.model_validate(u) for u in await accounts.list_visible(caller)]


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_users(
    dry_run: bool = Query(default=False),
    caller: CallerIdentity = Depends(get_caller),
    accounts: AccountService = Depends(account_service),
) -> ReconcileResponse:
    orphans = await accounts.reconcile(caller, dry_run=dry_run)
    return ReconcileResponse(dry_run=dry_run, orphaned_usernames=orphans)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    caller: CallerIdentity = Depends(require_member),
    accounts: AccountService = Depends(account_service),
) -> UserResponse:
    return UserResponse.model_validate(await accounts.get(caller, user_id))


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    body: UserUpdateRequest,
    caller: CallerIdentity = Depends(require_member),
    accounts: AccountService = Depends(account_service),
) -> UserResponse:
    user = await accounts.update(
        caller,
        user_id,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", status_code=HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    # No membership gate: closing one's own account needs no role.
    caller: CallerIdentity = Depends(get_caller),
    accounts: AccountService = Depends(account_service),
) -> Response:
    await accounts.close(caller, user_id)
    return Response(status_code=HTTP_204_NO_CONTENT)


# --- Module Notes -----------------------------------------------------------
# DELETE is a soft delete: the IdP account is removed and the row is kept inactive.
