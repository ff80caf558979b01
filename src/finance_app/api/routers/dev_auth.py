from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from starlette.status import HTTP_404_NOT_FOUND

from finance_app.api.deps import settings_dep
from finance_app.auth.jwt import JwtConfig, issue_token
from finance_app.settings import Settings

router = APIRouter(prefix="/dev", tags=["dev"])


class DevTokenRequest(BaseModel):
    username: str = Field(min_length=1, max_length=255)
    roles: list[str] = Field(default_factory=list)
    client_roles: list[str] = Field(default_factory=list)
    ttl_minutes: int = Field(default=60, ge=1, le=24 * 60)


class DevTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


@router.post("/token", response_model=DevTokenResponse)
async def mint_dev_token(
    body: DevTokenRequest,
    settings: Settings = Depends(settings_dep),
) -> DevTokenResponse:
    # Stand-in for the IdP's token endpoint; never exposed in prod.
    if settings.env == "prod":
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Not found")

    token = issue_token(
        cfg=JwtConfig.from_settings(settings),
        subject=body.username,
        username=body.username,
        roles=body.roles,
        client_id=settings.client_id,
        client_roles=body.client_roles,
        ttl=timedelta(minutes=body.ttl_minutes),
    )
    return DevTokenResponse(access_token=token)
