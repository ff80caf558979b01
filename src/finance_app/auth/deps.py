"""
finance_app.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Convert a bearer token into a typed `CallerIdentity`.
- Gate routers on role membership via reusable dependency factories.
- Turn a `Deny` decision into a `ForbiddenError`.
"""

from __future__ import annotations

import structlog
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.status import HTTP_401_UNAUTHORIZED

from finance_app.auth.claims import extract_identity
from finance_app.auth.jwt import JwtConfig, JwtValidationError, decode_and_validate
from finance_app.auth.models import CallerIdentity, Role
from finance_app.auth.policy import Decision, Deny, require_role
from finance_app.errors import ForbiddenError
from finance_app.settings import Settings, get_settings

_bearer = HTTPBearer(auto_error=False)


async def get_caller(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(get_settings),
) -> CallerIdentity:
    # Authn: require a bearer token.
    if creds is None or not creds.credentials:
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        # Authn: validate signature and registered claims (iss/aud/exp/sub...).
        claims = decode_and_validate(cfg=JwtConfig.from_settings(settings), token=creds.credentials)
    except JwtValidationError as e:
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    # MalformedTokenError propagates to the API error handlers (401).
    identity = extract_identity(
        claims,
        client_id=settings.client_id,
        username_claim=settings.username_claim,
        roles_claim=settings.roles_claim,
        resource_access_claim=settings.resource_access_claim,
        role_prefix=settings.role_prefix,
    )
    structlog.contextvars.bind_contextvars(caller=identity.username)
    return identity


def enforce(decision: Decision) -> None:
    if isinstance(decision, Deny):
        raise ForbiddenError(decision.reason)


def require_roles(*roles: Role | str):
    def _dep(caller: CallerIdentity = Depends(get_caller)) -> CallerIdentity:
        # Authz: admin passes every role gate (see `policy.require_role`).
        enforce(require_role(caller, *roles))
        return caller

    return _dep


# Membership gate for the finance resource routers.
require_member = require_roles(Role.user)


# --- Module Notes -----------------------------------------------------------
# Per-record ownership is decided in the services via `auth.policy`; these
# dependencies only establish who the caller is and whether they are a member.
