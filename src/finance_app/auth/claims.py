"""
finance_app.auth.claims

Token claim extraction.

Responsibilities:
- Turn the claims of an already-verified token into a `CallerIdentity`.
- Merge top-level roles with roles scoped to this application's client entry.
- Normalize role names so both sources compare equal.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from finance_app.auth.models import CallerIdentity
from finance_app.errors import MalformedTokenError


def normalize_role(raw: str, *, prefix: str = "ROLE_") -> str:
    name = raw.strip()
    if prefix and name.upper().startswith(prefix.upper()):
        name = name[len(prefix) :]
    return name.lower()


def _role_names(value: Any, *, source: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise MalformedTokenError(f"Claim {source!r} must be a list of role names")
    names = list(value)
    if not all(isinstance(n, str) for n in names):
        raise MalformedTokenError(f"Claim {source!r} must contain only strings")
    return names


def _client_roles(resource_access: Any, *, client_id: str, claim: str) -> list[str]:
    if resource_access is None:
        return []
    if not isinstance(resource_access, Mapping):
        raise MalformedTokenError(f"Claim {claim!r} must be an object")
    # Only this application's entry counts; grants for sibling clients are ignored.
    entry = resource_access.get(client_id)
    if not isinstance(entry, Mapping):
        return []
    return _role_names(entry.get("roles"), source=f"{claim}.{client_id}.roles")


def extract_identity(
    claims: Mapping[str, Any],
    *,
    client_id: str,
    username_claim: str = "preferred_username",
    roles_claim: str = "roles",
    resource_access_claim: str = "resource_access",
    role_prefix: str = "ROLE_",
) -> CallerIdentity:
    """
    Build the caller identity from verified claims.

    Raises `MalformedTokenError` when the username claim is missing or blank, or when
    a roles claim is present but cannot be read as a list of strings.
    """

    username = claims.get(username_claim)
    if not isinstance(username, str) or not username.strip():
        raise MalformedTokenError(f"Token has no usable {username_claim!r} claim")

    raw_roles = _role_names(claims.get(roles_claim), source=roles_claim)
    raw_roles += _client_roles(
        claims.get(resource_access_claim), client_id=client_id, claim=resource_access_claim
    )

    roles = frozenset(
        role for role in (normalize_role(r, prefix=role_prefix) for r in raw_roles) if role
    )
    return CallerIdentity(username=username.strip(), roles=roles)


# --- Module Notes -----------------------------------------------------------
# The frozenset collapses a role granted both realm-wide and per-client into one entry.
