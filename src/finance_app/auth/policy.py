"""
finance_app.auth.policy

Authorization decision engine.

Responsibilities:
- Decide, from a `CallerIdentity`, an operation and a resource owner, whether the
  call is allowed.
- Narrow list operations to the caller's own records instead of denying them.
- Encode the self-service rule that users may always close their own account.

Every function here is pure and total: it returns a decision, it never raises.
The API layer turns a `Deny` into a 403.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TypeVar

from finance_app.auth.models import CallerIdentity, Role

T = TypeVar("T")


class Operation(enum.StrEnum):
    create = "create"
    read = "read"
    list = "list"
    update = "update"
    delete = "delete"


@dataclass(frozen=True, slots=True)
class Allow:
    pass


@dataclass(frozen=True, slots=True)
class Deny:
    reason: str


@dataclass(frozen=True, slots=True)
class OwnerFilter:
    """
    Outcome of a non-admin list: keep only records owned by `owner_username`.
    """

    owner_username: str

    def matches(self, owner_username: str | None) -> bool:
        return owner_username == self.owner_username

    def apply(self, items: Iterable[T], owner_of: Callable[[T], str | None]) -> list[T]:
        # Idempotent: applying it to an already-narrowed list returns the same list.
        return [item for item in items if self.matches(owner_of(item))]


Decision = Allow | Deny | OwnerFilter

ALLOW = Allow()


def is_admin(identity: CallerIdentity) -> bool:
    return identity.has_role(Role.admin)


def can_access(
    identity: CallerIdentity,
    owner_username: str | None,
    operation: Operation,
) -> Decision:
    if is_admin(identity):
        return ALLOW
    if operation is Operation.list:
        # Bulk reads never fail for "items you can't see"; they are silently narrowed.
        return OwnerFilter(owner_username=identity.username)
    if owner_username is not None and owner_username == identity.username:
        return ALLOW
    return Deny(reason=f"{identity.username!r} may not {operation} a resource owned by another user")


def can_manage_account(
    identity: CallerIdentity,
    account_username: str,
    operation: Operation,
) -> Decision:
    # Users may close their own account whatever their roles are.
    if operation is Operation.delete and account_username == identity.username:
        return ALLOW
    return can_access(identity, account_username, operation)


def require_role(identity: CallerIdentity, *roles: Role | str) -> Decision:
    """
    Allow admins, or callers holding at least one of `roles`.
    """

    if is_admin(identity):
        return ALLOW
    if any(identity.has_role(role) for role in roles):
        return ALLOW
    wanted = ", ".join(str(r) for r in roles) or "<none>"
    return Deny(reason=f"Requires one of roles: {wanted}")


# --- Module Notes -----------------------------------------------------------
# Request lifecycle: Unauthenticated -> (token parsed) -> Identified -> Allowed | Forbidden.
# Authentication failures are handled by `auth.deps`; only the last step lives here.
