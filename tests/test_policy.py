"""
tests.test_policy

Authorization decision engine.

Responsibilities:
- Admins are always allowed.
- Non-admins are allowed on single records iff they own them.
- Lists are narrowed, never denied, and narrowing is idempotent.
- Users may always close their own account.
"""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from finance_app.auth.models import CallerIdentity, Role
from finance_app.auth.policy import (
    Allow,
    Deny,
    Operation,
    OwnerFilter,
    can_access,
    can_manage_account,
    is_admin,
    require_role,
)

ADMIN = CallerIdentity(username="root", roles=frozenset({"admin"}))
BOB = CallerIdentity(username="bob", roles=frozenset({"user"}))
NOBODY = CallerIdentity(username="ghost", roles=frozenset())

SINGLE_RECORD_OPS = [Operation.create, Operation.read, Operation.update, Operation.delete]
OWNERS = ["bob", "alice", "", "BOB", None]


@dataclass
class Row:
    id: int
    owner_username: str


def test_is_admin_is_exact_role_match() -> None:
    assert is_admin(ADMIN)
    assert not is_admin(BOB)
    assert not is_admin(CallerIdentity(username="x", roles=frozenset({"administrator"})))


@pytest.mark.parametrize("operation", list(Operation))
@pytest.mark.parametrize("owner", OWNERS)
def test_admin_is_always_allowed(operation: Operation, owner: str | None) -> None:
    assert isinstance(can_access(ADMIN, owner, operation), Allow)


@pytest.mark.parametrize("operation", SINGLE_RECORD_OPS)
@pytest.mark.parametrize("caller", [BOB, NOBODY])
@pytest.mark.parametrize("owner", OWNERS + ["ghost"])
def test_non_admin_allowed_iff_owner(
    caller: CallerIdentity, owner: str | None, operation: Operation
) -> None:
    decision = can_access(caller, owner, operation)
    if owner == caller.username:
        assert isinstance(decision, Allow)
    else:
        assert isinstance(decision, Deny)
        assert decision.reason


def test_non_admin_list_returns_owner_filter() -> None:
    decision = can_access(BOB, None, Operation.list)
    assert decision == OwnerFilter(owner_username="bob")


def test_owner_filter_narrows_and_is_idempotent() -> None:
    rows = [Row(1, "alice"), Row(2, "bob"), Row(3, "bob"), Row(4, "carol")]
    decision = can_access(BOB, None, Operation.list)
    assert isinstance(decision, OwnerFilter)

    once = decision.apply(rows, lambda r: r.owner_username)
    twice = decision.apply(once, lambda r: r.owner_username)
    assert [r.id for r in once] == [2, 3]
    assert twice == once


def test_self_service_delete_overrides_missing_roles() -> None:
    assert isinstance(can_manage_account(NOBODY, "ghost", Operation.delete), Allow)
    assert isinstance(can_manage_account(NOBODY, "bob", Operation.delete), Deny)


def test_account_update_is_ownership_checked_with_admin_override() -> None:
    assert isinstance(can_manage_account(BOB, "bob", Operation.update), Allow)
    assert isinstance(can_manage_account(BOB, "alice", Operation.update), Deny)
    assert isinstance(can_manage_account(ADMIN, "alice", Operation.update), Allow)


def test_require_role() -> None:
    assert isinstance(require_role(BOB, Role.user), Allow)
    assert isinstance(require_role(ADMIN, Role.user), Allow)
    assert isinstance(require_role(NOBODY, Role.user), Deny)
    assert isinstance(require_role(BOB, Role.admin), Deny)
