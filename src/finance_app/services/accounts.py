"""
finance_app.services.accounts

Caller-scoped access to user accounts.

Responsibilities:
- Apply authorization decisions to reads, profile updates and account closure.
- Delegate lifecycle changes to `UserProvisioningService`.
"""

from __future__ import annotations

from finance_app.auth.deps import enforce
from finance_app.auth.models import CallerIdentity, Role
from finance_app.auth.policy import (
    Operation,
    OwnerFilter,
    can_access,
    can_manage_account,
    require_role,
)
from finance_app.db.models import User
from finance_app.db.repositories.users import UserRepo
from finance_app.errors import NotFoundError
from finance_app.services.provisioning import UserProvisioningService


class AccountService:
    def __init__(self, *, provisioning: UserProvisioningService, users: UserRepo) -> None:
        self._provisioning = provisioning
        self._users = users

    async def _load(self, user_id: int) -> User:
        user = await self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def list_visible(self, caller: CallerIdentity) -> list[User]:
        decision = can_access(caller, None, Operation.list)
        if isinstance(decision, OwnerFilter):
            return await self._users.list_all(username=decision.owner_username)
        return await self._users.list_all()

    async def get(self, caller: CallerIdentity, user_id: int) -> User:
        user = await self._load(user_id)
        enforce(can_manage_account(caller, user.username, Operation.read))
        return user

    async def update(
        self,
        caller: CallerIdentity,
        user_id: int,
        *,
        email: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        user = await self._load(user_id)
        enforce(can_manage_account(caller, user.username, Operation.update))
        return await self._provisioning.update(
            user_id, email=email, first_name=first_name, last_name=last_name
        )

    async def close(self, caller: CallerIdentity, user_id: int) -> User:
        user = await self._load(user_id)
        enforce(can_manage_account(caller, user.username, Operation.delete))
        return await self._provisioning.deactivate(user_id)

    async def reconcile(self, caller: CallerIdentity, *, dry_run: bool = False) -> list[str]:
        enforce(require_role(caller, Role.admin))
        return await self._provisioning.reconcile(dry_run=dry_run)
