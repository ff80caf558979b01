"""
finance_app.services.provisioning

User account lifecycle across the local store and the identity provider.

Responsibilities:
- Create accounts IdP-first so no local row ever points at a missing credential.
- Compensate a failed role grant by deleting the fresh IdP account.
- Deactivate (soft delete) only after the IdP account is gone.
- Sweep IdP accounts that have no local record (orphans).

The two systems are not wrapped in one transaction. Any step that leaves them
diverged raises `PartialProvisioningError` and logs `provisioning.partial_failure`.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from finance_app.db.models import User
from finance_app.db.repositories.users import UserRepo
from finance_app.errors import (
    AccountAbsentError,
    ConflictError,
    NotFoundError,
    PartialProvisioningError,
    ProvisioningError,
    ValidationError,
)
from finance_app.idp.client import IdentityProvider
from finance_app.observability.logging import get_logger

log = get_logger(__name__)


def _require_text(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} must not be blank")
    return value.strip()


class UserProvisioningService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        idp: IdentityProvider,
        default_role: str = "user",
        protected_usernames: frozenset[str] = frozenset(),
        reconcile_grace: timedelta = timedelta(minutes=5),
    ) -> None:
        self._session = session
        self._idp = idp
        self._default_role = default_role
        self._protected = frozenset(u.lower() for u in protected_usernames)
        self._reconcile_grace = reconcile_grace
        self._users = UserRepo(session)

    async def create(
        self,
        *,
        username: str,
        password: str,
        email: str,
        first_name: str,
        last_name: str,
    ) -> User:
        # The IdP lower-cases usernames and tokens carry its form; store the same.
        username = _require_text(username, "username").lower()
        if password is None or not password.strip():
            raise ValidationError("password must not be blank")
        email = _require_text(email, "email")
        first_name = _require_text(first_name, "first_name")
        last_name = _require_text(last_name, "last_name")

        if await self._users.get_by_username(username) is not None:
            raise ConflictError(f"Username {username!r} is already taken")

        # Step 1: IdP first. A failure here leaves nothing behind on either side.
        account_id = await self._idp.create_account(
            username=username,
            password=password,
            email=email,
            first_name=first_name,
            last_name=last_name,
        )

        # Step 2: default role; undo the account if the grant fails.
        try:
            await self._idp.assign_role(account_id=account_id, role_name=self._default_role)
        except ProvisioningError as e:
            await self._discard_account(username=username, account_id=account_id, cause=e)

        # Step 3: local record.
        user = User(
            username=username,
            idp_account_id=account_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            active=True,
        )
        try:
            await self._users.insert(user)
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            log.error(
                "provisioning.partial_failure",
                step="local_insert",
                username=username,
                idp_account_id=account_id,
                error=str(e),
            )
            raise PartialProvisioningError(
                f"IdP account for {username!r} was created but the local record was not saved",
                username=username,
                idp_account_id=account_id,
            ) from e

        log.info("user.provisioned", user_id=user.id, username=username, idp_account_id=account_id)
        return user

    async def _discard_account(
        self, *, username: str, account_id: str, cause: ProvisioningError
    ) -> None:
        try:
            await self._idp.delete_account(account_id)
        except AccountAbsentError:
            pass
        except ProvisioningError as cleanup_error:
            log.error(
                "provisioning.partial_failure",
                step="role_assignment_compensation",
                username=username,
                idp_account_id=account_id,
                error=cleanup_error.message,
            )
            raise PartialProvisioningError(
                f"Role assignment for {username!r} failed and the IdP account could not be removed",
                username=username,
                idp_account_id=account_id,
            ) from cleanup_error

        log.warning(
            "provisioning.role_assignment_failed",
            username=username,
            idp_account_id=account_id,
            compensated=True,
            error=cause.message,
        )
        raise ProvisioningError(
            f"Could not grant role {self._default_role!r} to {username!r}: {cause.message}"
        ) from cause

    async def deactivate(self, user_id: int) -> User:
        user = await self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        if not user.active:
            return user

        # IdP first: a user disabled locally but still able to log in is the worse outcome.
        try:
            account_id = await self._idp.find_account_id_by_username(user.username)
            await self._idp.delete_account(account_id)
        except (NotFoundError, AccountAbsentError):
            log.warning("idp.account_already_absent", user_id=user.id, username=user.username)

        user.active = False
        try:
            await self._users.save(user)
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            log.error(
                "provisioning.partial_failure",
                step="local_deactivate",
                username=user.username,
                idp_account_id=user.idp_account_id,
                error=str(e),
            )
            raise PartialProvisioningError(
                f"IdP account for {user.username!r} was deleted but the local record is still active",
                username=user.username,
                idp_account_id=user.idp_account_id,
            ) from e

        log.info("user.deactivated", user_id=user.id, username=user.username)
        return user

    async def update(
        self,
        user_id: int,
        *,
        email: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        # Profile fields only; the IdP copy is not touched.
        user = await self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        if email is not None:
            user.email = _require_text(email, "email")
        if first_name is not None:
            user.first_name = _require_text(first_name, "first_name")
        if last_name is not None:
            user.last_name = _require_text(last_name, "last_name")

        await self._users.save(user)
        await self._session.commit()
        return user

    async def reconcile(self, *, dry_run: bool = False) -> list[str]:
        """
        Delete IdP accounts that have no local record.

        Usernames are compared case-insensitively because the IdP lower-cases them.
        Accounts younger than the grace period, or of unknown age, are skipped: they
        may belong to a `create` that has not committed its local record yet.
        Returns the orphaned usernames, whether or not they were deleted.
        """

        # Read IdP first: a create that commits after the local read is then too
        # young to be swept.
        accounts = await self._idp.list_accounts()
        keep = {u.lower() for u in await self._users.list_usernames()} | self._protected
        cutoff = datetime.now(tz=UTC) - self._reconcile_grace

        orphans = []
        for account in accounts:
            if account.username.lower() in keep:
                continue
            if account.created_at is None or account.created_at > cutoff:
                log.info(
                    "user.reconcile_skipped",
                    username=account.username,
                    idp_account_id=account.id,
                    reason="within_grace_period" if account.created_at else "unknown_age",
                )
                continue
            orphans.append(account)

        deleted: list[dict[str, str]] = []
        if not dry_run:
            for account in orphans:
                try:
                    await self._idp.delete_account(account.id)
                except AccountAbsentError:
                    continue
                deleted.append({"username": account.username, "idp_account_id": account.id})

        log.info(
            "user.reconciled",
            orphans=len(orphans),
            dry_run=dry_run,
            orphaned=[{"username": a.username, "idp_account_id": a.id} for a in orphans],
            deleted=deleted,
        )
        return sorted(a.username for a in orphans)


# --- Module Notes -----------------------------------------------------------
# Concurrent creates with one username race at the IdP's uniqueness check; the loser
# gets DuplicateAccountError from `idp.client` and nothing is written locally.
