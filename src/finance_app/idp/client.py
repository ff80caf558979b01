"""
finance_app.idp.client

HTTP client boundary for the external identity provider.

Responsibilities:
- Authenticate against the admin realm and attach the admin bearer token.
- Create, look up, list and delete accounts; grant realm roles.
- Translate IdP responses and transport failures into the domain error taxonomy.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

import httpx

from finance_app.errors import (
    AccountAbsentError,
    DuplicateAccountError,
    NotFoundError,
    ProvisioningError,
)
from finance_app.observability.logging import get_logger
from finance_app.settings import Settings

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class IdpAccount:
    id: str
    username: str
    # None when the IdP did not report a creation time.
    created_at: datetime | None = None


def _decode(r: httpx.Response, what: str) -> Any:
    try:
        return r.json()
    except ValueError as e:
        raise ProvisioningError(f"IdP returned an unreadable {what} response") from e


def _to_account(entry: Any) -> IdpAccount:
    try:
        created_ms = entry.get("createdTimestamp")
        return IdpAccount(
            id=str(entry["id"]),
            username=str(entry["username"]),
            created_at=(
                datetime.fromtimestamp(created_ms / 1000, tz=UTC)
                if isinstance(created_ms, int | float)
                else None
            ),
        )
    except (KeyError, TypeError, AttributeError) as e:
        raise ProvisioningError("IdP returned an account without id or username") from e


class IdentityProvider(Protocol):
    """
    Operations the provisioning service needs from the IdP.
    """

    async def create_account(
        self,
        *,
        username: str,
        password: str,
        email: str,
        first_name: str,
        last_name: str,
    ) -> str: ...

    async def assign_role(self, *, account_id: str, role_name: str) -> None: ...

    async def find_account_id_by_username(self, username: str) -> str: ...

    async def delete_account(self, account_id: str) -> None: ...

    async def list_accounts(self) -> list[IdpAccount]: ...


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    # One pooled client per process; every call inherits the explicit timeout.
    return httpx.AsyncClient(
        base_url=settings.idp_base_url.rstrip("/"),
        timeout=httpx.Timeout(settings.idp_timeout_seconds),
    )


class KeycloakClient:
    """
    Talks to a Keycloak-compatible admin REST API.

    One instance serves one request; the admin token is fetched lazily and kept for
    the lifetime of the instance only.
    """

    page_size = 100

    def __init__(self, *, settings: Settings, http: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http = http
        self._admin_token: str | None = None

    @property
    def _users_path(self) -> str:
        return f"/admin/realms/{self._settings.idp_realm}/users"

    async def _authz(self) -> dict[str, str]:
        if self._admin_token is None:
            self._admin_token = await self._fetch_admin_token()
        return {"Authorization": f"Bearer {self._admin_token}"}

    async def _fetch_admin_token(self) -> str:
        s = self._settings
        r = await self._send(
            "POST",
            f"/realms/{s.idp_admin_realm}/protocol/openid-connect/token",
            authenticated=False,
            data={
                "grant_type": "password",
                "client_id": s.idp_admin_client_id,
                "username": s.idp_admin_username,
                "password": s.idp_admin_password,
            },
        )
        if r.status_code != 200:
            raise ProvisioningError(f"IdP admin login failed with HTTP {r.status_code}")
        body = _decode(r, "admin login")
        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            raise ProvisioningError("IdP admin login returned no access token")
        return str(token)

    async def _send(
        self,
        method: str,
        path: str,
        *,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = await self._authz() if authenticated else {}
        try:
            return await self._http.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            # Timeouts and connection errors: the IdP is unreachable.
            raise ProvisioningError(f"IdP unreachable: {e.__class__.__name__}") from e

    async def create_account(
        self,
        *,
        username: str,
        password: str,
        email: str,
        first_name: str,
        last_name: str,
    ) -> str:
        r = await self._send(
            "POST",
            self._users_path,
            json={
                "username": username,
                "email": email,
                "firstName": first_name,
                "lastName": last_name,
                "enabled": True,
                "emailVerified": True,
                "credentials": [{"type": "password", "value": password, "temporary": False}],
            },
        )
        if r.status_code == 409:
            raise DuplicateAccountError(f"IdP already has an account named {username!r}")
        if r.status_code != 201:
            raise ProvisioningError(f"IdP rejected account {username!r} with HTTP {r.status_code}")

        # The new id is the last segment of the Location header.
        location = r.headers.get("location", "")
        account_id = location.rstrip("/").rsplit("/", 1)[-1] if location else ""
        if not account_id:
            account_id = await self.find_account_id_by_username(username)
        log.info("idp.account_created", username=username, idp_account_id=account_id)
        return account_id

    async def assign_role(self, *, account_id: str, role_name: str) -> None:
        realm = self._settings.idp_realm
        r = await self._send("GET", f"/admin/realms/{realm}/roles/{role_name}")
        if r.status_code == 404:
            raise ProvisioningError(f"IdP role {role_name!r} does not exist")
        if r.status_code != 200:
            raise ProvisioningError(f"IdP role lookup failed with HTTP {r.status_code}")

        r = await self._send(
            "POST",
            f"{self._users_path}/{account_id}/role-mappings/realm",
            json=[_decode(r, "role lookup")],
        )
        if r.status_code not in (200, 204):
            raise ProvisioningError(
                f"IdP refused role {role_name!r} for account {account_id} (HTTP {r.status_code})"
            )
        log.info("idp.role_assigned", idp_account_id=account_id, role=role_name)

    async def find_account_id_by_username(self, username: str) -> str:
        r = await self._send(
            "GET", self._users_path, params={"username": username, "exact": "true"}
        )
        if r.status_code != 200:
            raise ProvisioningError(f"IdP account search failed with HTTP {r.status_code}")
        matches = _decode(r, "account search")
        if not isinstance(matches, list):
            raise ProvisioningError("IdP account search did not return a list")
        if not matches:
            raise NotFoundError(f"IdP has no account named {username!r}")
        # Several matches: the first one wins, as returned by the IdP.
        return _to_account(matches[0]).id

    async def delete_account(self, account_id: str) -> None:
        r = await self._send("DELETE", f"{self._users_path}/{account_id}")
        if r.status_code == 404:
            raise AccountAbsentError(f"IdP has no account {account_id}")
        if r.status_code not in (200, 204):
            raise ProvisioningError(
                f"IdP refused to delete account {account_id} (HTTP {r.status_code})"
            )
        log.info("idp.account_deleted", idp_account_id=account_id)

    async def list_accounts(self) -> list[IdpAccount]:
        accounts: list[IdpAccount] = []
        first = 0
        while True:
            r = await self._send(
                "GET",
                self._users_path,
                # Full representation: the sweep needs createdTimestamp.
                params={"first": first, "max": self.page_size, "briefRepresentation": "false"},
            )
            if r.status_code != 200:
                raise ProvisioningError(f"IdP account listing failed with HTTP {r.status_code}")
            page = _decode(r, "account listing")
            if not isinstance(page, list):
                raise ProvisioningError("IdP account listing did not return a list")
            accounts.extend(_to_account(u) for u in page)
            if len(page) < self.page_size:
                return accounts
            first += self.page_size


# --- Module Notes -----------------------------------------------------------
# No retries: a failed call surfaces immediately and the provisioning service decides
# whether to compensate. Timeouts come from `build_http_client`.
