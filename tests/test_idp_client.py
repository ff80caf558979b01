"""
tests.test_idp_client

Keycloak admin REST client against a mocked transport.

Responsibilities:
- Map IdP status codes and transport failures onto the domain errors.
- Verify request shapes (paths, query params, admin token reuse).
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

import httpx
import pytest

from finance_app.errors import (
    AccountAbsentError,
    DuplicateAccountError,
    NotFoundError,
    PartialProvisioningError,
    ProvisioningError,
)
from finance_app.idp.client import KeycloakClient
from finance_app.services.provisioning import UserProvisioningService
from finance_app.settings import Settings

BASE = "http://idp.test"
TOKEN_PATH = "/realms/master/protocol/openid-connect/token"
USERS_PATH = "/admin/realms/finance/users"

Handler = Callable[[httpx.Request], httpx.Response]


class Recorder:
    """Routes requests to a handler and remembers what was sent."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == TOKEN_PATH:
            return httpx.Response(200, json={"access_token": "admin-token"})
        assert request.headers["authorization"] == "Bearer admin-token"
        return self.handler(request)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


def _client(handler: Handler) -> tuple[KeycloakClient, Recorder]:
    recorder = Recorder(handler)
    settings = Settings(env="test", idp_base_url=BASE)
    http = httpx.AsyncClient(base_url=BASE, transport=httpx.MockTransport(recorder))
    return KeycloakClient(settings=settings, http=http), recorder


def _create(kc: KeycloakClient):
    return kc.create_account(
        username="alice",
        password="pw",
        email="alice@example.com",
        first_name="Alice",
        last_name="Liddell",
    )


@pytest.mark.asyncio
async def test_create_reads_id_from_location_header() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == USERS_PATH
        return httpx.Response(201, headers={"Location": f"{BASE}{USERS_PATH}/abc-123"})

    kc, recorder = _client(handler)
    assert await _create(kc) == "abc-123"
    assert recorder.paths() == [TOKEN_PATH, USERS_PATH]


@pytest.mark.asyncio
async def test_create_falls_back_to_lookup_without_location() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(201)
        return httpx.Response(200, json=[{"id": "looked-up", "username": "alice"}])

    kc, _ = _client(handler)
    assert await _create(kc) == "looked-up"


@pytest.mark.asyncio
async def test_create_conflict_is_duplicate() -> None:
    kc, _ = _client(lambda request: httpx.Response(409, json={"errorMessage": "exists"}))
    with pytest.raises(DuplicateAccountError):
        await _create(kc)


@pytest.mark.asyncio
async def test_create_rejection_is_provisioning_error() -> None:
    kc, _ = _client(lambda request: httpx.Response(400))
    with pytest.raises(ProvisioningError) as exc:
        await _create(kc)
    assert not isinstance(exc.value, DuplicateAccountError)


@pytest.mark.asyncio
async def test_unreachable_idp_is_provisioning_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    kc, _ = _client(handler)
    with pytest.raises(ProvisioningError):
        await kc.delete_account("abc")


@pytest.mark.asyncio
async def test_admin_login_failure_is_provisioning_error() -> None:
    def transport(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401)

    settings = Settings(env="test", idp_base_url=BASE)
    http = httpx.AsyncClient(base_url=BASE, transport=httpx.MockTransport(transport))
    kc = KeycloakClient(settings=settings, http=http)
    with pytest.raises(ProvisioningError):
        await kc.find_account_id_by_username("alice")


@pytest.mark.asyncio
async def test_admin_token_is_fetched_once() -> None:
    kc, recorder = _client(lambda request: httpx.Response(204))
    await kc.delete_account("a")
    await kc.delete_account("b")
    assert recorder.paths().count(TOKEN_PATH) == 1


@pytest.mark.asyncio
async def test_lookup_uses_exact_match_and_first_result_wins() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["username"] == "alice"
        assert request.url.params["exact"] == "true"
        return httpx.Response(
            200,
            json=[{"id": "first", "username": "alice"}, {"id": "second", "username": "alice"}],
        )

    kc, _ = _client(handler)
    assert await kc.find_account_id_by_username("alice") == "first"


@pytest.mark.asyncio
async def test_lookup_without_results_is_not_found() -> None:
    kc, _ = _client(lambda request: httpx.Response(200, json=[]))
    with pytest.raises(NotFoundError):
        await kc.find_account_id_by_username("nobody")


@pytest.mark.asyncio
async def test_delete_of_missing_account_is_absent() -> None:
    kc, _ = _client(lambda request: httpx.Response(404))
    with pytest.raises(AccountAbsentError):
        await kc.delete_account("gone")


@pytest.mark.asyncio
async def test_assign_role_posts_role_representation() -> None:
    role = {"id": "r-1", "name": "user"}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            assert request.url.path == "/admin/realms/finance/roles/user"
            return httpx.Response(200, json=role)
        assert request.url.path == f"{USERS_PATH}/abc/role-mappings/realm"
        return httpx.Response(204)

    kc, recorder = _client(handler)
    await kc.assign_role(account_id="abc", role_name="user")
    assert recorder.requests[-1].method == "POST"


@pytest.mark.asyncio
async def test_assign_missing_role_is_provisioning_error() -> None:
    kc, _ = _client(lambda request: httpx.Response(404))
    with pytest.raises(ProvisioningError):
        await kc.assign_role(account_id="abc", role_name="nope")


@pytest.mark.asyncio
async def test_list_accounts_follows_pages() -> None:
    everyone = [{"id": f"id-{i}", "username": f"user{i}"} for i in range(5)]

    def handler(request: httpx.Request) -> httpx.Response:
        first = int(request.url.params["first"])
        size = int(request.url.params["max"])
        return httpx.Response(200, json=everyone[first : first + size])

    kc, recorder = _client(handler)
    kc.page_size = 2
    accounts = await kc.list_accounts()

    assert [a.username for a in accounts] == [f"user{i}" for i in range(5)]
    # Pages of 2, 2 and 1, plus the admin login.
    assert len(recorder.requests) == 4


@pytest.mark.asyncio
async def test_list_accounts_reads_creation_time() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["briefRepresentation"] == "false"
        return httpx.Response(
            200,
            json=[
                {"id": "a", "username": "old", "createdTimestamp": 1_700_000_000_000},
                {"id": "b", "username": "unknown"},
            ],
        )

    kc, _ = _client(handler)
    old, unknown = await kc.list_accounts()

    assert old.created_at == datetime.fromtimestamp(1_700_000_000, tz=UTC)
    assert unknown.created_at is None


@pytest.mark.asyncio
async def test_html_role_lookup_is_provisioning_error() -> None:
    # A proxy error page served with 200 must not escape as a decoding error.
    kc, recorder = _client(
        lambda request: httpx.Response(
            200, text="<html>gateway</html>", headers={"content-type": "text/html"}
        )
    )
    with pytest.raises(ProvisioningError):
        await kc.assign_role(account_id="abc", role_name="user")
    assert recorder.requests[-1].method == "GET"


@pytest.mark.asyncio
async def test_unreadable_role_lookup_still_removes_new_account(sessionmaker) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(201, headers={"Location": f"{BASE}{USERS_PATH}/new-1"})
        if request.method == "GET":
            return httpx.Response(200, text="<html>gateway</html>")
        return httpx.Response(204)

    kc, recorder = _client(handler)
    async with sessionmaker() as session:
        svc = UserProvisioningService(session=session, idp=kc)
        with pytest.raises(ProvisioningError) as exc:
            await svc.create(
                username="alice",
                password="pw",
                email="alice@example.com",
                first_name="Alice",
                last_name="Liddell",
            )

    assert not isinstance(exc.value, PartialProvisioningError)
    assert (recorder.requests[-1].method, recorder.requests[-1].url.path) == (
        "DELETE",
        f"{USERS_PATH}/new-1",
    )


@pytest.mark.asyncio
async def test_unreadable_admin_login_is_provisioning_error() -> None:
    def transport(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="not json")

    settings = Settings(env="test", idp_base_url=BASE)
    http = httpx.AsyncClient(base_url=BASE, transport=httpx.MockTransport(transport))
    kc = KeycloakClient(settings=settings, http=http)
    with pytest.raises(ProvisioningError):
        await kc.delete_account("abc")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        [{"username": "alice"}],
        {"id": "not-a-list"},
    ],
)
async def test_malformed_search_results_are_provisioning_errors(body) -> None:
    kc, _ = _client(lambda request: httpx.Response(200, json=body))
    with pytest.raises(ProvisioningError):
        await kc.find_account_id_by_username("alice")


@pytest.mark.asyncio
async def test_listing_entry_without_id_is_provisioning_error() -> None:
    kc, _ = _client(lambda request: httpx.Response(200, json=[{"username": "ghost"}]))
    with pytest.raises(ProvisioningError):
        await kc.list_accounts()


# --- Module Notes -----------------------------------------------------------
# MockTransport keeps these tests offline; no IdP container is needed.
