"""
tests.test_claims

Token claim extraction.

Responsibilities:
- Username claim is mandatory.
- Roles merge realm-wide and this-client roles, normalized and deduplicated.
- Roles granted to other clients never leak in.
"""

from __future__ import annotations

import pytest

from finance_app.auth.claims import extract_identity, normalize_role
from finance_app.auth.models import Role
from finance_app.errors import MalformedTokenError

CLIENT = "finance-app"


@pytest.mark.parametrize(
    "claims",
    [
        {},
        {"sub": "abc", "roles": ["ROLE_admin"]},
        {"preferred_username": ""},
        {"preferred_username": "   "},
        {"preferred_username": 42},
    ],
)
def test_missing_or_unusable_username_is_malformed(claims) -> None:
    with pytest.raises(MalformedTokenError):
        extract_identity(claims, client_id=CLIENT)


def test_top_level_roles_are_prefix_normalized() -> None:
    identity = extract_identity(
        {"preferred_username": "alice", "roles": ["ROLE_user", "ROLE_Admin"]},
        client_id=CLIENT,
    )
    assert identity.username == "alice"
    assert identity.roles == frozenset({"user", "admin"})
    assert identity.is_admin


def test_role_in_both_sources_counts_once() -> None:
    identity = extract_identity(
        {
            "preferred_username": "bob",
            "roles": ["ROLE_user"],
            "resource_access": {CLIENT: {"roles": ["user", "auditor"]}},
        },
        client_id=CLIENT,
    )
    assert identity.roles == frozenset({"user", "auditor"})
    assert len(identity.roles) == 2


def test_only_this_clients_roles_are_honored() -> None:
    identity = extract_identity(
        {
            "preferred_username": "bob",
            "resource_access": {
                "other-app": {"roles": ["admin"]},
                CLIENT: {"roles": ["user"]},
            },
        },
        client_id=CLIENT,
    )
    assert identity.roles == frozenset({"user"})
    assert not identity.is_admin


def test_no_roles_at_all_yields_empty_role_set() -> None:
    identity = extract_identity({"preferred_username": "carol"}, client_id=CLIENT)
    assert identity.roles == frozenset()


def test_non_mapping_client_entry_is_ignored() -> None:
    identity = extract_identity(
        {"preferred_username": "dave", "resource_access": {CLIENT: ["admin"]}},
        client_id=CLIENT,
    )
    assert identity.roles == frozenset()


@pytest.mark.parametrize(
    "claims",
    [
        {"preferred_username": "eve", "roles": "ROLE_admin"},
        {"preferred_username": "eve", "roles": [1, 2]},
        {"preferred_username": "eve", "resource_access": "admin"},
        {"preferred_username": "eve", "resource_access": {CLIENT: {"roles": "admin"}}},
    ],
)
def test_unparseable_role_claims_are_malformed(claims) -> None:
    with pytest.raises(MalformedTokenError):
        extract_identity(claims, client_id=CLIENT)


def test_custom_claim_names() -> None:
    identity = extract_identity(
        {"upn": "frank", "groups": ["admin"]},
        client_id=CLIENT,
        username_claim="upn",
        roles_claim="groups",
    )
    assert identity.username == "frank"
    assert identity.has_role(Role.admin)


def test_normalize_role() -> None:
    assert normalize_role("ROLE_admin") == "admin"
    assert normalize_role("role_User") == "user"
    assert normalize_role(" admin ") == "admin"
    assert normalize_role("admin", prefix="") == "admin"
