"""
finance_app.auth.models

Auth domain models.

Responsibilities:
- Define the authenticated identity type (`CallerIdentity`) threaded into services.
- Define the closed set of roles this application understands.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Role(enum.StrEnum):
    # Normalized role names (prefix stripped, lower-cased) as produced by `auth.claims`.
    admin = "admin"
    user = "user"


@dataclass(frozen=True, slots=True)
class CallerIdentity:
    """
    Authenticated caller, derived per request from a verified token. Never persisted.
    """

    username: str
    roles: frozenset[str]

    def has_role(self, role: Role | str) -> bool:
        return str(role) in self.roles

    @property
    def is_admin(self) -> bool:
        return self.has_role(Role.admin)


# --- Module Notes -----------------------------------------------------------
# Roles stay plain strings so unknown IdP roles survive extraction; `Role` names the
# ones the decision engine acts on.
