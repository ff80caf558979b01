"""
finance_app.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (JWT secret, IdP admin password).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Every field can be overridden with a `FIN_`-prefixed environment variable,
    e.g. `FIN_IDP_BASE_URL=https://sso.example.org`.
    """

    model_config = SettingsConfigDict(env_prefix="FIN_", case_sensitive=False)

    # Environment controls toggle behavior like auto-init DB tables and dev token minting.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "finance-app"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Token verification boundary
    jwt_alg: str = "HS256"
    jwt_issuer: str = "finance-idp"
    jwt_audience: str = "finance-app"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)

    # Claim layout of tokens issued by the IdP
    client_id: str = "finance-app"
    username_claim: str = "preferred_username"
    roles_claim: str = "roles"
    resource_access_claim: str = "resource_access"
    role_prefix: str = "ROLE_"

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./finance.db"

    # Identity provider (Keycloak-compatible admin REST API)
    idp_base_url: str = "http://localhost:8081"
    idp_realm: str = "finance"
    idp_admin_realm: str = "master"
    idp_admin_client_id: str = "admin-cli"
    idp_admin_username: str = "admin"
    idp_admin_password: str = Field(default="admin", repr=False)
    idp_default_role: str = "user"
    idp_timeout_seconds: float = 10.0
    # Accounts the reconciliation sweep must never delete (realm admins, service users).
    idp_protected_usernames: list[str] = Field(default_factory=lambda: ["admin"])
    # The sweep leaves accounts younger than this alone; they may belong to a create in flight.
    idp_reconcile_grace_seconds: float = Field(default=300.0, ge=0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Secrets are marked repr=False so a logged Settings object never leaks them.
