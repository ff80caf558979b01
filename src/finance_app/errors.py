"""
finance_app.errors

Domain error taxonomy shared by services, auth and the API layer.

Responsibilities:
- Name every failure class the service can surface.
- Carry the HTTP status each class maps to, so handlers stay table-free.
"""

from __future__ import annotations


class FinanceAppError(Exception):
    """Base class; `status_code` and `code` drive the HTTP rendering."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ValidationError(FinanceAppError):
    # Caller input is malformed; raised before any I/O.
    status_code = 400
    code = "validation_error"


class MalformedTokenError(FinanceAppError):
    status_code = 401
    code = "malformed_token"


class ForbiddenError(FinanceAppError):
    status_code = 403
    code = "forbidden"


class NotFoundError(FinanceAppError):
    status_code = 404
    code = "not_found"


class ConflictError(FinanceAppError):
    status_code = 409
    code = "conflict"


class ProvisioningError(FinanceAppError):
    """An identity provider call failed or was rejected."""

    status_code = 500
    code = "provisioning_error"


class DuplicateAccountError(ProvisioningError):
    # The IdP's uniqueness check rejected the username (lost a create race).
    status_code = 409
    code = "duplicate_account"


class AccountAbsentError(ProvisioningError):
    # The IdP has no account with the given id.
    code = "account_absent"


class PartialProvisioningError(ProvisioningError):
    """
    Local and IdP state have diverged: an IdP account exists with no local record.

    This is the one failure that needs operator attention rather than a user retry;
    `username` and `idp_account_id` identify the orphan for cleanup.
    """

    code = "partial_provisioning"

    def __init__(self, message: str, *, username: str, idp_account_id: str) -> None:
        super().__init__(message)
        self.username = username
        self.idp_account_id = idp_account_id


# --- Module Notes -----------------------------------------------------------
# Rendering lives in `finance_app.api.errors`; nothing here imports FastAPI.
