"""
finance_app.api.errors

Exception handlers mapping the domain error taxonomy onto HTTP responses.

Responsibilities:
- Render `FinanceAppError` subclasses as `{"detail", "code"}` JSON with their status.
- Render request-body validation failures as 400.
- Keep partial-provisioning failures distinguishable in logs.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import HTTP_400_BAD_REQUEST, HTTP_401_UNAUTHORIZED

from finance_app.errors import FinanceAppError, PartialProvisioningError, ProvisioningError
from finance_app.observability.logging import get_logger

log = get_logger(__name__)


async def finance_error_handler(request: Request, exc: FinanceAppError) -> JSONResponse:
    if isinstance(exc, PartialProvisioningError):
        # Already logged as provisioning.partial_failure by the service; tag the response path.
        log.error(
            "request.failed",
            code=exc.code,
            username=exc.username,
            idp_account_id=exc.idp_account_id,
        )
    elif isinstance(exc, ProvisioningError):
        log.warning("request.failed", code=exc.code, detail=exc.message)
    else:
        log.info("request.rejected", code=exc.code, status_code=exc.status_code)

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers,
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(p) for p in e.get("loc", []) if p != "body") or "unknown",
            "message": e.get("msg", "Validation failed"),
        }
        for e in exc.errors()
    ]
    return JSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content={"detail": "Request validation failed", "code": "validation_error", "errors": errors},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FinanceAppError, finance_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)


# --- Module Notes -----------------------------------------------------------
# HTTPException (missing/invalid bearer token) keeps FastAPI's default rendering.
