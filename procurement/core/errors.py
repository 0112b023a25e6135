# procurement/core/errors.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ProcurementError(Exception):
    """
    Base for every error the workflow core raises on purpose.

    ``kind`` is the machine-readable tag returned to callers,
    ``status_code`` the HTTP status the API layer maps it to.
    """

    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(ProcurementError, ValueError):
    kind = "invalid_input"
    status_code = 400


class Forbidden(ProcurementError, PermissionError):
    kind = "forbidden"
    status_code = 403


class NotFound(ProcurementError, LookupError):
    kind = "not_found"
    status_code = 404


class InvalidState(ProcurementError):
    kind = "invalid_state"
    status_code = 409


class StorageFailure(ProcurementError):
    kind = "storage_failure"
    status_code = 500


class Unauthenticated(ProcurementError):
    kind = "unauthenticated"
    status_code = 401


def error_body(kind: str, message: str) -> dict:
    return {"error": {"kind": kind, "message": message}}


async def _procurement_error_handler(request: Request, exc: ProcurementError) -> JSONResponse:
    rid = getattr(request.state, "request_id", None)
    logger.info(
        "request failed",
        extra={
            "kind": exc.kind,
            "error_message": exc.message,
            "path": request.url.path,
            "request_id": rid,
        },
    )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.kind, exc.message),
        headers=headers,
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "Invalid request payload.")
    message = f"{loc}: {msg}" if loc else msg
    return JSONResponse(status_code=422, content=error_body(InvalidInput.kind, message))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ProcurementError, _procurement_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
