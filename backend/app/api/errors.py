"""Exception handlers rendering every failure as ``{success: false, error, code}``."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import ApiError, Conflict, FatalInfra, TransientInfra, ValidationError
from app.db.manager import ConstraintViolation, DatabaseError, PoolClosedError, TransientQueryError

logger = logging.getLogger(__name__)

# Routes whose rejected body means the one required field is missing.
BODY_ERROR_MESSAGES = {
    "login": "Contraseña requerida",
    "change_guest_password": "Nueva contraseña requerida",
}


def error_body(message: str, code: str | None = None) -> dict[str, object]:
    body: dict[str, object] = {"success": False, "error": message}
    if code:
        body["code"] = code
    return body


def database_failure(exc: DatabaseError, message: str) -> ApiError:
    """Translate a connection manager failure into the error shown to clients."""

    logger.error("%s: %s", message, exc)
    if isinstance(exc, (TransientQueryError, PoolClosedError)):
        return TransientInfra()
    if isinstance(exc, ConstraintViolation):
        return Conflict()
    return FatalInfra(message)


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.code))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.debug("Rejected request body for %s: %s", request.url.path, exc.errors())
    route = request.scope.get("route")
    error = ValidationError(BODY_ERROR_MESSAGES.get(getattr(route, "name", None)))
    return JSONResponse(status_code=error.status_code, content=error_body(error.message, error.code))


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        if request.url.path.startswith("/api"):
            return JSONResponse(status_code=exc.status_code, content=error_body("Endpoint no encontrado"))
        if request.url.path != "/":
            return RedirectResponse(url="/")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    error = FatalInfra()
    return JSONResponse(status_code=error.status_code, content=error_body(error.message, error.code))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
