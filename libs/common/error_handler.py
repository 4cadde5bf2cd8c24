"""Global exception handlers for consistent error responses.

Usage:
    from libs.common.error_handler import add_exception_handlers

    app = FastAPI()
    add_exception_handlers(app)
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from libs.common.errors import ServiceError
from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)


def _error_response(status_code: int, detail: str, kind: str, code=None) -> JSONResponse:
    headers = {}
    request_id = get_request_id()
    if request_id:
        headers["X-Request-ID"] = request_id
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "kind": kind, "code": code},
        headers=headers,
    )


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info(
            "%s %s rejected (%s/%s): %s",
            request.method,
            request.url.path,
            exc.kind,
            exc.code,
            exc.message,
        )
    response = _error_response(exc.status_code, exc.message, exc.kind, exc.code)
    if exc.retryable:
        response.headers["Retry-After"] = "1"
    return response


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Integrity violation on %s: %s", request.url.path, exc.orig)
    return _error_response(
        409, "Request conflicts with existing data", "conflict", "integrity_violation"
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s", request.url.path)
    response = _error_response(
        503, "Storage temporarily unavailable", "internal", "database_unavailable"
    )
    response.headers["Retry-After"] = "1"
    return response


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return _error_response(500, "Internal server error", "internal")


def add_exception_handlers(app: FastAPI) -> None:
    """Register handlers for service errors, DB errors and anything unhandled."""
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
