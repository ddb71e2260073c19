"""
Domain errors raised by the lifecycle manager and the FastAPI handlers that
translate them into JSON error responses.
"""
import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class OrganFlowError(Exception):
    """Base class for lifecycle errors."""

    kind = "OrganFlowError"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class NotFoundError(OrganFlowError):
    """Referenced organ or request does not exist."""

    kind = "NotFoundError"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(OrganFlowError):
    """Requested transition is not legal from the current state."""

    kind = "InvalidStateError"
    status_code = status.HTTP_409_CONFLICT


class InvalidArgumentError(OrganFlowError):
    """Malformed or missing required field."""

    kind = "InvalidArgumentError"
    status_code = status.HTTP_400_BAD_REQUEST


class PersistenceError(OrganFlowError):
    """Snapshot could not be read or written."""

    kind = "PersistenceError"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class LedgerUnavailableError(OrganFlowError):
    """Ledger relay could not be reached or returned an unusable reply."""

    kind = "LedgerUnavailableError"
    status_code = status.HTTP_502_BAD_GATEWAY


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "N/A")


def _error_response(request: Request, status_code: int, kind: str, detail) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": kind, "detail": detail, "request_id": _request_id(request)},
    )


async def organflow_exception_handler(request: Request, exc: OrganFlowError):
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc}",
                     extra={"request_id": _request_id(request)})
    else:
        logger.info(f"{exc.kind} on {request.method} {request.url.path}: {exc}",
                    extra={"request_id": _request_id(request)})
    return _error_response(request, exc.status_code, exc.kind, str(exc))


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(request, exc.status_code, "HTTPException", exc.detail)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return _error_response(request, 422, "ValidationError", errors)


async def general_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}",
                     extra={"request_id": _request_id(request)})
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "InternalServerError",
                           "Internal server error")
