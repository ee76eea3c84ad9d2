"""Mapping from domain errors to HTTP responses."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from blast.domain.errors import (
    AuthenticationRequired,
    BlastError,
    ConcurrencyConflict,
    InvalidReference,
    InvalidTransition,
    NotAuthorized,
    NotFound,
    PermanentIO,
    TransientIO,
)
from blast.logging import get_logger

logger = get_logger(__name__)

STATUS_CODES: dict[type[BlastError], int] = {
    AuthenticationRequired: status.HTTP_401_UNAUTHORIZED,
    NotAuthorized: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    InvalidReference: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidTransition: status.HTTP_409_CONFLICT,
    ConcurrencyConflict: status.HTTP_409_CONFLICT,
    TransientIO: status.HTTP_503_SERVICE_UNAVAILABLE,
    PermanentIO: status.HTTP_504_GATEWAY_TIMEOUT,
}


def status_for(error: BlastError) -> int:
    for error_type, code in STATUS_CODES.items():
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def blast_error_handler(request: Request, exc: Exception) -> JSONResponse:
    code = status_for(exc) if isinstance(exc, BlastError) else 500
    logger.warning(
        "request_failed",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
        status=code,
    )
    return JSONResponse(
        status_code=code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BlastError, blast_error_handler)
