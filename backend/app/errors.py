"""Map engine errors to HTTP responses."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from gigmarket.errors import (
    ConflictError,
    IntegrityError,
    InvalidStateError,
    MarketplaceError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from gigmarket.locking import LockTimeoutError

from .logging_config import get_logger

logger = get_logger("gigmarket.backend.errors")

STATUS_CODES = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (UnauthorizedError, status.HTTP_403_FORBIDDEN),
    (IntegrityError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_for(exc: MarketplaceError) -> int:
    for error_type, code in STATUS_CODES:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    code = status_for(exc)
    if isinstance(exc, IntegrityError):
        logger.critical(f"Integrity failure on {request.method} {request.url.path}: {exc}")
        body = {"detail": "Internal consistency error", "error": "IntegrityError"}
    else:
        body = {"detail": exc.message, **exc.to_dict()}
    return JSONResponse(status_code=code, content=body)


async def lock_timeout_handler(request: Request, exc: LockTimeoutError) -> JSONResponse:
    logger.warning(f"Lock timeout on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Resource busy, retry shortly"},
        headers={"Retry-After": "1"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
    app.add_exception_handler(LockTimeoutError, lock_timeout_handler)
