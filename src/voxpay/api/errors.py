"""
Maps domain exceptions onto HTTP responses.
"""

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.requests import Request

from ..exceptions import (
    AccountNotResolvable,
    ExternalServiceError,
    InsufficientBalance,
    NotFound,
    SameAccount,
    Unauthorized,
    ValidationError,
    VoxPayError,
)
from ..logging_config import get_logger

logger = get_logger("voxpay.api")

# Checked in order; subclasses before their parents.
STATUS_CODES = (
    (ValidationError, 400),
    (NotFound, 404),
    (Unauthorized, 403),
    (InsufficientBalance, 402),
    (SameAccount, 409),
    (AccountNotResolvable, 422),
    (ExternalServiceError, 502),
)


def status_for(exc: VoxPayError) -> int:
    for exc_type, status in STATUS_CODES:
        if isinstance(exc, exc_type):
            return status
    return 500


async def voxpay_error_handler(request: Request, exc: VoxPayError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected (%d): %s", request.method, request.url.path, status, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc), "error": type(exc).__name__})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(VoxPayError, voxpay_error_handler)
