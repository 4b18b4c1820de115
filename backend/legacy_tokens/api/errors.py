"""Translate engine errors into JSON responses with stable error codes."""

import uuid

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from legacy_tokens.core.exceptions import (
    InvalidSchedule,
    InvalidStage,
    LedgerError,
    LegacyTokenError,
    NftNotFound,
    NotAuthorized,
    NotUnlocked,
    ScheduleExists,
    TokenBusy,
)
from legacy_tokens.middleware.correlation import get_correlation_id

logger = structlog.get_logger(__name__)

ERROR_STATUS: dict[type[LegacyTokenError], int] = {
    NotAuthorized: 403,
    NftNotFound: 404,
    InvalidStage: 409,
    NotUnlocked: 409,
    InvalidSchedule: 422,
    ScheduleExists: 409,
    LedgerError: 409,
    TokenBusy: 503,
}


def status_for(exc: LegacyTokenError) -> int:
    for exc_type in type(exc).__mro__:
        if exc_type in ERROR_STATUS:
            return ERROR_STATUS[exc_type]
    return 400


async def legacy_token_error_handler(request: Request, exc: LegacyTokenError) -> JSONResponse:
    """Caller-facing engine errors: logged at info, returned with their code and context."""
    debug_id = str(uuid.uuid4())
    status_code = status_for(exc)

    logger.info(
        "request_rejected",
        error=exc.error,
        code=exc.code,
        status_code=status_code,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
    )

    return JSONResponse(
        status_code=status_code,
        content={**exc.to_dict(), "debug_id": debug_id},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """HTTPException handler with debug_id tracking."""
    debug_id = str(uuid.uuid4())

    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        detail=exc.detail,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "debug_id": debug_id},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unhandled errors: full traceback in the log, generic 500 to the client."""
    debug_id = str(uuid.uuid4())

    logger.error(
        "unhandled_exception",
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "debug_id": debug_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.exception_handler(LegacyTokenError)(legacy_token_error_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)
