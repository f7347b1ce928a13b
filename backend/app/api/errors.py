"""
Maps engine errors to HTTP responses.

Every error body carries ``detail``, a stable ``code`` and ``retryable`` so
clients can tell a capacity or discount race (retry) from a hard failure.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.errors import BookingEngineError
from app.core.logging import get_logger

logger = get_logger(__name__)


async def booking_engine_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, BookingEngineError) else BookingEngineError(str(exc))
    if error.status_code >= 500:
        logger.error("request_error", code=error.code.value, detail=error.message)
    return JSONResponse(
        status_code=error.status_code,
        content={
            "detail": error.message,
            "code": error.code.value,
            "retryable": error.retryable,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingEngineError, booking_engine_error_handler)
