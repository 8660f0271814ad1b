"""
Global error handling for the FastAPI application.

Converts SummarizatorError subclasses, request validation errors and
unhandled exceptions into one JSON envelope: ``{detail, code, timestamp}``.
"""

import logging
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from summarizator.core.exceptions import SummarizatorError
from summarizator.core.models import ErrorResponse

logger = logging.getLogger(__name__)


def error_responses(*status_codes: int) -> dict[int | str, dict]:
    """OpenAPI ``responses=`` entries documenting the error envelope."""
    return {status_code: {"model": ErrorResponse} for status_code in status_codes}


def _envelope(
    status_code: int,
    detail: str,
    code: str,
    timestamp: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        detail=detail,
        code=code,
        timestamp=timestamp or datetime.now(UTC).isoformat(),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    """Attach exception handlers to the FastAPI application.

    1. ``SummarizatorError``: the error's own status code and machine code.
    2. ``HTTPException`` (routing misses, bad provider names): its status, ``HTTP_ERROR``.
    3. ``RequestValidationError``: 422 ``VALIDATION_ERROR``.
    4. ``Exception``: 500 ``INTERNAL_ERROR`` without leaking the traceback.
    """

    @app.exception_handler(SummarizatorError)
    async def summarizator_error_handler(_request: Request, exc: SummarizatorError) -> JSONResponse:
        return _envelope(exc.status_code, exc.detail, exc.code, exc.timestamp)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _envelope(exc.status_code, str(exc.detail), "HTTP_ERROR", headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _envelope(422, str(exc), "VALIDATION_ERROR")

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return _envelope(500, "Internal server error", "INTERNAL_ERROR")
