"""Error handling middleware."""

from typing import Any

import structlog
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from medibook.core.exceptions import AppException
from medibook.schemas.appointments import SchedulingError

logger = structlog.get_logger()


def error_body(
    request: Request,
    kind: str,
    message: str,
    details: Any = None,
) -> dict[str, Any]:
    """Build the JSON body shared by every error response."""
    body: dict[str, Any] = {
        "error": kind,
        "message": message,
        "path": str(request.url),
    }
    if details:
        body["details"] = jsonable_encoder(details)
    return body


def scheduling_error_response(request: Request, error: SchedulingError) -> JSONResponse:
    """
    Render a failed scheduling result.

    Args:
        request: Request object
        error: Typed failure returned by the scheduling facade

    Returns:
        JSON error response
    """
    return JSONResponse(
        status_code=error.status_code,
        content=error_body(request, error.kind, error.message, error.details),
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle custom application exceptions.

    Args:
        request: Request object
        exc: Application exception

    Returns:
        JSON error response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.kind, exc.message, exc.details),
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """
    Handle HTTP exceptions.

    Args:
        request: Request object
        exc: HTTP exception

    Returns:
        JSON error response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, "HTTPException", exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle validation errors.

    Args:
        request: Request object
        exc: Validation exception

    Returns:
        JSON error response with validation details
    """
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body(
            request,
            "ValidationError",
            "Request validation failed",
            {"errors": exc.errors()},
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    The response stays opaque; the traceback goes to the log for operators.

    Args:
        request: Request object
        exc: Exception

    Returns:
        JSON error response
    """
    logger.error(
        "unhandled_exception",
        method=request.method,
        path=request.url.path,
        error=str(exc),
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(request, "InternalServerError", "An unexpected error occurred"),
    )
