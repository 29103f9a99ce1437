"""Exception handlers for FastAPI application."""

import logging
from http import HTTPStatus

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from hostwatch.core.exceptions import HostwatchError, ServiceError
from hostwatch.models.common import ErrorResponse

logger = logging.getLogger(__name__)


async def hostwatch_error_handler(request: Request, exc: HostwatchError) -> JSONResponse:
    """Handle custom HostwatchError exceptions."""
    request_id = getattr(request.state, "request_id", None)

    error_response = ErrorResponse(
        error=exc.message,
        error_code=exc.error_code,
        request_id=request_id,
        details=exc.details,
    )

    logger.error(
        "Error handling request",
        extra={
            "request_id": request_id,
            "error_code": exc.error_code,
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
        exc_info=isinstance(exc, ServiceError),
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(exclude_none=True),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors."""
    request_id = getattr(request.state, "request_id", None)

    errors = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]

    error_response = ErrorResponse(
        error="Validation failed",
        error_code="VALIDATION_ERROR",
        request_id=request_id,
        details={"validation_errors": errors},
    )

    logger.warning(
        "Validation error",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "errors": errors,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response.model_dump(exclude_none=True),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle standard HTTP exceptions."""
    if exc.detail:
        error_message = str(exc.detail)
    else:
        try:
            error_message = HTTPStatus(exc.status_code).phrase
        except ValueError:
            error_message = "HTTP error occurred"

    error_response = ErrorResponse(
        error=error_message,
        error_code=f"HTTP_{exc.status_code}",
        request_id=getattr(request.state, "request_id", None),
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(exclude_none=True),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    request_id = getattr(request.state, "request_id", None)

    logger.error(
        "Unexpected error",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
        },
        exc_info=True,
    )

    # Don't expose internal errors to users
    error_response = ErrorResponse(
        error="An internal error occurred",
        error_code="INTERNAL_ERROR",
        request_id=request_id,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.model_dump(exclude_none=True),
    )
