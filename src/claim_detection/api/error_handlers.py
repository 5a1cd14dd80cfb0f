"""
FastAPI exception handlers for structured error responses.

Maps domain exceptions to appropriate HTTP status codes and formats.
Handlers are looked up along the exception's MRO, so the most specific
entry in EXCEPTION_HANDLERS wins.
"""

import logging
from datetime import datetime, timezone

from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError

from claim_detection.llm.exceptions import (
    BackendNotReadyError,
    CompletionClientError,
    CompletionConfigurationError,
    CompletionTimeoutError,
)
from claim_detection.mail.exceptions import MailSourceConfigurationError, MailSourceError
from claim_detection.persistence.exceptions import RepositoryError
from claim_detection.pipeline.exceptions import SourceSelectionError, UnsupportedBackendError

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _details(exc: Exception) -> dict:
    return getattr(exc, "details", {}) or {}


async def service_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle a backend that is not ready or not configured.

    Maps to 503 Service Unavailable.
    """
    logger.error(
        "Service unavailable",
        extra={"error_type": type(exc).__name__, "error": str(exc), "details": _details(exc)},
    )

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "service_unavailable",
            "message": str(exc),
            "details": _details(exc),
            "timestamp": _timestamp(),
        },
    )


async def upstream_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle Mail Source and Completion Service failures.

    Maps to 502 Bad Gateway (upstream service failed).
    """
    logger.error(
        "Upstream service error",
        extra={"error_type": type(exc).__name__, "error": str(exc)},
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "error": "upstream_failed",
            "message": str(exc),
            "timestamp": _timestamp(),
        },
    )


async def completion_timeout_handler(request: Request, exc: CompletionTimeoutError) -> JSONResponse:
    """
    Handle completion timeouts.

    Maps to 504 Gateway Timeout (upstream service timeout).
    """
    logger.error(
        "Completion timeout",
        extra={"error": str(exc)},
    )

    return JSONResponse(
        status_code=status.HTTP_504_GATEWAY_TIMEOUT,
        content={
            "error": "completion_timeout",
            "message": "Completion service request timed out",
            "timestamp": _timestamp(),
        },
    )


async def storage_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle Redis and repository errors.

    Maps to 503 Service Unavailable.
    """
    logger.error(
        "Storage error",
        extra={"error_type": type(exc).__name__, "error": str(exc)},
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "storage_unavailable",
            "message": "Claim store is unavailable",
            "timestamp": _timestamp(),
        },
    )


async def unsupported_backend_handler(request: Request, exc: UnsupportedBackendError) -> JSONResponse:
    """
    Handle a request for a backend that is not configured.

    Maps to 400 Bad Request (client error).
    """
    logger.warning(
        "Unsupported backend",
        extra={"error": str(exc), "details": exc.details},
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "unsupported_backend",
            "message": str(exc),
            "details": exc.details,
            "timestamp": _timestamp(),
        },
    )


async def pydantic_validation_error_handler(
    request: Request, exc: PydanticValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors raised outside request parsing.

    Maps to 400 Bad Request (client error).
    """
    logger.warning(
        "Invalid request format",
        extra={"errors": exc.errors()},
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "invalid_request",
            "message": "Request validation failed",
            "details": exc.errors(include_url=False, include_context=False),
            "timestamp": _timestamp(),
        },
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected errors.

    Maps to 500 Internal Server Error.
    """
    logger.exception(
        "Unexpected error",
        extra={"error_type": type(exc).__name__},
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "timestamp": _timestamp(),
        },
    )


# Exception handler mapping for FastAPI app.add_exception_handler()
EXCEPTION_HANDLERS = {
    BackendNotReadyError: service_unavailable_handler,
    CompletionConfigurationError: service_unavailable_handler,
    MailSourceConfigurationError: service_unavailable_handler,
    CompletionTimeoutError: completion_timeout_handler,
    CompletionClientError: upstream_error_handler,
    MailSourceError: upstream_error_handler,
    SourceSelectionError: upstream_error_handler,
    RepositoryError: storage_error_handler,
    RedisError: storage_error_handler,
    UnsupportedBackendError: unsupported_backend_handler,
    PydanticValidationError: pydantic_validation_error_handler,
    Exception: generic_error_handler,
}
