from __future__ import annotations

"""
Global exception handlers for the FastAPI application.

This module contains centralized handlers for verigate exceptions,
translating them into appropriate HTTP responses.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette import status
from structlog import get_logger

from verigate.core.exceptions import (
    ConfigurationError,
    RateLimitExceededError,
    StoreUnavailableError,
    SubjectNotFoundError,
    VerigateError,
)

__all__ = [
    "rate_limit_exceeded_error_handler",
    "store_unavailable_error_handler",
    "subject_not_found_error_handler",
    "configuration_error_handler",
    "verigate_error_handler",
    "register_exception_handlers",
]

logger = get_logger(__name__)


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def rate_limit_exceeded_error_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    """Handles `RateLimitExceededError`, returning a `429 Too Many Requests`.

    The rate limit headers computed by the guard travel on the exception and
    are attached to the response, including `Retry-After`.

    Args:
        request: The incoming `Request` object.
        exc: The `RateLimitExceededError` instance.

    Returns:
        A `JSONResponse` with a 429 status code, error detail and retry hint.
    """
    logger.warning(
        "rate_limit_exceeded",
        client_ip=_client_host(request),
        path=request.url.path,
        retry_after=exc.retry_after,
    )
    headers = dict(exc.headers)
    headers.setdefault("Retry-After", str(exc.retry_after))
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"detail": exc.message, "retry_after": exc.retry_after},
        headers=headers,
    )


async def store_unavailable_error_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    """Handles `StoreUnavailableError`, returning a `503 Service Unavailable`.

    The response is generic; store details stay in the logs.
    """
    logger.error("store_unavailable", path=request.url.path, error=exc.code)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Service temporarily unavailable. Please try again later."},
    )


async def subject_not_found_error_handler(request: Request, exc: SubjectNotFoundError) -> JSONResponse:
    """Handles `SubjectNotFoundError`, returning a `404 Not Found`."""
    logger.info("subject_not_found", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": exc.message},
    )


async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    """Handles `ConfigurationError`, returning a `500 Internal Server Error`."""
    logger.error("configuration_error", path=request.url.path, error=exc.message)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


async def verigate_error_handler(request: Request, exc: VerigateError) -> JSONResponse:
    """Handles any other `VerigateError`, returning a `400 Bad Request`."""
    logger.warning("verigate_error", path=request.url.path, error=exc.code)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": exc.message, "code": exc.code},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Registers all custom exception handlers with the FastAPI application.

    Args:
        app: The `FastAPI` application instance.
    """
    app.add_exception_handler(RateLimitExceededError, rate_limit_exceeded_error_handler)
    app.add_exception_handler(StoreUnavailableError, store_unavailable_error_handler)
    app.add_exception_handler(SubjectNotFoundError, subject_not_found_error_handler)
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    app.add_exception_handler(VerigateError, verigate_error_handler)
