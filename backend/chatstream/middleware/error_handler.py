"""
Global error handling middleware.

WHAT: Translate exceptions to appropriate HTTP responses
WHY: Consistent error responses with proper status codes
HOW: FastAPI exception handlers for provider and validation errors
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from datetime import datetime

from ..llm.types import (
    ProviderTimeoutError,
    ProviderUnavailableError,
    ProviderResponseError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


async def provider_timeout_handler(request: Request, exc: ProviderTimeoutError):
    """
    Handle ProviderTimeoutError.

    WHAT: LLM request timed out
    WHY: Provider may be slow or unresponsive
    HOW: Return 503 service unavailable
    """
    logger.debug(f"Provider timeout: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "LLM_TIMEOUT",
            "message": str(exc),
            "detail": "LLM provider request timed out"
        }
    )


async def provider_unavailable_handler(request: Request, exc: ProviderUnavailableError):
    """
    Handle ProviderUnavailableError.

    WHAT: Provider is not reachable
    WHY: Service may be down or base URL misconfigured
    HOW: Return 503 service unavailable
    """
    logger.debug(f"Provider unavailable: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "LLM_UNAVAILABLE",
            "message": str(exc),
            "detail": "LLM provider is not reachable. Check the configured base URL."
        }
    )


async def provider_response_error_handler(request: Request, exc: ProviderResponseError):
    """
    Handle ProviderResponseError.

    WHAT: Provider answered with an error status
    WHY: Bad key, unknown model, rate limit, upstream failure
    HOW: Return 502 bad gateway carrying the upstream status
    """
    logger.debug(f"Provider response error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "error": "LLM_BAD_GATEWAY",
            "message": str(exc),
            "detail": f"LLM provider returned HTTP {exc.status_code}"
        }
    )


async def value_error_handler(request: Request, exc: ValueError):
    """Unknown provider and similar caller errors."""
    logger.warning(f"Bad request: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "BAD_REQUEST",
            "message": str(exc),
            "detail": None
        }
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Handle FastAPI RequestValidationError.

    WHAT: Request validation failed
    WHY: Invalid request payload
    HOW: Return 400 with field errors
    """
    logger.warning(f"Validation error: {exc.errors()}")

    # Clean up error details to be JSON serializable
    cleaned_errors = []
    for error in exc.errors():
        cleaned_error = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
        }
        if "ctx" in error:
            cleaned_error["ctx"] = {
                k: str(v) if isinstance(v, Exception) else v
                for k, v in error["ctx"].items()
            }
        cleaned_errors.append(cleaned_error)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "detail": cleaned_errors,
            "timestamp": datetime.now().isoformat()
        }
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(ProviderTimeoutError, provider_timeout_handler)
    app.add_exception_handler(ProviderUnavailableError, provider_unavailable_handler)
    app.add_exception_handler(ProviderResponseError, provider_response_error_handler)

    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)

    logger.info("Exception handlers registered")
