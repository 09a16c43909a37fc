# =============================================================================
# app/exceptions.py - Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
# Domain errors live in core/errors.py (no FastAPI there); this module
# turns them into JSON responses with the status code each error carries.
# =============================================================================

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.errors import FulfillmentError

logger = logging.getLogger(__name__)


def error_body(exc: FulfillmentError) -> dict[str, Any]:
    """
    API response dict for a domain error.

    Returns structured error with:
    - detail: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context (if any)
    """
    result: dict[str, Any] = {
        "detail": exc.message,
        "code": exc.code,
    }
    if exc.suggestion:
        result["suggestion"] = exc.suggestion
    if exc.details:
        result["details"] = exc.details
    return result


async def fulfillment_exception_handler(
    request: Request,
    exc: FulfillmentError
) -> JSONResponse:
    """Convert FulfillmentError to JSON response."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc)
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    Handle Pydantic request validation errors.

    Converts validation errors to the same shape as domain errors.
    """
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "code": "VALIDATION_ERROR",
            "errors": [
                {"loc": list(err.get("loc", [])), "msg": err.get("msg", "")}
                for err in exc.errors()
            ],
        }
    )
