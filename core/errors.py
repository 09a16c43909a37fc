# =============================================================================
# core/errors.py - Domain Errors
# =============================================================================
# Typed failures raised by the scoring engine, journal pipeline and
# pattern jobs. Each carries the HTTP status it maps to, but nothing here
# imports FastAPI - app/exceptions.py does the rendering.
#
# | Error                | Policy                                      |
# |----------------------|---------------------------------------------|
# | ValidationError      | reject, no mutation                         |
# | AreaNotFoundError    | reject                                      |
# | ExternalServiceError | fail open, journal entry kept unscored      |
# | ConcurrencyConflict  | retried with fresh reads, then surfaced     |
# | JobError             | isolated per tenant, partial success        |
# | AuthorizationError   | rejected before any work                    |
# =============================================================================

from __future__ import annotations

from typing import Any

from lib.utils import ApplicationError


class FulfillmentError(ApplicationError):
    """
    Base exception for the fulfillment engine.

    Adds an HTTP status code on top of ApplicationError so the API layer
    can render any domain error without a lookup table.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "FULFILLMENT_ERROR",
        status_code: int | None = None,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, suggestion=suggestion, details=details)
        if status_code is not None:
            self.status_code = status_code


class ValidationError(FulfillmentError):
    """Raised when a metric, delta or confidence is outside its range."""

    status_code = 422

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details: dict[str, Any] = {}
        if field is not None:
            details["field"] = field
            details["value"] = value
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            suggestion="Metrics are 0-5, deltas -5 to 5, confidence 0-1",
            details=details,
        )


class AreaNotFoundError(FulfillmentError):
    """Raised when a life area doesn't exist for this tenant/user."""

    status_code = 404

    def __init__(self, area_id: str):
        super().__init__(
            message=f"Life area not found: {area_id}",
            code="AREA_NOT_FOUND",
            suggestion="Check the area id and that it belongs to the current user",
            details={"area_id": area_id},
        )


class ExternalServiceError(FulfillmentError):
    """Raised when the AI classification call fails or times out."""

    status_code = 502

    def __init__(
        self,
        message: str,
        service: str = "openai",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            code="EXTERNAL_SERVICE_ERROR",
            suggestion="The journal entry was saved unscored; retry analysis later",
            details={"service": service, **(details or {})},
        )
        self.service = service


class ConcurrencyConflict(FulfillmentError):
    """Raised when an area kept changing underneath every retry."""

    status_code = 409

    def __init__(self, area_id: str, attempts: int):
        super().__init__(
            message=f"Area {area_id} was modified concurrently ({attempts} attempts)",
            code="CONCURRENCY_CONFLICT",
            suggestion="Retry the request",
            details={"area_id": area_id, "attempts": attempts},
        )


class JobError(FulfillmentError):
    """A single tenant failed inside a scheduled job."""

    status_code = 500

    def __init__(self, job: str, tenant_id: str, error: str):
        super().__init__(
            message=f"{job} job failed for tenant {tenant_id}: {error}",
            code="JOB_ERROR",
            details={"job": job, "tenant_id": tenant_id, "error": error},
        )
        self.tenant_id = tenant_id


class AuthorizationError(FulfillmentError):
    """Raised when the scheduler trigger is called without a valid secret."""

    status_code = 401

    def __init__(self, message: str = "Invalid or missing scheduler secret"):
        super().__init__(
            message=message,
            code="UNAUTHORIZED",
            suggestion="Send the shared secret in the X-Scheduler-Secret header",
        )
