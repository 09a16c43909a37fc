# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application:
# - UTC time helpers and period keys (day / ISO week / month)
# - ApplicationError base class
# =============================================================================

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any


# =============================================================================
# Time Utilities
# =============================================================================

def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_key(value: datetime | date) -> str:
    """Period key for a calendar day: 'YYYY-MM-DD'."""
    if isinstance(value, datetime):
        value = ensure_utc(value).date()
    return value.isoformat()


def week_key(value: datetime | date) -> str:
    """
    ISO week period key: 'YYYY-Www'.

    Example:
        week_key(date(2026, 10, 19))  # "2026-W43"
    """
    if isinstance(value, datetime):
        value = ensure_utc(value).date()
    iso_year, iso_week, _ = value.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def month_key(value: datetime | date) -> str:
    """Month period key: 'YYYY-MM'."""
    if isinstance(value, datetime):
        value = ensure_utc(value).date()
    return f"{value.year}-{value.month:02d}"


def previous_month_key(value: datetime | date) -> str:
    """Key of the month before the one containing `value`."""
    if isinstance(value, datetime):
        value = ensure_utc(value).date()
    first_of_month = value.replace(day=1)
    return month_key(first_of_month - timedelta(days=1))


def week_bounds(key: str) -> tuple[date, date]:
    """
    First (Monday) and last (Sunday) day of an ISO week key.

    Raises:
        ValueError: If the key is not in 'YYYY-Www' form
    """
    year_part, week_part = key.split("-W")
    monday = date.fromisocalendar(int(year_part), int(week_part), 1)
    return monday, monday + timedelta(days=6)


def month_bounds(key: str) -> tuple[date, date]:
    """
    First and last day of a 'YYYY-MM' month key.

    Raises:
        ValueError: If the key is not in 'YYYY-MM' form
    """
    year, month = (int(part) for part in key.split("-"))
    first = date(year, month, 1)
    next_first = date(year + (month // 12), (month % 12) + 1, 1)
    return first, next_first - timedelta(days=1)


# =============================================================================
# Base Error Class
# =============================================================================

class ApplicationError(Exception):
    """
    Base error class for application-specific errors.

    Provides actionable error messages following the principle:
    "Errors should tell HOW to fix, not just WHAT failed."

    Attributes:
        code: Error code for categorization
        message: Human-readable error message
        suggestion: Actionable suggestion for fixing the error
        details: Additional context for debugging

    Example:
        class MyServiceError(ApplicationError):
            def __init__(self, message: str, **kwargs):
                super().__init__(message, code="MY_SERVICE_ERROR", **kwargs)
    """

    def __init__(
        self,
        message: str,
        code: str = "APPLICATION_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
            "details": self.details,
        }
