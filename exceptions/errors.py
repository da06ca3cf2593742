"""
Custom exception classes for the application.

Structural problems in uploaded files are counted, not raised. Ambiguous
or unmatched titles are classified outcomes, not errors. Everything below
is for requests that cannot be served at all.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "UNKNOWN_CHANNEL")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# IMPORT ERRORS
# ===================

class UnknownChannelError(ValidationError):
    """Marketplace channel has no registered adapter."""

    def __init__(self, channel: str, valid: list[str]):
        super().__init__(
            code="UNKNOWN_CHANNEL",
            message=f"Unknown marketplace channel: {channel}",
            details={"provided": channel, "valid": valid}
        )


class InvalidMonthError(ValidationError):
    """Month is not YYYY-MM or YYYY-MM-DD."""

    def __init__(self, value: Optional[str]):
        super().__init__(
            code="INVALID_MONTH",
            message="Month must be given as YYYY-MM or YYYY-MM-01",
            details={"provided": value}
        )


class ListingFileEmptyError(ValidationError):
    """Uploaded listing file has no content."""

    def __init__(self, filename: Optional[str] = None):
        super().__init__(
            code="LISTING_FILE_EMPTY",
            message="Uploaded file is empty",
            details={"filename": filename}
        )


class UpstreamUnavailableError(ExternalServiceError):
    """
    A collaborator needed for the whole run (catalog, learned mappings)
    could not be read. No partial results are produced.
    """

    def __init__(self, service: str, message: str):
        super().__init__(
            service=service,
            message=f"{service} unavailable: {message}"
        )


# ===================
# LEARNING ERRORS
# ===================

class LearnValidationError(ValidationError):
    """Learned mapping request is missing a title or product."""

    def __init__(self, source_title: str, product_id: str):
        super().__init__(
            code="LEARN_INVALID_MAPPING",
            message="source_title and product_id are both required",
            details={"source_title": source_title, "product_id": product_id}
        )


# ===================
# KPI ERRORS
# ===================

class InvalidSourceError(ValidationError):
    """Audit source is not one of the KPI source tables."""

    def __init__(self, source: str, valid: list[str]):
        super().__init__(
            code="INVALID_KPI_SOURCE",
            message=f"Unknown KPI source: {source}",
            details={"provided": source, "valid": valid}
        )
