"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    ValidationError,
    ExternalServiceError,
    DatabaseError,

    # Imports
    UnknownChannelError,
    InvalidMonthError,
    ListingFileEmptyError,
    UpstreamUnavailableError,

    # Learning
    LearnValidationError,

    # KPI
    InvalidSourceError,
)

__all__ = [
    # Base
    "AppError",
    "ValidationError",
    "ExternalServiceError",
    "DatabaseError",

    # Imports
    "UnknownChannelError",
    "InvalidMonthError",
    "ListingFileEmptyError",
    "UpstreamUnavailableError",

    # Learning
    "LearnValidationError",

    # KPI
    "InvalidSourceError",
]
