"""
Core module for Publication Search.

Provides:
- Unified exception hierarchy
- Async utilities for source fan-out
"""

from .async_utils import (
    CircuitBreaker,
    RateLimiter,
    gather_settled,
)
from .exceptions import (
    APIError,
    CatastrophicFailureError,
    ConfigurationError,
    DataError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    InvalidParameterError,
    InvalidQueryError,
    MalformedRecordError,
    NetworkError,
    PublicationSearchError,
    RateLimitError,
    SourceUnavailableError,
    ValidationError,
    is_retryable_error,
)

__all__ = [
    # Exceptions
    "PublicationSearchError",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory",
    "APIError",
    "RateLimitError",
    "NetworkError",
    "SourceUnavailableError",
    "CatastrophicFailureError",
    "ValidationError",
    "InvalidQueryError",
    "InvalidParameterError",
    "DataError",
    "MalformedRecordError",
    "ConfigurationError",
    "is_retryable_error",
    # Async utilities
    "RateLimiter",
    "gather_settled",
    "CircuitBreaker",
]
