"""Utility modules for the document upload actions."""

from .errors import (
    IntegrationError,
    RetriableError,
    TerminalError,
    RemoteAPIError,
    ValidationError,
    NoDataError,
    AuthenticationError,
    SealError,
    CallbackError,
    PartialWriteError,
)
from .retry import (
    RetryPolicy,
    RetryExecutor,
    status_code_of,
)
from .sanitize import sanitize_error, sanitize_string

__all__ = [
    # Error classes
    "IntegrationError",
    "RetriableError",
    "TerminalError",
    "RemoteAPIError",
    "ValidationError",
    "NoDataError",
    "AuthenticationError",
    "SealError",
    "CallbackError",
    "PartialWriteError",
    # Retry
    "RetryPolicy",
    "RetryExecutor",
    "status_code_of",
    # Sanitization
    "sanitize_error",
    "sanitize_string",
]
