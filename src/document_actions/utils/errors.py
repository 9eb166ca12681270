"""Custom exception classes for the document upload actions.

These exceptions classify failures into retriable and terminal categories.
Remote failures carry the vendor's HTTP status code so the retry executor can
classify them, and the vendor's own error messages so responses can surface
them to the user.
"""

from typing import Optional, Dict, Any, List


class IntegrationError(Exception):
    """Base exception for all integration errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        retriable: bool = True,
        status_code: Optional[int] = None,
    ):
        """Initialize integration error.

        Args:
            message: Error message
            details: Additional error details
            retriable: Whether this error is retriable
            status_code: HTTP status code reported by the remote side, if any
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.retriable = retriable
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization.

        Returns:
            Dictionary representation of the error
        """
        return {
            "message": self.message,
            "details": self.details,
            "retriable": self.retriable,
            "status_code": self.status_code,
            "error_type": self.__class__.__name__,
        }


class RetriableError(IntegrationError):
    """Exception for temporary failures that may be retried.

    Examples:
    - Network timeouts
    - Temporary token endpoint unavailability
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        retry_after: Optional[int] = None,
        status_code: Optional[int] = None,
    ):
        """Initialize retriable error.

        Args:
            message: Error message
            details: Additional error details
            retry_after: Seconds to wait before retry (for rate limits)
            status_code: HTTP status code, if any
        """
        super().__init__(message, details, retriable=True, status_code=status_code)
        self.retry_after = retry_after
        if retry_after:
            self.details["retry_after"] = retry_after


class TerminalError(IntegrationError):
    """Exception for permanent failures that should not be retried.

    Examples:
    - Invalid credentials
    - Resource not found (404)
    - Structural preconditions (failed document creation)
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, details, retriable=False, status_code=status_code)


class RemoteAPIError(IntegrationError):
    """Non-2xx response from a vendor API.

    ``errors`` holds the vendor's error entries (each with a ``message``)
    when the response body carried them. Whether it is retried is decided by
    the retry policy from ``status_code``, not by this class.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            details,
            retriable=status_code in RETRIABLE_STATUS_CODES,
            status_code=status_code,
        )
        self.errors = errors or []

    @property
    def vendor_message(self) -> Optional[str]:
        """First vendor-supplied error message, if any."""
        if self.errors and self.errors[0].get("message"):
            return self.errors[0]["message"]
        return None


class ValidationError(TerminalError):
    """Exception for validation errors.

    Used when:
    - Required form fields are missing (filename, destination)
    - The tabular attachment is malformed
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize validation error.

        Args:
            message: Error message
            field: Field that failed validation
            details: Additional error details
        """
        details = dict(details or {})
        if field:
            details["field"] = field
        super().__init__(message, details, status_code=400)


class NoDataError(TerminalError):
    """The attachment parsed cleanly but held no rows."""

    def __init__(self, message: str = "No data to insert"):
        super().__init__(message)


class AuthenticationError(TerminalError):
    """Exception for authentication/authorization errors.

    Used when:
    - OAuth tokens are invalid/expired and cannot be refreshed
    - Credentials were obtained for a different redirect URI
    """

    def __init__(
        self,
        message: str = "Authentication failed",
        requires_reauth: bool = True,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        """Initialize authentication error.

        Args:
            message: Error message
            requires_reauth: Whether user needs to re-authenticate
            details: Additional error details
            status_code: HTTP status code, if any
        """
        details = dict(details or {})
        details["requires_reauth"] = requires_reauth
        super().__init__(message, details, status_code=status_code)


class SealError(TerminalError):
    """Sealing or unsealing OAuth handshake state failed.

    Always a configuration problem (missing or rotated cipher secret, or a
    tampered token), never a vendor-side one.
    """


class CallbackError(TerminalError):
    """Posting credentials back to the orchestrator failed."""


class PartialWriteError(IntegrationError):
    """A remote write failed after the destination document was created.

    The document is left as-is; nothing is rolled back.
    """

    def __init__(self, document_id: str, cause: BaseException):
        cause_message = getattr(cause, "vendor_message", None) or str(cause)
        super().__init__(
            f"{cause_message} (document {document_id} may be incomplete)",
            details={"document_id": document_id, **getattr(cause, "details", {})},
            retriable=False,
            status_code=getattr(cause, "status_code", None),
        )
        self.document_id = document_id
        self.errors = list(getattr(cause, "errors", []))

    @property
    def vendor_message(self) -> Optional[str]:
        return self.message if self.errors else None


# Transient codes: too-many-requests, conflict, internal, service-unavailable,
# gateway-timeout.
RETRIABLE_STATUS_CODES = frozenset({429, 409, 500, 503, 504})
