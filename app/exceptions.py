"""
Custom exception classes for the SiteTree CMS service.

Every exception maps to an HTTP status code. All of them inherit from
CMSException so the error handlers can format responses consistently.

Exception Hierarchy:
    CMSException (base)
    ├── ValidationError (400)
    ├── AuthenticationError (401)
    ├── PermissionFailure (403)
    ├── ResourceNotFoundError (404)
    │   ├── PageNotFound
    │   └── VersionNotFound
    ├── ConflictError (409)
    ├── ExternalServiceError (502)
    │   └── AkismetServiceError
    └── DatabaseError (500)
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """
    Machine-readable identifiers for error conditions.
    """

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    UNKNOWN_FRAGMENT = "UNKNOWN_FRAGMENT"

    # Authentication errors (401)
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    INVALID_API_KEY = "INVALID_API_KEY"

    # Authorization errors (403)
    PERMISSION_DENIED = "PERMISSION_DENIED"

    # Resource errors (404)
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    PAGE_NOT_FOUND = "PAGE_NOT_FOUND"
    VERSION_NOT_FOUND = "VERSION_NOT_FOUND"
    REPORT_NOT_FOUND = "REPORT_NOT_FOUND"

    # Conflict errors (409)
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    ALREADY_LATEST_VERSION = "ALREADY_LATEST_VERSION"

    # External service errors (502)
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    AKISMET_ERROR = "AKISMET_ERROR"

    # Database errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"


class CMSException(Exception):
    """
    Base exception class for all CMS errors.

    Attributes:
        message: Human-readable error message (sanitized for external display).
        error_code: Machine-readable error code from ErrorCode enum.
        status_code: HTTP status code to return.
        details: Additional context about the error (optional).
        internal_message: Detailed message for logging (not exposed to clients).
    """

    status_code: int = 500
    default_error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        self.internal_message = internal_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to a dictionary for API response.
        """
        response = {
            "success": False,
            "error": self.message,
            "error_code": self.error_code.value,
        }
        if self.details:
            response["details"] = self.details
        return response

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code.value!r}, "
            f"status_code={self.status_code})"
        )


# =============================================================================
# Validation Errors (400 Bad Request)
# =============================================================================

class ValidationError(CMSException):
    """
    Raised when request data fails validation.

    Use this for:
    - Missing URL parameters (such as the version of EditForm)
    - Unknown PJAX fragments
    - Malformed request bodies
    """

    status_code = 400
    default_error_code = ErrorCode.VALIDATION_ERROR
    default_message = "Invalid request data"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            str_value = str(value)
            details["value"] = str_value[:100] + "..." if len(str_value) > 100 else str_value

        super().__init__(
            message=message,
            error_code=error_code or self.default_error_code,
            details=details,
            internal_message=internal_message,
        )


# =============================================================================
# Authentication Errors (401 Unauthorized)
# =============================================================================

class AuthenticationError(CMSException):
    """
    Raised when the member cannot be identified.
    """

    status_code = 401
    default_error_code = ErrorCode.AUTHENTICATION_REQUIRED
    default_message = "Authentication required"


# =============================================================================
# Permission Errors (403 Forbidden)
# =============================================================================

class PermissionFailure(CMSException):
    """
    Raised when the member lacks a permission code or may not view a page.
    """

    status_code = 403
    default_error_code = ErrorCode.PERMISSION_DENIED
    default_message = "Permission denied"

    def __init__(
        self,
        message: Optional[str] = None,
        required_permission: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = details or {}
        if required_permission:
            details["required_permission"] = required_permission

        super().__init__(
            message=message,
            error_code=error_code or self.default_error_code,
            details=details,
            internal_message=internal_message,
        )


# =============================================================================
# Resource Not Found Errors (404 Not Found)
# =============================================================================

class ResourceNotFoundError(CMSException):
    """
    Raised when a requested resource does not exist.
    """

    status_code = 404
    default_error_code = ErrorCode.RESOURCE_NOT_FOUND
    default_message = "Resource not found"

    def __init__(
        self,
        message: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = details or {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = str(resource_id)[:36]

        super().__init__(
            message=message,
            error_code=error_code or self.default_error_code,
            details=details,
            internal_message=internal_message,
        )


class PageNotFound(ResourceNotFoundError):
    default_error_code = ErrorCode.PAGE_NOT_FOUND
    default_message = "Page not found"

    def __init__(self, page_id: int, message: Optional[str] = None):
        super().__init__(
            message=message or f"Page {page_id} not found",
            resource_type="page",
            resource_id=str(page_id),
        )


class VersionNotFound(ResourceNotFoundError):
    default_error_code = ErrorCode.VERSION_NOT_FOUND
    default_message = "Version not found"

    def __init__(self, page_id: int, version: int):
        super().__init__(
            message=f"Can't find version {version} of page {page_id}",
            resource_type="page_version",
            resource_id=f"{page_id}/{version}",
        )


# =============================================================================
# Conflict Errors (409 Conflict)
# =============================================================================

class ConflictError(CMSException):
    """
    Raised when the request conflicts with the current state, for example
    rolling back to the version that is already the latest.
    """

    status_code = 409
    default_error_code = ErrorCode.RESOURCE_CONFLICT
    default_message = "Resource conflict"


# =============================================================================
# External Service Errors (502 Bad Gateway)
# =============================================================================

class ExternalServiceError(CMSException):
    """
    Base class for external service failures.
    """

    status_code = 502
    default_error_code = ErrorCode.EXTERNAL_SERVICE_ERROR
    default_message = "External service error"

    def __init__(
        self,
        message: Optional[str] = None,
        service_name: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = details or {}
        if service_name:
            details["service"] = service_name

        self.original_error = original_error

        super().__init__(
            message=message,
            error_code=error_code or self.default_error_code,
            details=details,
            internal_message=internal_message or (str(original_error) if original_error else None),
        )


class AkismetServiceError(ExternalServiceError):
    """Raised when the Akismet spam service fails."""

    default_error_code = ErrorCode.AKISMET_ERROR
    default_message = "Spam filtering service temporarily unavailable"

    def __init__(
        self,
        message: Optional[str] = None,
        internal_message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            service_name="akismet",
            internal_message=internal_message,
            original_error=original_error,
        )


# =============================================================================
# Database Errors (500 Internal Server Error)
# =============================================================================

class DatabaseError(CMSException):
    """
    Raised when database operations fail.

    Database errors never expose internal details to clients.
    """

    status_code = 500
    default_error_code = ErrorCode.DATABASE_ERROR
    default_message = "A database error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        operation: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        internal_message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.original_error = original_error

        super().__init__(
            message=message or self.default_message,
            error_code=error_code or self.default_error_code,
            details={},
            internal_message=internal_message or (
                f"Database operation '{operation}' failed: {original_error}"
                if operation and original_error
                else None
            ),
        )


def get_safe_error_message(exc: Exception) -> str:
    """
    Get a safe error message that doesn't leak sensitive information.
    """
    if isinstance(exc, CMSException):
        return exc.message
    return "An unexpected error occurred. Please try again later."
