"""
SiteTree CMS Application Package

This package contains the FastAPI application components: routes,
authentication, error handling and middleware.
"""

from .error_handlers import register_exception_handlers
from .exceptions import (
    AkismetServiceError,
    AuthenticationError,
    CMSException,
    ConflictError,
    DatabaseError,
    ErrorCode,
    ExternalServiceError,
    PageNotFound,
    PermissionFailure,
    ResourceNotFoundError,
    ValidationError,
    VersionNotFound,
)

__version__ = "1.0.0"

__all__ = [
    # Exception classes
    "CMSException",
    "ValidationError",
    "AuthenticationError",
    "PermissionFailure",
    "ResourceNotFoundError",
    "PageNotFound",
    "VersionNotFound",
    "ConflictError",
    "ExternalServiceError",
    "AkismetServiceError",
    "DatabaseError",
    "ErrorCode",
    # Error handlers
    "register_exception_handlers",
]
