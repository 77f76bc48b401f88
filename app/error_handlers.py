"""
FastAPI exception handlers for the SiteTree CMS service.

This module provides centralized exception handling that:
- Maps CMS exceptions (and page store errors) to HTTP responses
- Handles Pydantic validation errors with clean messages
- Reports unexpected exceptions to Sentry
- Prevents sensitive information leakage

All error responses follow the format:
{
    "success": false,
    "error": "Human-readable message",
    "error_code": "MACHINE_READABLE_CODE",
    "details": {}  # Optional additional context
}
"""

import logging
import re
import uuid
from typing import Any, Dict, List, Optional

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from cms.config import get_settings
from cms.pages.permissions import PermissionDenied
from cms.pages.storage import (
    PageNotFoundError,
    PageStoreError,
    RollbackConflictError,
    VersionNotFoundError,
)

from .exceptions import (
    CMSException,
    ConflictError,
    ErrorCode,
    PageNotFound,
    PermissionFailure,
    VersionNotFound,
)

logger = logging.getLogger(__name__)

# Patterns that indicate sensitive information
SENSITIVE_PATTERNS = [
    r"api[_-]?key",
    r"secret",
    r"password",
    r"token",
    r"credential",
    r"private",
    r"bearer",
    r"session",
    r"cookie",
    # Database connection strings
    r"postgres://",
    r"postgresql://",
    # File paths that might be sensitive
    r"/home/",
    r"/Users/",
    r"/var/",
    r"/etc/",
    # Environment variable references
    r"\$\{?\w+\}?",
]

SENSITIVE_REGEX = re.compile(
    "|".join(SENSITIVE_PATTERNS),
    re.IGNORECASE
)

SAFE_DETAIL_KEYS = {
    "field", "value", "resource_type", "resource_id",
    "required_permission", "service", "errors", "error_reference",
    "sentry_event_id", "fragments",
}


def sanitize_error_message(message: str) -> str:
    """
    Remove potentially sensitive information from error messages.
    """
    if not message:
        return message

    if SENSITIVE_REGEX.search(message):
        return "An error occurred while processing your request"

    # Remove any file paths
    message = re.sub(r'[/\\][\w./\\-]+\.\w+', '[path]', message)

    # Remove IP addresses
    message = re.sub(r'\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b', '[ip]', message)

    if len(message) > 500:
        message = message[:500] + "..."

    return message


def sanitize_details(details: Dict[str, Any]) -> Dict[str, Any]:
    """
    Keep only whitelisted detail keys with primitive (or list) values.
    """
    if not details:
        return {}

    sanitized = {}
    for key, value in details.items():
        if key not in SAFE_DETAIL_KEYS:
            continue

        if isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        elif isinstance(value, (int, float, bool)):
            sanitized[key] = value
        elif isinstance(value, list):
            sanitized[key] = [
                v for v in value
                if isinstance(v, (str, int, float, bool, dict))
            ][:10]

    return sanitized


def format_pydantic_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """
    Format Pydantic validation errors into a clean, consistent format.
    """
    formatted = []
    for error in errors:
        loc = error.get("loc", [])
        field_parts = [str(p) for p in loc if p not in ("body", "query", "path")]
        field = ".".join(field_parts) if field_parts else "request"

        error_type = error.get("type", "")
        msg = error.get("msg", "Invalid value")

        if error_type == "missing":
            msg = f"Field '{field}' is required"
        elif error_type == "string_type":
            msg = f"Field '{field}' must be a string"
        elif error_type in ("int_type", "int_parsing"):
            msg = f"Field '{field}' must be an integer"
        elif error_type == "bool_type":
            msg = f"Field '{field}' must be a boolean"
        elif "enum" in error_type.lower():
            msg = f"Field '{field}' has an invalid value"
        else:
            msg = sanitize_error_message(msg)

        formatted.append({
            "field": field,
            "message": msg,
        })

    return formatted[:10]


def create_error_response(
    status_code: int,
    error: str,
    error_code: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """
    Create a standardized error response.
    """
    content = {
        "success": False,
        "error": sanitize_error_message(error),
        "error_code": error_code,
    }

    if details:
        sanitized_details = sanitize_details(details)
        if sanitized_details:
            content["details"] = sanitized_details

    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=headers,
    )


def report_to_sentry(
    exc: Exception,
    request: Optional[Request] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """
    Report an exception to Sentry with request context.

    Returns:
        Sentry event ID if reported, None otherwise.
    """
    try:
        client = sentry_sdk.get_client()
        if not client.is_active():
            return None

        with sentry_sdk.new_scope() as scope:
            if request:
                scope.set_context("request", {
                    "method": request.method,
                    "url": str(request.url),
                    "path": request.url.path,
                })

                member_id = getattr(request.state, "member_id", None)
                if member_id:
                    scope.set_user({"id": member_id})

                request_id = request.headers.get("X-Request-ID")
                if request_id:
                    scope.set_tag("request_id", request_id)

            if extra_context:
                scope.set_context("extra", extra_context)

            return sentry_sdk.capture_exception(exc)

    except Exception as e:
        logger.warning(f"Failed to report exception to Sentry: {e}")
        return None


def to_cms_exception(exc: Exception) -> CMSException:
    """Translate page store and permission errors into CMS exceptions."""
    if isinstance(exc, PermissionDenied):
        return PermissionFailure(internal_message=str(exc))
    if isinstance(exc, VersionNotFoundError):
        return VersionNotFound(exc.page_id, exc.version)
    if isinstance(exc, PageNotFoundError):
        return PageNotFound(exc.page_id)
    if isinstance(exc, RollbackConflictError):
        return ConflictError(
            message=f"Version {exc.version} is already the latest version",
            error_code=ErrorCode.ALREADY_LATEST_VERSION,
        )
    return CMSException(internal_message=str(exc))


# =============================================================================
# Exception Handlers
# =============================================================================

async def cms_exception_handler(
    request: Request,
    exc: CMSException,
) -> JSONResponse:
    """
    Handle CMSException and subclasses, logging internal details.
    """
    log_message = f"{exc.__class__.__name__}: {exc.message}"
    if exc.internal_message:
        log_message += f" | Internal: {exc.internal_message}"

    if exc.status_code >= 500:
        logger.error(log_message, exc_info=True)
        report_to_sentry(exc, request)
    elif exc.status_code >= 400:
        logger.warning(log_message)
    else:
        logger.info(log_message)

    return create_error_response(
        status_code=exc.status_code,
        error=exc.message,
        error_code=exc.error_code.value,
        details=exc.details,
    )


async def domain_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Handle errors raised by the cms package (page store, permissions).
    """
    return await cms_exception_handler(request, to_cms_exception(exc))


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle FastAPI request validation errors.
    """
    errors = format_pydantic_errors(exc.errors())

    logger.warning(
        f"Validation error on {request.method} {request.url.path}: "
        f"{len(errors)} error(s)"
    )

    if len(errors) == 1:
        error_message = errors[0]["message"]
    else:
        error_message = f"Validation failed with {len(errors)} error(s)"

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        error=error_message,
        error_code=ErrorCode.VALIDATION_ERROR.value,
        details={"errors": errors},
    )


async def pydantic_validation_handler(
    request: Request,
    exc: PydanticValidationError,
) -> JSONResponse:
    """
    Handle direct Pydantic ValidationError (for example from form posts).
    """
    errors = format_pydantic_errors(exc.errors())

    logger.warning(
        f"Pydantic validation error on {request.method} {request.url.path}: "
        f"{len(errors)} error(s)"
    )

    if len(errors) == 1:
        error_message = errors[0]["message"]
    else:
        error_message = f"Validation failed with {len(errors)} error(s)"

    return create_error_response(
        status_code=status.HTTP_400_BAD_REQUEST,
        error=error_message,
        error_code=ErrorCode.VALIDATION_ERROR.value,
        details={"errors": errors},
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """
    Convert HTTPException to the standard error format.
    """
    status_code_mapping = {
        400: ErrorCode.VALIDATION_ERROR,
        401: ErrorCode.AUTHENTICATION_REQUIRED,
        403: ErrorCode.PERMISSION_DENIED,
        404: ErrorCode.RESOURCE_NOT_FOUND,
        405: ErrorCode.VALIDATION_ERROR,
        409: ErrorCode.RESOURCE_CONFLICT,
        422: ErrorCode.VALIDATION_ERROR,
        500: ErrorCode.INTERNAL_ERROR,
        502: ErrorCode.EXTERNAL_SERVICE_ERROR,
    }

    error_code = status_code_mapping.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {detail}")
    elif exc.status_code >= 400:
        logger.warning(f"HTTP {exc.status_code}: {detail}")

    return create_error_response(
        status_code=exc.status_code,
        error=detail,
        error_code=error_code.value,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler: log with traceback, report to Sentry and return a
    generic message.
    """
    error_reference = str(uuid.uuid4())[:8]

    logger.error(
        f"Unhandled exception [ref:{error_reference}] on "
        f"{request.method} {request.url.path}: {exc}",
        exc_info=True,
    )

    event_id = report_to_sentry(
        exc,
        request,
        extra_context={"error_reference": error_reference}
    )

    if not get_settings().is_production:
        details = {"error_reference": error_reference}
        if event_id:
            details["sentry_event_id"] = event_id
        return create_error_response(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error=f"Internal server error: {type(exc).__name__}",
            error_code=ErrorCode.INTERNAL_ERROR.value,
            details=details,
        )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error="An unexpected error occurred. Please try again later.",
        error_code=ErrorCode.INTERNAL_ERROR.value,
        details={"error_reference": error_reference},
    )


# =============================================================================
# Handler Registration
# =============================================================================

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI application.
    """
    app.add_exception_handler(CMSException, cms_exception_handler)
    app.add_exception_handler(PageStoreError, domain_exception_handler)
    app.add_exception_handler(PermissionDenied, domain_exception_handler)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, pydantic_validation_handler)

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.add_exception_handler(Exception, unhandled_exception_handler)

    logger.info("Exception handlers registered successfully")
