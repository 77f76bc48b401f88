"""
Request logging middleware for the SiteTree CMS service.

Provides:
- Automatic request/response logging
- Request ID generation and propagation
- Response time tracking
- Health check endpoint exclusion
- Correlation ID support for distributed tracing
"""

import logging
import time
import uuid
from typing import Callable, Optional, Set

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from cms.utils.logging import clear_request_context, set_request_context

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for structured request logging.

    - Generates unique request IDs for tracing
    - Logs request method, path, status code, and response time
    - Picks up the member ID set by the authentication dependency
    - Adds X-Request-ID and X-Response-Time headers to responses
    """

    # Paths to exclude from verbose logging
    DEFAULT_EXCLUDE_PATHS: Set[str] = frozenset({
        "/docs",
        "/openapi.json",
        "/redoc",
        "/favicon.ico",
    })

    # Paths that should only log errors (never INFO)
    ERROR_ONLY_PATHS: Set[str] = frozenset({
        "/",
        "/health",
    })

    def __init__(
        self,
        app,
        exclude_paths: Optional[Set[str]] = None,
        error_only_paths: Optional[Set[str]] = None,
    ):
        super().__init__(app)
        self.exclude_paths = exclude_paths or self.DEFAULT_EXCLUDE_PATHS
        self.error_only_paths = error_only_paths or self.ERROR_ONLY_PATHS

    def _get_request_id(self, request: Request) -> str:
        """Reuse an upstream request ID or generate a new one."""
        return (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Request-Id")
            or str(uuid.uuid4())
        )

    def _get_correlation_id(self, request: Request) -> Optional[str]:
        return (
            request.headers.get("X-Correlation-ID")
            or request.headers.get("X-Correlation-Id")
        )

    def _get_member_id(self, request: Request) -> str:
        member_id = getattr(request.state, "member_id", None)
        if member_id:
            return str(member_id)

        api_key = request.headers.get("X-API-Key")
        if api_key:
            # Truncated key for privacy
            return f"key:{api_key[:8]}..."

        return "-"

    def _get_client_ip(self, request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

        if request.client:
            return request.client.host

        return "unknown"

    def _should_log(self, path: str, status_code: int) -> bool:
        if path in self.exclude_paths:
            return False
        if path in self.error_only_paths:
            return status_code >= 400
        return True

    def _get_log_level(self, status_code: int) -> int:
        if status_code >= 500:
            return logging.ERROR
        elif status_code >= 400:
            return logging.WARNING
        else:
            return logging.INFO

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request with logging.
        """
        request_id = self._get_request_id(request)
        correlation_id = self._get_correlation_id(request)

        set_request_context(
            request_id=request_id,
            correlation_id=correlation_id,
        )

        request.state.request_id = request_id
        if correlation_id:
            request.state.correlation_id = correlation_id

        method = request.method
        path = request.url.path
        query_string = str(request.query_params) if request.query_params else ""
        client_ip = self._get_client_ip(request)

        start_time = time.perf_counter()

        try:
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000

            member_id = self._get_member_id(request)
            set_request_context(member_id=member_id)

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
            if correlation_id:
                response.headers["X-Correlation-ID"] = correlation_id

            if self._should_log(path, response.status_code):
                log_level = self._get_log_level(response.status_code)
                logger.log(
                    log_level,
                    f"{method} {path} {response.status_code} ({duration_ms:.2f}ms)",
                    extra={
                        "event": "http_request",
                        "http_method": method,
                        "http_path": path,
                        "http_query": query_string,
                        "http_status": response.status_code,
                        "duration_ms": round(duration_ms, 2),
                        "client_ip": client_ip,
                        "pjax": request.headers.get("X-Pjax", "-"),
                    },
                )

            return response

        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000

            logger.error(
                f"{method} {path} FAILED ({duration_ms:.2f}ms): {type(exc).__name__}",
                extra={
                    "event": "http_request_error",
                    "http_method": method,
                    "http_path": path,
                    "http_query": query_string,
                    "duration_ms": round(duration_ms, 2),
                    "client_ip": client_ip,
                    "error_type": type(exc).__name__,
                    "error_message": str(exc)[:200],
                },
                exc_info=True,
            )
            raise

        finally:
            clear_request_context()
