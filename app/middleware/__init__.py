"""Middleware components for the SiteTree CMS service."""

from .logging import RequestLoggingMiddleware

__all__ = [
    "RequestLoggingMiddleware",
]
