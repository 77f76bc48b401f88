"""Utility modules for SiteTree CMS."""

from .logging import (
    Timer,
    clear_request_context,
    redact_sensitive_data,
    set_request_context,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "set_request_context",
    "clear_request_context",
    "redact_sensitive_data",
    "Timer",
]
