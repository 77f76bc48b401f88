"""
Structured logging for SiteTree CMS.

Log records carry the request ID, the member making the request and an
optional correlation ID. Member API keys, math question tokens and other
secrets are redacted before a record is written. Production writes one JSON
object per line; development writes coloured text.
"""

import json
import logging
import os
import re
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
member_id_var: ContextVar[Optional[str]] = ContextVar("member_id", default=None)
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

SENSITIVE_PATTERNS = [
    re.compile(r'x-api-key["\']?\s*[:=]\s*["\']?[\w-]+', re.IGNORECASE),
    re.compile(r'api[_-]?key["\']?\s*[:=]\s*["\']?[\w-]+', re.IGNORECASE),
    re.compile(r'math_?token["\']?\s*[:=]\s*["\']?[\w.=-]+', re.IGNORECASE),
    re.compile(r'(password|secret)["\']?\s*[:=]\s*["\']?[^\s,}]+', re.IGNORECASE),
    re.compile(r'postgres(ql)?://[^\s]+', re.IGNORECASE),
    # Akismet puts the API key in the host name
    re.compile(r'https://\w+\.rest\.akismet\.com', re.IGNORECASE),
]

REDACTED = "[REDACTED]"

# LogRecord attributes that are not user-supplied extras
STANDARD_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
) | {"message", "asctime", "request_id", "member_id", "correlation_id"}


def redact_sensitive_data(message: str) -> str:
    """Replace secrets in a log message with [REDACTED]."""
    if not message:
        return message
    for pattern in SENSITIVE_PATTERNS:
        message = pattern.sub(REDACTED, message)
    return message


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        k: v for k, v in record.__dict__.items()
        if k not in STANDARD_RECORD_ATTRS and not k.startswith("_")
    }


class RequestContextFilter(logging.Filter):
    """Attach the current request context to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.member_id = member_id_var.get() or "-"
        record.correlation_id = correlation_id_var.get() or "-"
        return True


class SensitiveDataFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = redact_sensitive_data(str(record.msg))
        if record.args:
            record.args = tuple(
                redact_sensitive_data(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record:

        {"timestamp": ..., "level": "INFO", "logger": "app.routes.history",
         "message": ..., "service": "sitetree-cms", "request_id": ...,
         "member_id": ..., "correlation_id": ..., "extra": {...}}
    """

    def __init__(self, service_name: str = "sitetree-cms"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "request_id": getattr(record, "request_id", "-"),
            "member_id": getattr(record, "member_id", "-"),
            "correlation_id": getattr(record, "correlation_id", "-"),
        }
        if record.levelno >= logging.ERROR:
            log_data["source"] = f"{record.pathname}:{record.lineno}"
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = _extra_fields(record)
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, default=str, ensure_ascii=False)


class DevelopmentFormatter(logging.Formatter):
    """
    Coloured single-line output:

        [12:30:00.123] INFO     [req-id  ] [member  ] cms.pages.storage - message
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        request_id = getattr(record, "request_id", "-")[:8]
        member_id = getattr(record, "member_id", "-")[:8]
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        formatted = (
            f"{self.DIM}[{timestamp}]{self.RESET} "
            f"{color}{record.levelname:8}{self.RESET} "
            f"{self.DIM}[{request_id:8}] [{member_id:8}]{self.RESET} "
            f"{record.name} - {record.getMessage()}"
        )
        extra = _extra_fields(record)
        if extra:
            formatted += f" {self.DIM}{extra}{self.RESET}"
        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)
        return formatted


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("true", "1", "yes")


def setup_logging(
    service_name: str = "sitetree-cms",
    log_level: Optional[int] = None,
    force_json: bool = False,
) -> logging.Logger:
    """
    Configure the root logger. Call once at startup, before the modules that
    log are imported.

    Reads LOG_LEVEL, LOG_FORMAT_JSON and ENVIRONMENT directly from the
    environment so that logging works even when the settings fail to load.
    """
    if log_level is None:
        log_level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    use_json = (
        force_json
        or _env_flag("LOG_FORMAT_JSON")
        or os.environ.get("ENVIRONMENT", "development").lower() == "production"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(RequestContextFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JSONFormatter(service_name) if use_json else DevelopmentFormatter())
    root_logger.addHandler(handler)

    for noisy in ("uvicorn.access", "httpx", "httpcore", "asyncio", "asyncpg"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    root_logger.info(
        "Logging configured",
        extra={
            "log_level": logging.getLevelName(log_level),
            "format": "json" if use_json else "development",
        },
    )
    return root_logger


def set_request_context(
    request_id: Optional[str] = None,
    member_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> None:
    """Set the context included in every record logged by the current request."""
    if request_id is not None:
        request_id_var.set(request_id)
    if member_id is not None:
        member_id_var.set(member_id)
    if correlation_id is not None:
        correlation_id_var.set(correlation_id)


def clear_request_context() -> None:
    request_id_var.set(None)
    member_id_var.set(None)
    correlation_id_var.set(None)


class Timer:
    """
    Context manager logging how long an operation took.

    Usage:
        with Timer("compare_versions", logger):
            fields = compare_versions(from_version, to_version)
    """

    def __init__(
        self,
        name: str,
        logger: Optional[logging.Logger] = None,
        log_level: int = logging.DEBUG,
    ):
        self.name = name
        self.logger = logger
        self.log_level = log_level
        self.start_time: Optional[float] = None
        self.elapsed_ms: float = 0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is not None:
            self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000
        if self.logger:
            self.logger.log(
                self.log_level,
                f"{self.name} completed in {self.elapsed_ms:.2f}ms",
                extra={"operation": self.name, "duration_ms": round(self.elapsed_ms, 2)},
            )
