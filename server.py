"""
Server for the SiteTree CMS.
Provides the page history admin, page views with comments, the comment
RSS feed and CMS reports.

This is the main entry point that assembles the modular components
from the app package.
"""

import logging
import re
import sys
from contextlib import asynccontextmanager

import sentry_sdk
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

# Configure structured logging FIRST, before other imports that use logging
from cms.utils.logging import setup_logging

logger = setup_logging(service_name="sitetree-cms")

from cms import __version__
from cms.config import Settings, get_settings
from cms.db import apply_schema, close_pool

# =============================================================================
# Configuration
# =============================================================================

try:
    settings: Settings = get_settings()
except Exception as e:
    logger.critical(f"Unexpected error loading configuration: {e}")
    sys.exit(1)

if settings.is_production and settings.is_dev_mode:
    logger.critical("DEV_MODE cannot be enabled in production.")
    sys.exit(1)

from app.error_handlers import register_exception_handlers
from app.middleware import RequestLoggingMiddleware
from app.routes import (
    comments_router,
    health_router,
    history_router,
    pages_router,
    reports_router,
)

# =============================================================================
# Sentry Error Tracking Configuration
# =============================================================================

SENSITIVE_KEYS = [
    "password", "api_key", "apikey", "api-key", "secret", "token",
    "authorization", "credential", "private",
]


def filter_sensitive_breadcrumbs(crumb, hint):
    """
    Filter sensitive data from Sentry breadcrumbs.

    Removes or sanitizes breadcrumbs that may contain:
    - API keys
    - Authorization headers
    - Spam protection tokens
    """
    if crumb.get("category") == "http":
        if "data" in crumb and isinstance(crumb["data"], dict):
            data = crumb["data"]
            if "headers" in data and isinstance(data["headers"], dict):
                for key in list(data["headers"].keys()):
                    if any(s in key.lower() for s in SENSITIVE_KEYS):
                        data["headers"][key] = "[FILTERED]"
            if "url" in data:
                url = data["url"]
                for key in SENSITIVE_KEYS:
                    if f"{key}=" in url.lower():
                        pattern = re.compile(f"({key}=)[^&]*", re.IGNORECASE)
                        data["url"] = pattern.sub(r"\1[FILTERED]", url)

    if crumb.get("category") in ("console", "log"):
        if "message" in crumb:
            message = str(crumb["message"]).lower()
            for key in SENSITIVE_KEYS:
                if key in message:
                    crumb["message"] = "[FILTERED - may contain sensitive data]"
                    break

    return crumb


if settings.is_sentry_configured:
    sentry_settings = settings.sentry
    sentry_sdk.init(
        dsn=sentry_settings.sentry_dsn,
        environment=sentry_settings.sentry_environment,
        sample_rate=1.0,
        traces_sample_rate=sentry_settings.sentry_traces_sample_rate,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        before_breadcrumb=filter_sensitive_breadcrumbs,
        # Comment authors' IP addresses stay out of Sentry
        send_default_pii=False,
        attach_stacktrace=True,
        server_name=sentry_settings.server_name,
        release=sentry_settings.sentry_release,
    )
    logger.info(f"Sentry initialized for environment: {sentry_settings.sentry_environment}")
else:
    logger.info("Sentry DSN not configured, error tracking disabled")


# =============================================================================
# Initialize FastAPI App
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup/shutdown for shared resources."""
    if settings.is_database_configured:
        try:
            await apply_schema()
        except Exception as e:
            logger.error("Failed to apply database schema: %s", e)
            raise
    else:
        logger.info("DATABASE_URL not set, pages and comments are kept in memory")
    yield
    try:
        await close_pool()
    except Exception as e:
        logger.warning("Failed to close Postgres pool: %s", e)


app = FastAPI(
    title="SiteTree CMS",
    description="""
## Versioned Site Tree CMS

### Key Features

- **Page History**: View, compare and revert page versions
- **Page Comments**: Visitor comments with math question and Akismet spam protection
- **Comment Feeds**: RSS feed of approved comments per page or site wide
- **Reports**: Content reports such as pages without content

### Authentication

Admin endpoints require a member API key via `X-API-Key: <key>`. Members need
the `CMS_ACCESS_CMSMain` permission (or `ADMIN`).

### Fragments

History and report views answer with a full HTML page, or with a JSON object
of named HTML fragments when the request carries an `X-Pjax` header, e.g.
`X-Pjax: CurrentForm,Breadcrumbs`.
""",
    version=__version__,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "health", "description": "Health checks and system status"},
        {"name": "pages", "description": "Page drafts, publishing and public page views"},
        {"name": "history", "description": "Page version history, comparison and rollback"},
        {"name": "comments", "description": "Page comments and comment feeds"},
        {"name": "reports", "description": "CMS content reports"},
    ],
)

# =============================================================================
# Exception Handlers
# =============================================================================

register_exception_handlers(app)
logger.info("Centralized exception handlers registered")

# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "X-API-Key",
        "X-Pjax",
        "X-Requested-With",
        "Accept",
        "Origin",
    ],
    expose_headers=["X-Status", "X-Response-Time"],
    max_age=600,
)

# Added last so it wraps all other middleware
if settings.logging.request_logging_enabled:
    app.add_middleware(RequestLoggingMiddleware)
    logger.info("Request logging middleware enabled")

# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
app.include_router(pages_router)
app.include_router(history_router)
app.include_router(comments_router)
app.include_router(reports_router)


if __name__ == "__main__":
    uvicorn.run(
        "server:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_dev_mode,
    )
