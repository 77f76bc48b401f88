"""
Health check and root endpoints.
"""

import logging
from datetime import datetime
from typing import Any, Dict

import sentry_sdk
from fastapi import APIRouter

from cms import __version__
from cms.config import get_settings
from cms.db import fetchval, is_database_configured

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def get_database_status() -> Dict[str, Any]:
    """
    Check Postgres connectivity with a trivial query.
    """
    if not is_database_configured():
        return {
            "configured": False,
            "connected": False,
            "error": "DATABASE_URL not set (using in-memory storage)",
        }

    try:
        start_time = datetime.now()
        await fetchval("SELECT 1")
        latency_ms = (datetime.now() - start_time).total_seconds() * 1000

        return {
            "configured": True,
            "connected": True,
            "latency_ms": round(latency_ms, 2),
        }
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return {
            "configured": True,
            "connected": False,
            "error": str(e)[:100],
        }


def get_sentry_status() -> Dict[str, Any]:
    """
    Get the current Sentry configuration status.
    """
    settings = get_settings()
    configured = settings.is_sentry_configured
    try:
        client = sentry_sdk.get_client()
        return {
            "configured": configured,
            "active": client.is_active() if configured else False,
            "environment": settings.sentry.sentry_environment if configured else None,
        }
    except Exception as e:
        return {
            "configured": False,
            "active": False,
            "environment": None,
            "error": str(e),
        }


def get_akismet_status() -> Dict[str, Any]:
    settings = get_settings()
    return {
        "configured": settings.is_akismet_configured,
        "save_spam": settings.akismet.akismet_save_spam,
    }


def _service_state(status: Dict[str, Any], up_key: str) -> str:
    if status.get(up_key):
        return "up"
    return "unconfigured" if not status.get("configured") else "down"


@router.get("/")
async def root() -> Dict[str, Any]:
    """Service identification."""
    return {
        "name": get_settings().site.site_title,
        "version": __version__,
        "docs": "/docs",
    }


@router.get(
    "/health",
    summary="System health check",
    description="""
Health check endpoint for monitoring and load balancers.

Returns overall system health including:
- Database connectivity status
- Akismet spam filtering configuration
- Sentry error tracking status

**Authentication**: Not required.
    """,
)
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint for monitoring and load balancers.
    """
    settings = get_settings()
    db_status = await get_database_status()
    sentry_status = get_sentry_status()
    akismet_status = get_akismet_status()

    # Unconfigured database means in-memory storage, which is healthy
    is_healthy = db_status.get("connected", False) or not db_status.get("configured", False)

    return {
        "status": "healthy" if is_healthy else "degraded",
        "timestamp": datetime.now().isoformat(),
        "version": __version__,
        "environment": settings.security.environment,
        "services": {
            "database": {
                "status": _service_state(db_status, "connected"),
                "latency_ms": db_status.get("latency_ms"),
            },
            "akismet": {
                "status": "up" if akismet_status["configured"] else "unconfigured",
            },
            "sentry": {
                "status": _service_state(sentry_status, "active"),
            },
        },
    }


@router.get("/health/db")
async def database_health() -> Dict[str, Any]:
    """
    Detailed database health check.
    """
    return {
        "timestamp": datetime.now().isoformat(),
        "database": await get_database_status(),
    }
