"""API routes for the SiteTree CMS."""

from .comments import router as comments_router
from .health import router as health_router
from .history import router as history_router
from .pages import router as pages_router
from .reports import router as reports_router

__all__ = [
    "comments_router",
    "health_router",
    "history_router",
    "pages_router",
    "reports_router",
]
