"""
Pytest configuration and shared fixtures for SiteTree CMS tests.

This module provides common fixtures used across all test files:
- Test client setup
- Members with API keys
- Page setup helpers
- Singleton resets between tests
"""

import asyncio
import os
import sys
import tempfile

import pytest

# Environment setup before any imports
os.environ["DEV_MODE"] = "false"
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["MATH_SPAM_SECRET"] = "test-math-secret"
os.environ["MEMBER_STORAGE_PATH"] = os.path.join(tempfile.mkdtemp(), "members.json")
for name in ("DATABASE_URL", "DATABASE_URL_DIRECT", "AKISMET_API_KEY", "SENTRY_DSN"):
    os.environ.pop(name, None)

# Ensure project root is in path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


@pytest.fixture(autouse=True)
def reset_singletons():
    """Fresh settings, stores and member store for every test."""
    from app.auth import set_member_store
    from cms.comments.storage import CommentStore
    from cms.config import get_settings
    from cms.pages.storage import PageStore

    get_settings.cache_clear()
    PageStore.reset()
    CommentStore.reset()
    set_member_store(None)
    yield
    get_settings.cache_clear()
    PageStore.reset()
    CommentStore.reset()
    set_member_store(None)


@pytest.fixture
def client():
    """FastAPI test client fixture."""
    from fastapi.testclient import TestClient
    from server import app

    return TestClient(app)


@pytest.fixture
def member_store(tmp_path):
    from app.auth import MemberStore, set_member_store

    store = MemberStore(str(tmp_path / "members.json"))
    set_member_store(store)
    return store


@pytest.fixture
def admin_headers(member_store):
    key = member_store.create_member("admin", permissions=["ADMIN"], groups=["administrators"])
    return {"X-API-Key": key}


@pytest.fixture
def editor_headers(member_store):
    key = member_store.create_member(
        "editor",
        first_name="Erin",
        permissions=["CMS_ACCESS_CMSMain"],
        groups=["content-authors"],
    )
    return {"X-API-Key": key}


@pytest.fixture
def visitor_headers(member_store):
    key = member_store.create_member("visitor", groups=["customers"])
    return {"X-API-Key": key}


@pytest.fixture
def page_store():
    from cms.pages.storage import get_page_store

    return get_page_store()


@pytest.fixture
def comment_store():
    from cms.comments.storage import get_comment_store

    return get_comment_store()


@pytest.fixture
def make_page(page_store):
    """Create a page synchronously (for tests driving the TestClient)."""

    def _make(**data):
        data.setdefault("title", "About us")
        return asyncio.run(page_store.create_page(data, author_id="admin"))

    return _make


@pytest.fixture
def run():
    """Run a coroutine to completion from a synchronous test."""
    return asyncio.run
