"""
Tests for health check endpoints.

Tests the /, /health and /health/db endpoints.
"""

import os
import sys
import unittest
from unittest.mock import AsyncMock, patch

# Set environment before imports
os.environ["DEV_MODE"] = "false"
os.environ["ENVIRONMENT"] = "development"
os.environ.pop("DATABASE_URL", None)
os.environ.pop("DATABASE_URL_DIRECT", None)

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from fastapi.testclient import TestClient


class TestMainHealthEndpoint(unittest.TestCase):
    """Tests for the main /health endpoint."""

    def setUp(self):
        """Set up test client."""
        from server import app
        self.client = TestClient(app)

    def test_health_returns_200(self):
        """Health endpoint should return 200 status code."""
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)

    def test_health_returns_required_fields(self):
        """Health response should contain required fields."""
        data = self.client.get("/health").json()

        self.assertIn("status", data)
        self.assertIn("timestamp", data)
        self.assertEqual(data["version"], "1.0.0")
        self.assertEqual(data["environment"], "development")
        self.assertIn("services", data)

    def test_health_services_structure(self):
        """Health response should contain services status."""
        services = self.client.get("/health").json()["services"]

        self.assertIn("database", services)
        self.assertIn("akismet", services)
        self.assertIn("sentry", services)

    def test_health_status_values(self):
        """Service statuses should be valid values."""
        data = self.client.get("/health").json()

        valid_statuses = {"up", "down", "unconfigured"}
        for service, info in data["services"].items():
            self.assertIn(info["status"], valid_statuses)

    def test_in_memory_storage_is_healthy(self):
        """Without a database the service runs on in-memory stores."""
        data = self.client.get("/health").json()

        self.assertEqual(data["status"], "healthy")
        self.assertEqual(data["services"]["database"]["status"], "unconfigured")

    @patch("app.routes.health.get_database_status", new_callable=AsyncMock)
    def test_unreachable_database_is_degraded(self, mock_db_status):
        """A configured but unreachable database degrades the service."""
        mock_db_status.return_value = {
            "configured": True,
            "connected": False,
            "error": "connection refused",
        }
        data = self.client.get("/health").json()

        self.assertEqual(data["status"], "degraded")
        self.assertEqual(data["services"]["database"]["status"], "down")


class TestDatabaseHealthEndpoint(unittest.TestCase):
    """Tests for /health/db endpoint."""

    def setUp(self):
        """Set up test client."""
        from server import app
        self.client = TestClient(app)

    def test_db_health_returns_200(self):
        """Database health endpoint should return 200."""
        response = self.client.get("/health/db")
        self.assertEqual(response.status_code, 200)

    def test_db_health_unconfigured_without_env(self):
        """Database should report unconfigured when env vars missing."""
        data = self.client.get("/health/db").json()

        self.assertIn("timestamp", data)
        self.assertFalse(data["database"]["configured"])

    @patch("app.routes.health.fetchval", new_callable=AsyncMock)
    def test_db_health_connected(self, mock_fetchval):
        """Database should report connected when the query succeeds."""
        mock_fetchval.return_value = 1
        with patch.dict(os.environ, {"DATABASE_URL": "postgresql://localhost/cms"}):
            data = self.client.get("/health/db").json()

        self.assertTrue(data["database"]["connected"])
        self.assertIn("latency_ms", data["database"])


class TestRootEndpoint(unittest.TestCase):
    """Tests for root endpoint."""

    def setUp(self):
        """Set up test client."""
        from server import app
        self.client = TestClient(app)

    def test_root_contains_api_info(self):
        """Root endpoint should identify the service."""
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["name"], "SiteTree CMS")
        self.assertEqual(data["docs"], "/docs")
