from __future__ import annotations

from unittest.mock import patch

from django.db import DatabaseError
from django.test import Client, TestCase


class HealthEndpointsTests(TestCase):
    def setUp(self) -> None:
        self.client = Client()

    def test_healthz_returns_ok(self):
        response = self.client.get("/healthz")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_readyz_checks_database(self):
        response = self.client.get("/readyz")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok", "db": True})

    def test_readyz_reports_degraded_database(self):
        with patch("apps.observability.views.health.connection") as connection:
            connection.cursor.side_effect = DatabaseError("down")
            with self.assertLogs("balmuya.request", level="ERROR"):
                response = self.client.get("/readyz")
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json(), {"status": "degraded", "db": False})

    def test_health_endpoints_are_get_only(self):
        self.assertEqual(self.client.post("/healthz").status_code, 405)


class RequestContextMiddlewareTests(TestCase):
    def test_generates_request_id_and_timing(self):
        response = Client().get("/healthz")
        self.assertTrue(response["X-Request-Id"])
        self.assertIn("X-Response-Time-ms", response)

    def test_propagates_incoming_request_id(self):
        response = Client().get("/healthz", HTTP_X_REQUEST_ID="req-123")
        self.assertEqual(response["X-Request-Id"], "req-123")

    def test_logs_completed_request(self):
        with self.assertLogs("balmuya.request", level="INFO") as logs:
            Client().get("/healthz")
        self.assertTrue(any("request_completed" in line for line in logs.output))


class JsonErrorHandlerTests(TestCase):
    def test_unknown_route_returns_json_envelope(self):
        response = Client().get("/api/does-not-exist/")
        self.assertEqual(response.status_code, 404)
        payload = response.json()
        self.assertFalse(payload["success"])
        self.assertEqual(payload["error"]["code"], "not_found")
