from unittest.mock import patch

from django.test import SimpleTestCase, override_settings


class ErrorHandlerTests(SimpleTestCase):
    def test_unknown_api_route_lists_endpoints(self):
        response = self.client.get("/api/does-not-exist")
        self.assertEqual(response.status_code, 404)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["message"], "API endpoint not found")
        self.assertIn("POST /api/orders/create", body["availableEndpoints"])
        self.assertIn("timestamp", body)

    def test_unknown_non_api_route_is_json_404(self):
        response = self.client.get("/this-url-does-not-exist/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "NOT_FOUND")

    def test_malformed_json_body(self):
        response = self.client.post("/api/orders/create", data=b"{bad json", content_type="application/json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "INVALID_JSON")

    def test_wrong_method(self):
        response = self.client.get("/api/orders/create")
        self.assertEqual(response.status_code, 405)

    @override_settings(DEBUG=False)
    def test_unexpected_error_is_redacted(self):
        with patch("shophub.views.GatewayRegistry.from_settings", side_effect=RuntimeError("db password leaked")):
            response = self.client.get("/health")
        self.assertEqual(response.status_code, 500)
        body = response.json()
        self.assertEqual(body["error"], "Internal server error")
        self.assertNotIn("leaked", response.content.decode())

    @override_settings(DEBUG=True)
    def test_unexpected_error_detail_in_debug(self):
        with patch("shophub.views.GatewayRegistry.from_settings", side_effect=RuntimeError("boom")):
            response = self.client.get("/health")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "boom")

    def test_api_error_keeps_its_status(self):
        from shophub.errors import OrderNotFoundError

        with patch("shophub.views.GatewayRegistry.from_settings", side_effect=OrderNotFoundError("gone")):
            response = self.client.get("/health")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "gone")

    def test_unserialisable_payload_falls_back_to_plain_text(self):
        from shophub.responses import success_response

        response = success_response({"bad": object()})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response["Content-Type"], "text/plain")

    @override_settings(DEBUG=False)
    def test_internal_error_keeps_generic_shape(self):
        from shophub.errors import InternalError

        with patch("shophub.views.GatewayRegistry.from_settings", side_effect=InternalError("cache corrupted")):
            response = self.client.get("/health")
        self.assertEqual(response.status_code, 500)
        body = response.json()
        self.assertEqual(body["error"], "INTERNAL_ERROR")
        self.assertEqual(body["message"], "cache corrupted")

    def test_project_runs_without_a_database(self):
        from django.db import connections

        self.assertEqual(connections["default"].settings_dict["ENGINE"], "django.db.backends.dummy")
