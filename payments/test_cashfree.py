import json
from unittest.mock import MagicMock, patch

import requests
from django.test import SimpleTestCase, override_settings
from django.urls import reverse

from shophub.errors import GatewayError, NotConfiguredError, ValidationError
from .integrations import cashfree
from .utils import request_signature

CONFIG = cashfree.CashfreeConfig(app_id="cf_app", secret_key="cf_secret")


def _body(**overrides):
    body = {
        "orderId": "ORD_1",
        "orderAmount": 1497,
        "customerName": "Asha Verma",
        "customerEmail": "Asha@Example.com",
        "customerPhone": "98765 43210",
        "returnUrl": "https://shop.example.com/payment/return",
    }
    body.update(overrides)
    return body


def _response(status=200, payload=None):
    resp = MagicMock(status_code=status, text=json.dumps(payload))
    resp.json.return_value = payload
    return resp


class ValidateOrderRequestTests(SimpleTestCase):
    def test_negative_amount_fails_before_network(self):
        with patch("payments.integrations.cashfree.requests.request") as request:
            with self.assertRaises(ValidationError) as cm:
                cashfree.create_order(_body(orderAmount=-5), CONFIG)
        request.assert_not_called()
        errors = cm.exception.details["validationErrors"]
        self.assertTrue(any("amount" in e.lower() for e in errors))

    def test_non_finite_amounts_rejected(self):
        for amount in (float("nan"), float("inf"), float("-inf")):
            with self.assertRaises(ValidationError) as cm:
                cashfree.validate_order_request(_body(orderAmount=amount))
            self.assertTrue(any("amount" in e.lower() for e in cm.exception.errors), amount)

    def test_all_errors_reported_together(self):
        with self.assertRaises(ValidationError) as cm:
            cashfree.validate_order_request({"orderAmount": "12", "customerPhone": "123"})
        self.assertEqual(len(cm.exception.errors), 6)

    def test_phone_formatted_with_country_code(self):
        cleaned = cashfree.validate_order_request(_body())
        self.assertEqual(cleaned["customer_phone"], "+919876543210")
        self.assertEqual(cleaned["customer_email"], "asha@example.com")

    def test_validation_runs_before_configuration_check(self):
        unconfigured = cashfree.CashfreeConfig(app_id="your_app_id_here", secret_key="")
        with self.assertRaises(ValidationError):
            cashfree.create_order(_body(orderAmount=0), unconfigured)
        with self.assertRaises(NotConfiguredError):
            cashfree.create_order(_body(), unconfigured)


class CreateOrderTests(SimpleTestCase):
    def test_signed_request_and_selected_fields(self):
        payload = {
            "cf_order_id": "cf_1", "order_id": "ORD_1", "payment_session_id": "session_abc",
            "order_status": "ACTIVE", "order_amount": 1497, "order_currency": "INR",
            "order_expiry_time": "2026-10-19T12:00:00+05:30", "customer_details": {},
        }
        with patch("payments.integrations.cashfree.requests.request", return_value=_response(200, payload)) as request:
            data = cashfree.create_order(_body(), CONFIG)

        method, url = request.call_args.args
        kwargs = request.call_args.kwargs
        headers = kwargs["headers"]
        self.assertEqual((method, url), ("POST", "https://sandbox.cashfree.com/pg/orders"))
        self.assertEqual(kwargs["timeout"], 30)
        self.assertEqual(headers["x-api-version"], "2023-08-01")
        self.assertTrue(headers["x-idempotency-key"].startswith("idem_ORD_1_"))
        raw = kwargs["data"].decode()
        self.assertEqual(headers["x-signature"], request_signature("cf_secret", raw, headers["x-timestamp"]))
        self.assertEqual(json.loads(raw)["customer_details"]["customer_phone"], "+919876543210")
        self.assertEqual(data["payment_session_id"], "session_abc")
        self.assertNotIn("customer_details", data)

    def test_timeout_maps_to_408(self):
        with patch("payments.integrations.cashfree.requests.request", side_effect=requests.Timeout()):
            with self.assertRaises(GatewayError) as cm:
                cashfree.create_order(_body(), CONFIG)
        self.assertEqual(cm.exception.status_code, 408)

    def test_connection_refused_maps_to_503(self):
        with patch("payments.integrations.cashfree.requests.request", side_effect=requests.ConnectionError()):
            with self.assertRaises(GatewayError) as cm:
                cashfree.create_order(_body(), CONFIG)
        self.assertEqual(cm.exception.status_code, 503)

    def test_upstream_error_keeps_status_and_message(self):
        resp = _response(401, {"message": "authentication Failed", "code": "request_failed"})
        with patch("payments.integrations.cashfree.requests.request", return_value=resp):
            with self.assertRaises(GatewayError) as cm:
                cashfree.create_order(_body(), CONFIG)
        self.assertEqual(cm.exception.status_code, 401)
        self.assertEqual(cm.exception.message, "authentication Failed")

    def test_missing_session_id_is_502(self):
        with patch("payments.integrations.cashfree.requests.request",
                   return_value=_response(200, {"order_id": "ORD_1"})):
            with self.assertRaises(GatewayError) as cm:
                cashfree.create_order(_body(), CONFIG)
        self.assertEqual(cm.exception.status_code, 502)

    def test_production_base_url(self):
        config = cashfree.CashfreeConfig(app_id="a", secret_key="b", environment="production")
        self.assertEqual(config.base_url, "https://api.cashfree.com")


@override_settings(CASHFREE={"APP_ID": "cf_app", "SECRET_KEY": "cf_secret", "ENV": "sandbox",
                             "API_VERSION": "2023-08-01", "TIMEOUT": 30})
class PaymentViewTests(SimpleTestCase):
    def test_create_order_validation_response(self):
        with patch("payments.integrations.cashfree.requests.request") as request:
            resp = self.client.post(reverse("payments:cashfree_create_order"),
                                    data=_body(orderAmount=-5), content_type="application/json")
        request.assert_not_called()
        self.assertEqual(resp.status_code, 400)
        body = resp.json()
        self.assertEqual(body["message"], "Validation failed")
        self.assertIn("validationErrors", body["details"])

    def test_nan_amount_in_raw_json_is_rejected_without_network(self):
        raw = json.dumps(_body()).replace('"orderAmount": 1497', '"orderAmount": NaN').encode()
        with patch("payments.integrations.cashfree.requests.request") as request:
            resp = self.client.post(reverse("payments:cashfree_create_order"),
                                    data=raw, content_type="application/json")
        request.assert_not_called()
        self.assertEqual(resp.status_code, 400)
        self.assertIn("validationErrors", resp.json()["details"])

    def test_invalid_json_body(self):
        resp = self.client.post(reverse("payments:cashfree_create_order"),
                                data=b"{oops", content_type="application/json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "INVALID_JSON")

    def test_verify_order(self):
        with patch("payments.integrations.cashfree.requests.request",
                   return_value=_response(200, {"order_id": "ORD_1", "order_status": "PAID"})) as request:
            resp = self.client.get(reverse("payments:cashfree_verify", args=["ORD_1"]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"]["order_status"], "PAID")
        self.assertEqual(request.call_args.args[1], "https://sandbox.cashfree.com/pg/orders/ORD_1")

    def test_status(self):
        resp = self.client.get(reverse("payments:cashfree_status"))
        data = resp.json()["data"]
        self.assertEqual(data["status"], "configured")
        self.assertTrue(data["configurationValid"])
