import json
from unittest.mock import patch

from django.test import SimpleTestCase, override_settings
from django.urls import reverse

from .utils import webhook_signature

SECRET = "cf_webhook_secret"
CASHFREE = {"APP_ID": "cf_app", "SECRET_KEY": SECRET, "ENV": "sandbox", "API_VERSION": "2023-08-01", "TIMEOUT": 30}


def _event(event_type="PAYMENT_SUCCESS_WEBHOOK"):
    return {
        "type": event_type,
        "data": {
            "order": {"order_id": "ORD_1", "order_amount": 1497, "order_status": "PAID"},
            "payment": {"cf_payment_id": "cf_pay_1", "payment_amount": 1497, "payment_status": "SUCCESS"},
        },
    }


@override_settings(CASHFREE=CASHFREE, PAYMENT_STATUS_HOOK="payments.webhook.log_status_change")
class CashfreeWebhookTests(SimpleTestCase):
    def _post(self, raw: bytes, signature=None, timestamp="1700000000000"):
        headers = {}
        if timestamp is not None:
            headers["HTTP_X_WEBHOOK_TIMESTAMP"] = timestamp
        if signature is not None:
            headers["HTTP_X_WEBHOOK_SIGNATURE"] = signature
        return self.client.post(reverse("payments:cashfree_webhook"), data=raw,
                                content_type="application/json", **headers)

    def _signed(self, payload, timestamp="1700000000000"):
        raw = json.dumps(payload).encode()
        return raw, webhook_signature(SECRET, timestamp, raw)

    def test_valid_success_event_calls_status_hook(self):
        raw, sig = self._signed(_event())
        with patch("payments.webhook.log_status_change") as hook:
            resp = self._post(raw, sig)

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertTrue(body["data"]["handled"])
        hook.assert_called_once_with("ORD_1", "paid", payment_id="cf_pay_1")

    def test_failed_and_dropped_events_map_to_statuses(self):
        for event_type, status in (("PAYMENT_FAILED_WEBHOOK", "failed"), ("PAYMENT_USER_DROPPED", "cancelled")):
            raw, sig = self._signed(_event(event_type))
            with patch("payments.webhook.log_status_change") as hook:
                resp = self._post(raw, sig)
            self.assertEqual(resp.status_code, 200)
            self.assertEqual(hook.call_args.args[:2], ("ORD_1", status))

    def test_missing_signature_header_rejected(self):
        raw, _ = self._signed(_event())
        resp = self._post(raw, signature=None)
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.json()["success"])

    def test_missing_timestamp_header_rejected(self):
        raw, sig = self._signed(_event())
        resp = self._post(raw, sig, timestamp=None)
        self.assertEqual(resp.status_code, 400)

    def test_tampered_body_rejected_before_dispatch(self):
        raw, sig = self._signed(_event())
        tampered = raw.replace(b"1497", b"1", 1)
        with patch("payments.webhook.log_status_change") as hook:
            resp = self._post(tampered, sig)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "INVALID_SIGNATURE")
        hook.assert_not_called()

    def test_signature_bound_to_timestamp(self):
        raw, sig = self._signed(_event(), timestamp="1700000000000")
        resp = self._post(raw, sig, timestamp="1700000000001")
        self.assertEqual(resp.status_code, 400)

    def test_replay_is_processed_twice_without_error(self):
        raw, sig = self._signed(_event())
        with patch("payments.webhook.log_status_change") as hook:
            first = self._post(raw, sig)
            second = self._post(raw, sig)
        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 200)
        self.assertEqual(hook.call_count, 2)

    def test_unknown_event_type_is_acknowledged(self):
        raw, sig = self._signed({"type": "REFUND_STATUS_WEBHOOK", "data": {}})
        with self.assertLogs("payments.webhook", level="INFO") as cm:
            resp = self._post(raw, sig)
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.json()["data"]["handled"])
        self.assertTrue(any("Unhandled webhook type" in line for line in cm.output))

    def test_signed_but_invalid_json_rejected(self):
        raw = b"{not json"
        sig = webhook_signature(SECRET, "1700000000000", raw)
        resp = self._post(raw, sig)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "INVALID_WEBHOOK_PAYLOAD")

    def test_missing_nested_fields_tolerated(self):
        raw, sig = self._signed({"type": "PAYMENT_SUCCESS_WEBHOOK", "data": {"order": None}})
        with patch("payments.webhook.log_status_change") as hook:
            resp = self._post(raw, sig)
        self.assertEqual(resp.status_code, 200)
        hook.assert_called_once_with(None, "paid", payment_id=None)

    @override_settings(CASHFREE={**CASHFREE, "SECRET_KEY": ""})
    def test_unconfigured_secret_is_503(self):
        raw, sig = self._signed(_event())
        resp = self._post(raw, sig)
        self.assertEqual(resp.status_code, 503)

    @override_settings(CASHFREE={**CASHFREE, "SECRET_KEY": ""})
    def test_missing_headers_rejected_even_when_unconfigured(self):
        raw, _ = self._signed(_event())
        resp = self._post(raw, signature=None, timestamp=None)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "INVALID_SIGNATURE")
