from io import StringIO
from unittest.mock import patch

from django.core.checks import Error, Warning
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, override_settings

from shophub import checks
from shophub.errors import GatewayError

CONFIGURED = {
    "RAZORPAY": {"KEY_ID": "rzp_key", "KEY_SECRET": "rzp_secret"},
    "STRIPE": {"SECRET_KEY": "sk_test"},
    "CASHFREE": {"APP_ID": "cf_app", "SECRET_KEY": "cf_secret", "ENV": "sandbox"},
    "EMAIL_PROVIDER": "smtp",
    "EMAIL_HOST_USER": "user",
    "EMAIL_HOST_PASSWORD": "pass",
}
UNCONFIGURED = {
    "RAZORPAY": {"KEY_ID": "", "KEY_SECRET": ""},
    "STRIPE": {"SECRET_KEY": ""},
    "CASHFREE": {"APP_ID": "your_app_id_here", "SECRET_KEY": ""},
    "EMAIL_PROVIDER": "smtp",
    "EMAIL_HOST_USER": "",
    "EMAIL_HOST_PASSWORD": "",
}


class HealthTests(SimpleTestCase):
    @override_settings(**CONFIGURED)
    def test_health_reports_integrations(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["status"], "OK")
        self.assertEqual(data["services"], {"email": True, "razorpay": True, "stripe": True, "cashfree": True})
        self.assertGreaterEqual(data["uptime"], 0)
        self.assertEqual(data["rateLimit"]["maxRequests"], 100)

    @override_settings(**UNCONFIGURED)
    def test_health_with_nothing_configured(self):
        data = self.client.get("/health").json()["data"]
        self.assertEqual(data["services"], {"email": False, "razorpay": False, "stripe": False, "cashfree": False})

    def test_index_lists_endpoints(self):
        body = self.client.get("/").json()
        self.assertTrue(body["success"])
        self.assertEqual(body["endpoints"]["health"], "GET /health")


class SystemCheckTests(SimpleTestCase):
    @override_settings(APP_ENV="development", **UNCONFIGURED)
    def test_missing_credentials_warn_in_development(self):
        messages = checks.check_email() + checks.check_payment_gateways()
        self.assertEqual(len(messages), 4)
        self.assertTrue(all(isinstance(m, Warning) for m in messages))

    @override_settings(APP_ENV="production", **UNCONFIGURED)
    def test_missing_credentials_error_in_production(self):
        messages = checks.check_payment_gateways()
        self.assertTrue(all(isinstance(m, Error) for m in messages))
        self.assertIn("CASHFREE_APP_ID", messages[-1].hint)

    @override_settings(APP_ENV="production", **CONFIGURED)
    def test_configured(self):
        self.assertEqual(checks.check_email() + checks.check_payment_gateways(), [])


class CheckIntegrationsCommandTests(SimpleTestCase):
    @override_settings(**CONFIGURED)
    def test_reports_state(self):
        out = StringIO()
        call_command("check_integrations", stdout=out)
        output = out.getvalue()
        self.assertIn("razorpay", output)
        self.assertIn("cashfree", output)
        self.assertNotIn("not configured", output)

    @override_settings(**CONFIGURED)
    def test_verify_order(self):
        data = {"order_status": "PAID", "order_amount": 1497, "order_currency": "INR"}
        with patch("payments.management.commands.check_integrations.get_order", return_value=data) as get_order:
            out = StringIO()
            call_command("check_integrations", verify_order="ORD_1", stdout=out)
        self.assertEqual(get_order.call_args.args[0], "ORD_1")
        self.assertIn("ORD_1 -> PAID", out.getvalue())

    @override_settings(**CONFIGURED)
    def test_verify_order_failure(self):
        with patch("payments.management.commands.check_integrations.get_order",
                   side_effect=GatewayError("Order not found", status_code=404)):
            with self.assertRaises(CommandError):
                call_command("check_integrations", verify_order="ORD_X", stdout=StringIO())
