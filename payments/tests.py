from decimal import Decimal
from unittest.mock import MagicMock, patch

import stripe
from django.test import SimpleTestCase, override_settings

from shophub.errors import (
    GatewayError,
    InvalidSignatureError,
    NotConfiguredError,
    UnsupportedGatewayError,
    VerificationError,
)
from . import utils
from .gateways import Gateway, GatewayRegistry, PaymentRequest, RazorpayGateway, StripeGateway


class RazorpaySignatureTests(SimpleTestCase):
    secret = "rzp_secret"

    def test_matching_signature_verifies(self):
        sig = utils.razorpay_signature(self.secret, "order_1", "pay_1")
        self.assertTrue(utils.verify_razorpay_signature(self.secret, "order_1", "pay_1", sig))

    def test_flipping_any_character_fails(self):
        sig = utils.razorpay_signature(self.secret, "order_1", "pay_1")
        for i, ch in enumerate(sig):
            flipped = sig[:i] + ("0" if ch != "0" else "1") + sig[i + 1:]
            self.assertFalse(utils.verify_razorpay_signature(self.secret, "order_1", "pay_1", flipped))

    def test_case_and_truncation_are_not_folded(self):
        sig = utils.razorpay_signature(self.secret, "order_1", "pay_1")
        self.assertFalse(utils.verify_razorpay_signature(self.secret, "order_1", "pay_1", sig.upper()))
        self.assertFalse(utils.verify_razorpay_signature(self.secret, "order_1", "pay_1", sig[:-1]))
        self.assertFalse(utils.verify_razorpay_signature(self.secret, "order_1", "pay_1", ""))
        self.assertFalse(utils.verify_razorpay_signature(self.secret, "order_1", "pay_1", None))


class AmountConversionTests(SimpleTestCase):
    def test_minor_units_round_half_up(self):
        self.assertEqual(utils.to_minor_units(Decimal("1497")), 149700)
        self.assertEqual(utils.to_minor_units(Decimal("10.005")), 1001)
        self.assertEqual(utils.to_minor_units(Decimal("0.01")), 1)

    def test_from_minor_units(self):
        self.assertEqual(utils.from_minor_units(149700), Decimal("1497.00"))
        self.assertEqual(utils.from_minor_units(1), Decimal("0.01"))

    def test_json_number_keeps_integral_amounts_integral(self):
        self.assertEqual(utils.json_number(Decimal("1497.00")), 1497)
        self.assertIsInstance(utils.json_number(Decimal("1497.00")), int)
        self.assertEqual(utils.json_number(Decimal("10.50")), 10.5)


def _request(amount="1497"):
    return PaymentRequest(order_id="ORD_1", amount=Decimal(amount), customer_email="a@b.com", customer_name="Asha")


class RazorpayGatewayTests(SimpleTestCase):
    def setUp(self):
        self.client_mock = MagicMock()
        self.gateway = RazorpayGateway("rzp_key", "rzp_secret", client=self.client_mock)

    def test_create_order_sends_paise_and_returns_rupees(self):
        self.client_mock.order.create.return_value = {
            "id": "order_abc", "amount": 149700, "currency": "INR", "receipt": "ORD_1", "status": "created",
        }
        result = self.gateway.create_order(_request())

        data = self.client_mock.order.create.call_args.kwargs["data"]
        self.assertEqual(data["amount"], 149700)
        self.assertEqual(data["receipt"], "ORD_1")
        self.assertEqual(result.amount, Decimal("1497.00"))
        self.assertEqual(result.as_dict()["orderId"], "order_abc")
        self.assertEqual(result.as_dict()["keyId"], "rzp_key")

    def test_provider_failure_is_gateway_error(self):
        import razorpay

        self.client_mock.order.create.side_effect = razorpay.errors.BadRequestError("bad amount")
        with self.assertRaises(GatewayError):
            self.gateway.create_order(_request())

    def test_invalid_signature_never_fetches_payment(self):
        proof = {"razorpay_order_id": "order_abc", "razorpay_payment_id": "pay_1", "razorpay_signature": "deadbeef"}
        with self.assertRaises(InvalidSignatureError):
            self.gateway.verify_payment(proof)
        self.client_mock.payment.fetch.assert_not_called()

    def test_valid_signature_fetches_payment(self):
        sig = utils.razorpay_signature("rzp_secret", "order_abc", "pay_1")
        self.client_mock.payment.fetch.return_value = {"amount": 149700, "currency": "INR", "status": "captured"}
        result = self.gateway.verify_payment(
            {"razorpay_order_id": "order_abc", "razorpay_payment_id": "pay_1", "razorpay_signature": sig}
        )
        self.client_mock.payment.fetch.assert_called_once_with("pay_1", timeout=30)
        self.assertEqual(result.payment_id, "pay_1")
        self.assertEqual(result.amount, Decimal("1497.00"))

    def test_missing_fields(self):
        with self.assertRaises(VerificationError):
            self.gateway.verify_payment({"razorpay_order_id": "order_abc"})

    def test_missing_credentials(self):
        with self.assertRaises(NotConfiguredError):
            RazorpayGateway("", "").create_order(_request())


class StripeGatewayTests(SimpleTestCase):
    def setUp(self):
        self.gateway = StripeGateway("sk_test_123", api_version="2023-10-16")

    def test_create_uses_idempotency_key_and_minor_units(self):
        intent = MagicMock(id="pi_1", amount=149700, currency="inr", status="requires_payment_method",
                           client_secret="pi_1_secret")
        with patch("payments.gateways.stripe.PaymentIntent.create", return_value=intent) as create:
            result = self.gateway.create_order(_request())

        kwargs = create.call_args.kwargs
        self.assertEqual(kwargs["amount"], 149700)
        self.assertEqual(kwargs["idempotency_key"], "create_ORD_1")
        self.assertEqual(kwargs["api_key"], "sk_test_123")
        self.assertEqual(result.payment_intent_id, "pi_1")
        self.assertEqual(result.as_dict()["clientSecret"], "pi_1_secret")

    def test_stripe_error_is_gateway_error(self):
        with patch("payments.gateways.stripe.PaymentIntent.create", side_effect=stripe.StripeError("declined")):
            with self.assertRaises(GatewayError):
                self.gateway.create_order(_request())

    def test_verify_requires_succeeded_status(self):
        intent = MagicMock(id="pi_1", amount=149700, currency="inr", status="processing", metadata={})
        with patch("payments.gateways.stripe.PaymentIntent.retrieve", return_value=intent):
            with self.assertRaises(VerificationError):
                self.gateway.verify_payment({"paymentIntentId": "pi_1"})

    def test_verify_succeeded(self):
        intent = MagicMock(id="pi_1", amount=149700, currency="inr", status="succeeded", metadata={"orderId": "ORD_1"})
        with patch("payments.gateways.stripe.PaymentIntent.retrieve", return_value=intent):
            result = self.gateway.verify_payment({"paymentIntentId": "pi_1"})
        self.assertEqual(result.order_id, "ORD_1")
        self.assertEqual(result.amount, Decimal("1497.00"))


class GatewayRegistryTests(SimpleTestCase):
    def test_parse_rejects_unknown_gateway(self):
        with self.assertRaises(UnsupportedGatewayError):
            Gateway.parse("paypal")
        self.assertIs(Gateway.parse(" Stripe "), Gateway.STRIPE)

    def test_unknown_gateway_fails_before_any_call(self):
        adapter = MagicMock()
        registry = GatewayRegistry({Gateway.RAZORPAY: adapter})
        with self.assertRaises(UnsupportedGatewayError):
            registry.create_order("cod", _request())
        adapter.create_order.assert_not_called()

    @override_settings(
        RAZORPAY={"KEY_ID": "k", "KEY_SECRET": "s"},
        STRIPE={"SECRET_KEY": ""},
    )
    def test_configured_flags_from_settings(self):
        self.assertEqual(GatewayRegistry.from_settings().configured(), {"razorpay": True, "stripe": False})

    def test_verify_routes_to_selected_adapter(self):
        razorpay_adapter, stripe_adapter = MagicMock(), MagicMock()
        registry = GatewayRegistry({Gateway.RAZORPAY: razorpay_adapter, Gateway.STRIPE: stripe_adapter})
        registry.verify_payment("stripe", None)
        stripe_adapter.verify_payment.assert_called_once_with({})
        razorpay_adapter.verify_payment.assert_not_called()
