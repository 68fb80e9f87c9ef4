from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.core import mail
from django.test import SimpleTestCase, override_settings
from django.urls import reverse

from notifications.emails import NotificationKind, NotificationResult
from payments.gateways import Gateway, PaymentResult
from shophub.errors import GatewayError, OrderNotFoundError, ValidationError
from . import services, utils
from .forms import validate_order


def order_payload(**overrides):
    payload = {
        "customerEmail": "a@b.com",
        "customerName": "Asha Verma",
        "totalAmount": 1497,
        "items": [
            {"name": "Shirt", "quantity": 2, "price": 299},
            {"name": "Jeans", "quantity": 1, "price": 899},
        ],
        "shippingAddress": {
            "fullName": "Asha Verma",
            "mobile": "9876543210",
            "pincode": "273001",
            "address": "12 Golghar Road, Near Clock Tower",
            "city": "Gorakhpur",
            "state": "Uttar Pradesh",
        },
        "paymentMethod": "cod",
    }
    payload.update(overrides)
    return payload


def sent(message_id="<msg-1@shophub.test>"):
    return NotificationResult(True, "smtp", message_id=message_id)


def failed(error="SMTP down"):
    return NotificationResult(False, "smtp", error=error)


class OrderUtilsTests(SimpleTestCase):
    def test_order_id_format(self):
        self.assertRegex(utils.gen_order_id(), r"^ORD_\d{13}_[0-9A-Z]{9}$")

    def test_tracking_number_format(self):
        self.assertRegex(utils.gen_tracking_number(), r"^TRK\d{13}[0-9A-Z]{5}$")

    def test_estimated_delivery_is_four_days_out(self):
        self.assertEqual(utils.estimated_delivery(date(2026, 10, 19)), "Friday, 23 October 2026")


class ValidateOrderTests(SimpleTestCase):
    def test_valid_payload(self):
        data = validate_order(order_payload(customerEmail="A@B.com"))
        self.assertEqual(data["totalAmount"], Decimal("1497"))
        self.assertEqual(data["customerEmail"], "a@b.com")
        self.assertEqual(data["items"][0]["quantity"], 2)

    def test_every_problem_is_reported(self):
        payload = order_payload(totalAmount=0, paymentMethod="paypal", items=[{"name": "", "quantity": 0, "price": -1}])
        payload["shippingAddress"]["pincode"] = "12345"
        payload["shippingAddress"]["mobile"] = "12345"
        with self.assertRaises(ValidationError) as cm:
            validate_order(payload)
        fields = {e["field"] for e in cm.exception.errors}
        self.assertTrue({
            "totalAmount", "paymentMethod", "items[0].name", "items[0].quantity", "items[0].price",
            "shippingAddress.pincode", "shippingAddress.mobile",
        } <= fields)

    def test_empty_items_rejected(self):
        with self.assertRaises(ValidationError) as cm:
            validate_order(order_payload(items=[]))
        self.assertEqual(cm.exception.errors[0]["field"], "items")


class CreateOrderServiceTests(SimpleTestCase):
    def setUp(self):
        self.gateways = MagicMock()
        self.dispatcher = MagicMock()
        self.dispatcher.send.return_value = sent()

    def test_cod_never_calls_gateway(self):
        outcome = services.create_order(order_payload(), gateways=self.gateways, dispatcher=self.dispatcher)
        self.gateways.create_order.assert_not_called()
        self.assertIsNone(outcome.payment)
        self.assertTrue(outcome.email_sent)

    def test_gateway_failure_sends_no_email(self):
        self.gateways.create_order.side_effect = GatewayError("Card declined")
        with self.assertRaises(GatewayError) as cm:
            services.create_order(order_payload(paymentMethod="razorpay"),
                                  gateways=self.gateways, dispatcher=self.dispatcher)
        self.assertEqual(cm.exception.message, "Card declined")
        self.assertEqual(cm.exception.status_code, 400)
        self.dispatcher.send.assert_not_called()

    def test_paid_order_charges_total_in_rupees(self):
        self.gateways.create_order.return_value = PaymentResult(
            gateway=Gateway.RAZORPAY, amount=Decimal("1497.00"), currency="INR", order_id="order_abc",
        )
        services.create_order(order_payload(paymentMethod="razorpay"), gateways=self.gateways, dispatcher=self.dispatcher)
        gateway, request = self.gateways.create_order.call_args.args
        self.assertEqual(gateway, "razorpay")
        self.assertEqual(request.amount, Decimal("1497"))
        self.assertTrue(request.order_id.startswith("ORD_"))

    def test_confirmation_payload(self):
        outcome = services.create_order(order_payload(), gateways=self.gateways, dispatcher=self.dispatcher)
        to, kind, payload = self.dispatcher.send.call_args.args
        self.assertEqual(to, "a@b.com")
        self.assertIs(kind, NotificationKind.CONFIRMATION)
        self.assertEqual(payload["order_id"], outcome.order.id)
        self.assertEqual(payload["shipping_address"]["phone"], "9876543210")
        self.assertEqual(payload["tracking_number"], outcome.order.tracking_number)

    def test_invalid_payload_has_no_side_effects(self):
        with self.assertRaises(ValidationError):
            services.create_order(order_payload(customerEmail="nope", paymentMethod="stripe"),
                                  gateways=self.gateways, dispatcher=self.dispatcher)
        self.gateways.create_order.assert_not_called()
        self.dispatcher.send.assert_not_called()


class CancelOrderServiceTests(SimpleTestCase):
    def setUp(self):
        self.dispatcher = MagicMock()
        self.dispatcher.send.return_value = sent()

    def test_uses_request_details_without_lookup(self):
        outcome = services.cancel_order("ORD_1", {"reason": "Changed mind", "customerEmail": "a@b.com"},
                                        dispatcher=self.dispatcher)
        to, kind, payload = self.dispatcher.send.call_args.args
        self.assertEqual(to, "a@b.com")
        self.assertIs(kind, NotificationKind.CANCELLATION)
        self.assertEqual(payload["cancellation_reason"], "Changed mind")
        self.assertTrue(outcome.email_sent)

    def test_lookup_miss_is_not_found(self):
        with self.assertRaises(OrderNotFoundError):
            services.cancel_order("ORD_X", {}, dispatcher=self.dispatcher, lookup=lambda order_id: None)
        self.dispatcher.send.assert_not_called()

    def test_lookup_details_win(self):
        stored = {"customer_email": "stored@b.com", "customer_name": "Stored", "total_amount": 999}
        services.cancel_order("ORD_1", {"customerEmail": "other@b.com"}, dispatcher=self.dispatcher,
                              lookup=lambda order_id: stored)
        self.assertEqual(self.dispatcher.send.call_args.args[0], "stored@b.com")

    def test_no_recipient_skips_email(self):
        outcome = services.cancel_order("ORD_1", {}, dispatcher=self.dispatcher)
        self.dispatcher.send.assert_not_called()
        self.assertFalse(outcome.email_sent)


def _lookup_miss(order_id):
    return None


class OrderViewTests(SimpleTestCase):
    def _post(self, name, payload, args=None):
        return self.client.post(reverse(name, args=args), data=payload, content_type="application/json")

    def setUp(self):
        mail.outbox = []

    def test_cod_order_scenario(self):
        resp = self._post("orders:create", order_payload())
        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["order"]["totalAmount"], 1497)
        self.assertEqual(body["order"]["status"], "pending")
        self.assertRegex(body["order"]["trackingNumber"], r"^TRK\d+")
        self.assertTrue(body["order"]["emailSent"])
        self.assertIsNone(body["payment"])
        self.assertIn("processingTime", body)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(body["order"]["id"], mail.outbox[0].subject)

    def test_email_failure_still_creates_order(self):
        with patch("notifications.emails.Dispatcher.send", return_value=failed()):
            resp = self._post("orders:create", order_payload())
        self.assertEqual(resp.status_code, 201)
        self.assertFalse(resp.json()["order"]["emailSent"])

    def test_gateway_failure_is_400_without_email(self):
        with patch("payments.gateways.GatewayRegistry.create_order", side_effect=GatewayError("Card declined")):
            resp = self._post("orders:create", order_payload(paymentMethod="stripe"))
        self.assertEqual(resp.status_code, 400)
        body = resp.json()
        self.assertEqual(body["message"], "Payment processing failed")
        self.assertEqual(body["error"], "Card declined")
        self.assertEqual(mail.outbox, [])

    def test_unconfigured_gateway_is_reported_as_payment_failure(self):
        resp = self._post("orders:create", order_payload(paymentMethod="razorpay"))
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Razorpay not configured")
        self.assertEqual(mail.outbox, [])

    def test_validation_failure_lists_errors(self):
        resp = self._post("orders:create", order_payload(totalAmount=-1))
        self.assertEqual(resp.status_code, 400)
        body = resp.json()
        self.assertEqual(body["message"], "Validation failed")
        self.assertEqual(body["errors"][0]["field"], "totalAmount")

    def test_paid_order_returns_payment(self):
        result = PaymentResult(gateway=Gateway.STRIPE, amount=Decimal("1497.00"), currency="inr",
                               payment_intent_id="pi_1", extra={"clientSecret": "pi_1_secret"})
        with patch("payments.gateways.GatewayRegistry.create_order", return_value=result):
            resp = self._post("orders:create", order_payload(paymentMethod="stripe"))
        self.assertEqual(resp.status_code, 201)
        payment = resp.json()["payment"]
        self.assertEqual(payment["paymentIntentId"], "pi_1")
        self.assertEqual(payment["amount"], 1497)

    def test_paid_order_with_email_failure_keeps_payment(self):
        result = PaymentResult(gateway=Gateway.STRIPE, amount=Decimal("1497.00"), currency="inr",
                               payment_intent_id="pi_1", extra={"clientSecret": "pi_1_secret"})
        with patch("payments.gateways.GatewayRegistry.create_order", return_value=result), \
                patch("notifications.emails.Dispatcher.send", return_value=failed()):
            resp = self._post("orders:create", order_payload(paymentMethod="stripe"))
        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertFalse(body["order"]["emailSent"])
        self.assertIsNotNone(body["payment"])
        self.assertEqual(body["payment"]["paymentIntentId"], "pi_1")

    def test_script_tags_are_stripped(self):
        resp = self._post("orders:create", order_payload(customerName="Asha<script>alert(1)</script>"))
        self.assertEqual(resp.status_code, 201)
        self.assertNotIn("<script>", mail.outbox[0].body)

    def test_cancel_order(self):
        resp = self._post("orders:cancel", {"reason": "Changed mind", "customerEmail": "a@b.com"}, args=["ORD_1"])
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["orderId"], "ORD_1")
        self.assertTrue(body["emailSent"])
        self.assertEqual(mail.outbox[0].to, ["a@b.com"])

    @override_settings(ORDER_LOOKUP="orders.tests._lookup_miss")
    def test_cancel_unknown_order_with_lookup(self):
        resp = self._post("orders:cancel", {"reason": "x"}, args=["ORD_404"])
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(mail.outbox, [])

    def test_verify_payment_unsupported_gateway(self):
        resp = self._post("orders:verify_payment", {"gateway": "paypal", "paymentData": {}})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Payment verification failed")

    def test_verify_payment_success(self):
        result = PaymentResult(gateway=Gateway.RAZORPAY, amount=Decimal("1497.00"), currency="INR",
                               order_id="order_abc", payment_id="pay_1", status="captured")
        with patch("payments.gateways.GatewayRegistry.verify_payment", return_value=result) as verify:
            resp = self._post("orders:verify_payment", {"gateway": "razorpay", "paymentData": {"x": 1}})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["verification"]["paymentId"], "pay_1")
        verify.assert_called_once_with("razorpay", {"x": 1})
