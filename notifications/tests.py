from unittest.mock import MagicMock, patch

import requests
from django.core import mail
from django.core.exceptions import ImproperlyConfigured
from django.core.mail import EmailMultiAlternatives
from django.test import SimpleTestCase, override_settings
from django.urls import reverse

from shophub.errors import NotificationError
from .apps import verify_transport
from .backends import SendGridBackend, SendGridError
from .emails import Dispatcher, MailerConfig, NotificationKind, status_info

LOCMEM = "django.core.mail.backends.locmem.EmailBackend"


def mailer(backend=LOCMEM, provider="smtp"):
    return MailerConfig(
        from_email="orders@shophub.test",
        from_name="ShopHub",
        app_url="https://shop.example.com",
        provider=provider,
        backend=backend,
        support_email="orders@shophub.test",
    )


def confirmation_payload():
    return {
        "order_id": "ORD_1",
        "customer_name": "Asha",
        "items": [{"name": "Shirt", "quantity": 2, "price": 299}],
        "total_amount": 598,
        "payment_method": "cod",
        "estimated_delivery": "Friday, 23 October 2026",
        "tracking_number": "TRK1ABCDE",
        "shipping_address": {"name": "Asha", "address": "12 Golghar Road", "city": "Gorakhpur",
                             "state": "UP", "pincode": "273001", "phone": "9876543210"},
    }


class StatusInfoTests(SimpleTestCase):
    def test_known_statuses(self):
        for status in ("confirmed", "processing", "shipped", "delivered"):
            self.assertTrue(status_info(status)["known"])

    def test_unknown_status_falls_back_to_generic(self):
        info = status_info("returned")
        self.assertFalse(info["known"])
        self.assertEqual(info["title"], "Order Status Updated")
        self.assertIn("returned", info["message"])
        self.assertFalse(status_info(None)["known"])


class DispatcherTests(SimpleTestCase):
    def setUp(self):
        mail.outbox = []
        self.dispatcher = Dispatcher(mailer())

    def test_confirmation_sent_with_html_and_text(self):
        result = self.dispatcher.send("a@b.com", NotificationKind.CONFIRMATION, confirmation_payload())

        self.assertTrue(result.success)
        self.assertTrue(result.message_id)
        self.assertEqual(len(mail.outbox), 1)
        msg = mail.outbox[0]
        self.assertEqual(msg.to, ["a@b.com"])
        self.assertEqual(msg.from_email, "ShopHub <orders@shophub.test>")
        self.assertIn("ORD_1", msg.subject)
        self.assertIn("TRK1ABCDE", msg.body)
        html, mimetype = msg.alternatives[0]
        self.assertEqual(mimetype, "text/html")
        self.assertIn("Shirt", html)
        self.assertEqual(msg.extra_headers["Message-ID"], result.message_id)

    def test_every_kind_renders(self):
        for kind in NotificationKind:
            result = self.dispatcher.send("a@b.com", kind, {**confirmation_payload(), "new_status": "shipped"})
            self.assertTrue(result.success, kind)
        self.assertEqual(len(mail.outbox), len(NotificationKind))

    def test_status_update_subject_is_total(self):
        self.dispatcher.send("a@b.com", "status_update", {"order_id": "ORD_1", "new_status": "delivered"})
        self.dispatcher.send("a@b.com", "status_update", {"order_id": "ORD_1", "new_status": "lost-in-transit"})
        self.assertIn("Delivered", mail.outbox[0].subject)
        self.assertIn("Status Update", mail.outbox[1].subject)
        self.assertIn("lost-in-transit", mail.outbox[1].body)

    def test_text_part_is_not_html_escaped(self):
        payload = {**confirmation_payload(), "customer_name": "O'Brien & Sons"}
        self.dispatcher.send("a@b.com", NotificationKind.CONFIRMATION, payload)
        self.assertIn("O'Brien & Sons", mail.outbox[0].body)

    def test_transport_failure_is_reported_not_raised(self):
        with patch.object(EmailMultiAlternatives, "send", side_effect=OSError("connection refused")):
            with self.assertLogs("notifications.emails", level="ERROR"):
                result = self.dispatcher.send("a@b.com", NotificationKind.CONFIRMATION, confirmation_payload())
        self.assertFalse(result.success)
        self.assertEqual(result.error, "connection refused")
        self.assertEqual(result.as_dict(), {"success": False, "provider": "smtp", "error": "connection refused"})

    def test_deliver_wraps_transport_failure(self):
        job = self.dispatcher.render("a@b.com", NotificationKind.WELCOME, {"customer_name": "Asha"})
        with patch.object(EmailMultiAlternatives, "send", side_effect=OSError("connection refused")):
            with self.assertRaises(NotificationError) as cm:
                self.dispatcher._deliver(job)
        self.assertEqual(cm.exception.message, "connection refused")
        self.assertIsInstance(cm.exception.__cause__, OSError)

    def test_transport_accepting_nothing_is_a_failure(self):
        with patch.object(EmailMultiAlternatives, "send", return_value=0):
            with self.assertLogs("notifications.emails", level="ERROR"):
                result = self.dispatcher.send("a@b.com", NotificationKind.WELCOME, {"customer_name": "Asha"})
        self.assertFalse(result.success)
        self.assertEqual(result.error, "Transport accepted no messages")

    def test_unknown_kind_is_reported_not_raised(self):
        result = self.dispatcher.send("a@b.com", "newsletter", {})
        self.assertFalse(result.success)
        self.assertEqual(mail.outbox, [])

    def test_missing_recipient(self):
        result = self.dispatcher.send("", NotificationKind.CONFIRMATION, confirmation_payload())
        self.assertFalse(result.success)

    def test_malformed_items_are_ignored(self):
        payload = {**confirmation_payload(), "items": "Shirt x2"}
        result = self.dispatcher.send("a@b.com", NotificationKind.CONFIRMATION, payload)
        self.assertTrue(result.success)


class SendGridBackendTests(SimpleTestCase):
    def _message(self):
        msg = EmailMultiAlternatives("Subject", "plain body", "ShopHub <orders@shophub.test>", ["a@b.com"],
                                     headers={"Message-ID": "<x@y>", "X-Order": "ORD_1"})
        msg.attach_alternative("<p>html body</p>", "text/html")
        return msg

    def _backend(self, status=202):
        backend = SendGridBackend(api_key="SG.key")
        session = MagicMock()
        session.post.return_value = MagicMock(status_code=status, text="error", headers={"X-Message-Id": "sg-123"})
        backend.session = session
        return backend, session

    def test_payload_and_message_id(self):
        backend, session = self._backend()
        msg = self._message()
        self.assertEqual(backend.send_messages([msg]), 1)

        url = session.post.call_args.args[0]
        payload = session.post.call_args.kwargs["json"]
        self.assertEqual(url, "https://api.sendgrid.com/v3/mail/send")
        self.assertEqual(payload["from"], {"email": "orders@shophub.test", "name": "ShopHub"})
        self.assertEqual(payload["personalizations"][0]["to"], [{"email": "a@b.com"}])
        self.assertEqual([c["type"] for c in payload["content"]], ["text/plain", "text/html"])
        self.assertEqual(payload["headers"], {"X-Order": "ORD_1"})
        self.assertEqual(session.post.call_args.kwargs["timeout"], 30)
        self.assertEqual(msg.provider_message_id, "sg-123")

    def test_rejected_message_raises(self):
        backend, _ = self._backend(status=401)
        with self.assertRaises(SendGridError):
            backend.send_messages([self._message()])

    def test_fail_silently(self):
        backend, session = self._backend()
        backend.fail_silently = True
        session.post.side_effect = requests.ConnectionError("down")
        self.assertEqual(backend.send_messages([self._message()]), 0)

    def test_missing_api_key(self):
        with self.assertRaises(ImproperlyConfigured):
            SendGridBackend(api_key="").send_messages([self._message()])

    def test_dispatcher_uses_provider_message_id(self):
        backend, _ = self._backend()
        dispatcher = Dispatcher(mailer(provider="sendgrid"), connection=backend)
        result = dispatcher.send("a@b.com", NotificationKind.WELCOME, {"customer_name": "Asha"})
        self.assertTrue(result.success)
        self.assertEqual(result.message_id, "sg-123")
        self.assertEqual(result.provider, "sendgrid")


class VerifyTransportTests(SimpleTestCase):
    @override_settings(APP_ENV="production", EMAIL_HOST_USER="", EMAIL_HOST_PASSWORD="")
    def test_missing_smtp_credentials_fatal_in_production(self):
        with self.assertRaises(ImproperlyConfigured):
            verify_transport(mailer(backend="django.core.mail.backends.smtp.EmailBackend"))

    @override_settings(APP_ENV="development", EMAIL_HOST_USER="", EMAIL_HOST_PASSWORD="")
    def test_missing_smtp_credentials_warn_in_development(self):
        with self.assertLogs("notifications.apps", level="WARNING"):
            self.assertFalse(verify_transport(mailer(backend="django.core.mail.backends.smtp.EmailBackend")))

    @override_settings(APP_ENV="development", EMAIL_HOST_USER="u", EMAIL_HOST_PASSWORD="p")
    def test_handshake_failure_logged_in_development(self):
        with patch("django.core.mail.backends.smtp.EmailBackend.open", side_effect=OSError("refused")):
            with self.assertLogs("notifications.apps", level="ERROR"):
                self.assertFalse(verify_transport(mailer(backend="django.core.mail.backends.smtp.EmailBackend")))


class EmailViewTests(SimpleTestCase):
    def setUp(self):
        mail.outbox = []

    def _post(self, name, payload):
        return self.client.post(reverse(name), data=payload, content_type="application/json")

    def test_send_confirmation(self):
        resp = self._post("notifications:send_confirmation",
                          {"to_email": "a@b.com", "order_data": confirmation_payload()})
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["data"]["success"])
        self.assertEqual(len(mail.outbox), 1)

    def test_send_status_update_uses_new_status(self):
        resp = self._post("notifications:send_status_update",
                          {"to_email": "a@b.com", "order_data": {"order_id": "ORD_1"}, "new_status": "shipped"})
        self.assertEqual(resp.status_code, 200)
        self.assertIn("Shipped", mail.outbox[0].subject)

    def test_send_cancellation(self):
        resp = self._post("notifications:send_cancellation",
                          {"to_email": "a@b.com", "order_data": {"order_id": "ORD_1", "customer_name": "Asha"}})
        self.assertEqual(resp.status_code, 200)
        self.assertIn("Cancelled", mail.outbox[0].subject)

    def test_invalid_request(self):
        resp = self._post("notifications:send_confirmation", {"to_email": "not-an-email", "order_data": {}})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(len(resp.json()["details"]["validationErrors"]), 2)

    def test_delivery_failure_is_500(self):
        with patch.object(EmailMultiAlternatives, "send", side_effect=OSError("refused")):
            resp = self._post("notifications:send_confirmation",
                              {"to_email": "a@b.com", "order_data": confirmation_payload()})
        self.assertEqual(resp.status_code, 500)
        self.assertFalse(resp.json()["success"])

    @override_settings(EMAIL_PROVIDER="smtp", EMAIL_HOST_USER="u", EMAIL_HOST_PASSWORD="p")
    def test_status(self):
        resp = self.client.get(reverse("notifications:status"))
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["smtp_configured"])
