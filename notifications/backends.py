"""Email backend that delivers through the SendGrid v3 Web API."""

import logging
from email.utils import parseaddr

import requests
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.mail.backends.base import BaseEmailBackend

logger = logging.getLogger(__name__)

SENDGRID_API_BASE = "https://api.sendgrid.com"
SEND_ENDPOINT = "/v3/mail/send"


class SendGridError(Exception):
    pass


class SendGridBackend(BaseEmailBackend):
    """Send ``EmailMessage`` objects with a single HTTPS call each.

    The ``X-Message-Id`` returned by SendGrid is stored on the message as
    ``provider_message_id``.
    """

    def __init__(self, api_key=None, timeout=None, fail_silently=False, **kwargs):
        super().__init__(fail_silently=fail_silently, **kwargs)
        self.api_key = api_key or getattr(settings, "SENDGRID_API_KEY", "")
        self.timeout = timeout or getattr(settings, "EMAIL_TIMEOUT", None) or 30
        self.session = None

    def open(self):
        if not self.api_key:
            raise ImproperlyConfigured("SendGrid API key not configured")
        if self.session is not None:
            return False
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        })
        return True

    def close(self):
        if self.session is not None:
            self.session.close()
            self.session = None

    def send_messages(self, email_messages):
        if not email_messages:
            return 0
        try:
            new_session = self.open()
        except ImproperlyConfigured:
            if not self.fail_silently:
                raise
            return 0
        sent = 0
        try:
            for message in email_messages:
                try:
                    self._send(message)
                    sent += 1
                except (requests.RequestException, SendGridError):
                    if not self.fail_silently:
                        raise
                    logger.exception("SendGrid delivery failed for %s", message.to)
        finally:
            if new_session:
                self.close()
        return sent

    def _payload(self, message) -> dict:
        name, address = parseaddr(message.from_email)
        sender = {"email": address}
        if name:
            sender["name"] = name

        content = [{"type": "text/plain", "value": message.body}]
        for alt, mimetype in getattr(message, "alternatives", []):
            if mimetype == "text/html":
                content.append({"type": "text/html", "value": alt})

        personalization = {"to": [{"email": a} for a in message.to]}
        if message.cc:
            personalization["cc"] = [{"email": a} for a in message.cc]
        if message.bcc:
            personalization["bcc"] = [{"email": a} for a in message.bcc]

        payload = {
            "personalizations": [personalization],
            "from": sender,
            "subject": message.subject,
            "content": content,
        }
        if message.reply_to:
            payload["reply_to"] = {"email": message.reply_to[0]}
        headers = {k: v for k, v in (message.extra_headers or {}).items() if k.lower() != "message-id"}
        if headers:
            payload["headers"] = headers
        return payload

    def _send(self, message):
        resp = self.session.post(SENDGRID_API_BASE + SEND_ENDPOINT, json=self._payload(message), timeout=self.timeout)
        if resp.status_code not in (200, 202):
            raise SendGridError(f"SendGrid returned {resp.status_code}: {resp.text[:500]}")
        message.provider_message_id = resp.headers.get("X-Message-Id")
        logger.debug("SendGrid accepted message to %s (id=%s)", message.to, message.provider_message_id)
