import json
import logging
from dataclasses import dataclass

from django.conf import settings
from django.utils.module_loading import import_string

from shophub.errors import InvalidSignatureError, NotConfiguredError, WebhookParseError
from .integrations.cashfree import CashfreeConfig
from .utils import signatures_match, webhook_signature

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-webhook-signature"
TIMESTAMP_HEADER = "x-webhook-timestamp"


@dataclass
class WebhookOutcome:
    event_type: str
    handled: bool
    order_id: str | None = None


def log_status_change(order_id, status, **details):
    """Default status hook; order persistence lives outside this service."""
    logger.info("Payment status change: order=%s status=%s details=%s", order_id, status, details)


def _status_hook():
    return import_string(settings.PAYMENT_STATUS_HOOK)


def _order(data: dict) -> dict:
    order = data.get("order")
    return order if isinstance(order, dict) else {}


def _payment(data: dict) -> dict:
    payment = data.get("payment")
    return payment if isinstance(payment, dict) else {}


def handle_payment_success(data: dict) -> str | None:
    order, payment = _order(data), _payment(data)
    logger.info(
        "Processing payment success webhook: order_id=%s payment_id=%s amount=%s",
        order.get("order_id"), payment.get("cf_payment_id"), payment.get("payment_amount"),
    )
    _status_hook()(order.get("order_id"), "paid", payment_id=payment.get("cf_payment_id"))
    return order.get("order_id")


def handle_payment_failed(data: dict) -> str | None:
    order, payment = _order(data), _payment(data)
    logger.info(
        "Processing payment failed webhook: order_id=%s payment_id=%s reason=%s",
        order.get("order_id"), payment.get("cf_payment_id"), payment.get("payment_message"),
    )
    _status_hook()(order.get("order_id"), "failed", payment_id=payment.get("cf_payment_id"),
                   reason=payment.get("payment_message"))
    return order.get("order_id")


def handle_payment_dropped(data: dict) -> str | None:
    order = _order(data)
    logger.info("Processing payment dropped webhook: order_id=%s", order.get("order_id"))
    _status_hook()(order.get("order_id"), "cancelled", reason="Payment dropped by user")
    return order.get("order_id")


HANDLERS = {
    "PAYMENT_SUCCESS": handle_payment_success,
    "PAYMENT_FAILED": handle_payment_failed,
    "PAYMENT_USER_DROPPED": handle_payment_dropped,
}


def event_key(event_type) -> str:
    key = str(event_type or "").upper()
    return key[: -len("_WEBHOOK")] if key.endswith("_WEBHOOK") else key


def require_headers(signature: str | None, timestamp: str | None) -> None:
    if not signature or not timestamp:
        logger.warning("Missing webhook signature or timestamp")
        raise InvalidSignatureError("Missing webhook signature")


def verify(raw_body: bytes, signature: str | None, timestamp: str | None, secret: str) -> None:
    require_headers(signature, timestamp)
    expected = webhook_signature(secret, timestamp, raw_body)
    if not signatures_match(expected, signature):
        logger.warning("Invalid webhook signature")
        raise InvalidSignatureError("Invalid webhook signature")


def handle(raw_body: bytes, signature: str | None, timestamp: str | None,
           config: CashfreeConfig | None = None) -> WebhookOutcome:
    """Verify the signed bytes, then parse and dispatch the event.

    Verification always runs before the body is parsed. Replays are
    verified and dispatched again; handlers must tolerate that.
    """
    require_headers(signature, timestamp)
    config = config or CashfreeConfig.from_settings()
    if not config.secret_key:
        raise NotConfiguredError("Payment gateway is not properly configured")
    verify(raw_body, signature, timestamp, config.secret_key)

    try:
        event = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        logger.error("Failed to parse webhook body")
        raise WebhookParseError("Invalid webhook data format")
    if not isinstance(event, dict):
        raise WebhookParseError("Invalid webhook data format")

    event_type = event.get("type")
    data = event.get("data") if isinstance(event.get("data"), dict) else {}
    logger.info(
        "Webhook received: type=%s order_id=%s order_status=%s",
        event_type, _order(data).get("order_id"), _order(data).get("order_status"),
    )

    handler = HANDLERS.get(event_key(event_type))
    if handler is None:
        logger.info("Unhandled webhook type: %s", event_type)
        return WebhookOutcome(event_type=str(event_type), handled=False, order_id=_order(data).get("order_id"))

    try:
        order_id = handler(data)
    except Exception:
        # Acknowledge anyway; the provider must not retry because of a local hook failure.
        logger.exception("Error processing %s webhook", event_type)
        return WebhookOutcome(event_type=str(event_type), handled=False, order_id=_order(data).get("order_id"))
    return WebhookOutcome(event_type=str(event_type), handled=True, order_id=order_id)
