"""Utility helpers for the payments app."""

import base64
import hashlib
import hmac
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MINOR_UNITS = Decimal(100)


def hmac_sha256(secret: str, message) -> bytes:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def signatures_match(expected: str, received) -> bool:
    """Exact, constant-time comparison of two signature strings."""
    if not isinstance(received, str) or not received:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


def razorpay_signature(secret: str, order_id: str, payment_id: str) -> str:
    return hmac_sha256(secret, f"{order_id}|{payment_id}").hex()


def verify_razorpay_signature(secret: str, order_id: str, payment_id: str, signature: str) -> bool:
    """True iff ``signature`` is the hex HMAC-SHA256 of ``order_id|payment_id``."""
    return signatures_match(razorpay_signature(secret, order_id, payment_id), signature)


def webhook_signature(secret: str, timestamp: str, raw_body: bytes) -> str:
    """Cashfree webhook signature: base64(HMAC-SHA256(secret, timestamp + raw body))."""
    return base64.b64encode(hmac_sha256(secret, timestamp.encode("utf-8") + raw_body)).decode("ascii")


def request_signature(secret: str, body: str, timestamp: str) -> str:
    """Signature attached to outbound Cashfree requests: base64(HMAC(body + timestamp))."""
    return base64.b64encode(hmac_sha256(secret, body + timestamp)).decode("ascii")


def to_decimal(amount) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Invalid amount: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    return value


def to_minor_units(amount) -> int:
    """Rupees -> paise (or dollars -> cents), rounding half up."""
    return int((to_decimal(amount) * MINOR_UNITS).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount) -> Decimal:
    return (Decimal(int(amount)) / MINOR_UNITS).quantize(Decimal("0.01"))


def json_number(value: Decimal):
    """Render a Decimal as an int when integral, else a float, for JSON bodies."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)
