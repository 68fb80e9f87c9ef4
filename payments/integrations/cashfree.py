import json
import logging
import math
import re
import time
from dataclasses import dataclass

import requests
from requests import RequestException
from django.conf import settings
from django.utils import timezone

from shophub.errors import GatewayError, NotConfiguredError, ValidationError
from ..utils import request_signature

logger = logging.getLogger(__name__)

PRODUCTION_URL = "https://api.cashfree.com"
SANDBOX_URL = "https://sandbox.cashfree.com"
PLACEHOLDERS = {"your_app_id_here", "your_secret_key_here"}
PAYMENT_METHODS = "cc,dc,nb,upi,paylater,emi,cardlessemi,debitcardemi"
ORDER_EXPIRY_MINUTES = 30


def _ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CashfreeConfig:
    app_id: str
    secret_key: str
    environment: str = "sandbox"
    api_version: str = "2023-08-01"
    timeout: int = 30

    @classmethod
    def from_settings(cls) -> "CashfreeConfig":
        cfg = settings.CASHFREE
        return cls(
            app_id=cfg.get("APP_ID", "") or "",
            secret_key=cfg.get("SECRET_KEY", "") or "",
            environment=cfg.get("ENV", "sandbox") or "sandbox",
            api_version=cfg.get("API_VERSION", "2023-08-01"),
            timeout=cfg.get("TIMEOUT", 30),
        )

    @property
    def base_url(self) -> str:
        return PRODUCTION_URL if self.environment == "production" else SANDBOX_URL

    def missing(self) -> list:
        missing = []
        if not self.app_id or self.app_id in PLACEHOLDERS:
            missing.append("CASHFREE_APP_ID")
        if not self.secret_key or self.secret_key in PLACEHOLDERS:
            missing.append("CASHFREE_SECRET_KEY")
        return missing

    @property
    def configured(self) -> bool:
        return not self.missing()

    def require(self):
        missing = self.missing()
        if missing:
            logger.error("Missing Cashfree configuration: %s", ", ".join(missing))
            raise NotConfiguredError("Payment gateway is not properly configured. Please contact support.")


def _headers(config: CashfreeConfig, request_id: str) -> dict:
    return {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "x-api-version": config.api_version,
        "x-client-id": config.app_id,
        "x-client-secret": config.secret_key,
        "x-request-id": request_id,
    }


def _digits(phone: str) -> str:
    return re.sub(r"\D", "", phone or "")


def format_phone(phone: str) -> str:
    digits = _digits(phone)
    return f"+{digits}" if digits.startswith("91") and len(digits) > 10 else f"+91{digits}"


def validate_order_request(body: dict) -> dict:
    """Validate a create-order body; every problem is reported at once.

    Returns the cleaned fields or raises ``ValidationError`` whose ``details``
    carry ``validationErrors``.
    """
    order_id = body.get("orderId")
    amount = body.get("orderAmount")
    name = body.get("customerName")
    email = body.get("customerEmail")
    phone = body.get("customerPhone")
    return_url = body.get("returnUrl")

    errors = []
    if not isinstance(order_id, str) or not order_id.strip():
        errors.append("Order ID is required and must be a non-empty string")
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or not math.isfinite(amount) or amount <= 0:
        errors.append("Order amount is required and must be a positive number")
    if not isinstance(name, str) or len(name.strip()) < 2:
        errors.append("Customer name is required and must be at least 2 characters")
    if not isinstance(email, str) or "@" not in email:
        errors.append("Valid customer email is required")
    if not isinstance(phone, str) or not phone:
        errors.append("Customer phone is required")
    elif len(_digits(phone)) != 10:
        errors.append("Customer phone must be a valid 10-digit number")
    if not isinstance(return_url, str) or not return_url.startswith("http"):
        errors.append("Valid return URL is required")

    if errors:
        raise ValidationError("Validation failed", errors=errors, details={"validationErrors": errors})

    return {
        "order_id": order_id.strip(),
        "order_amount": amount,
        "customer_name": name.strip(),
        "customer_email": email.strip().lower(),
        "customer_phone": format_phone(phone),
        "return_url": return_url.strip(),
    }


def _parse(resp) -> dict:
    try:
        data = resp.json()
    except ValueError:
        data = None
    return data


def _upstream_error(resp, data, fallback: str) -> GatewayError:
    message = None
    if isinstance(data, dict):
        message = data.get("message") or data.get("error_description")
    return GatewayError(
        message or f"{fallback} ({resp.status_code})",
        status_code=resp.status_code,
        details={"cashfreeError": data if data is not None else resp.text[:800]},
    )


def _send(method: str, url: str, config: CashfreeConfig, order_id: str, **kwargs):
    try:
        return requests.request(method, url, timeout=config.timeout, **kwargs)
    except requests.Timeout:
        logger.error("Cashfree %s %s timed out for order %s", method, url, order_id)
        raise GatewayError("Payment gateway request timed out. Please try again.", status_code=408)
    except requests.ConnectionError as e:
        logger.error("Cashfree %s %s unreachable for order %s: %s", method, url, order_id, e)
        raise GatewayError("Payment gateway is currently unavailable. Please try again later.", status_code=503)
    except RequestException as e:
        logger.error("Cashfree %s %s failed for order %s: %s", method, url, order_id, e)
        raise GatewayError("Failed to connect to payment gateway", status_code=502)


def create_order(body: dict, config: CashfreeConfig | None = None) -> dict:
    """Create a Cashfree order and return the fields the checkout needs.

    Validation happens before the configuration check and before any
    network traffic.
    """
    cleaned = validate_order_request(body)
    config = config or CashfreeConfig.from_settings()
    config.require()

    order_id = cleaned["order_id"]
    expiry = timezone.now() + timezone.timedelta(minutes=ORDER_EXPIRY_MINUTES)
    payload = {
        "order_id": order_id,
        "order_amount": cleaned["order_amount"],
        "order_currency": "INR",
        "customer_details": {
            "customer_id": f"customer_{_ms()}",
            "customer_name": cleaned["customer_name"],
            "customer_email": cleaned["customer_email"],
            "customer_phone": cleaned["customer_phone"],
        },
        "order_meta": {
            "return_url": cleaned["return_url"],
            "notify_url": f"{settings.APP_URL.rstrip('/')}/api/payment/webhook",
            "payment_methods": PAYMENT_METHODS,
        },
        "order_expiry_time": expiry.isoformat(),
        "order_note": f"Payment for order {order_id}",
    }
    raw = json.dumps(payload, separators=(",", ":"))
    timestamp = str(_ms())
    headers = _headers(config, f"req_{timestamp}")
    headers["x-idempotency-key"] = f"idem_{order_id}_{timestamp}"
    headers["x-timestamp"] = timestamp
    headers["x-signature"] = request_signature(config.secret_key, raw, timestamp)

    logger.info("Creating Cashfree order %s amount=%s env=%s", order_id, cleaned["order_amount"], config.environment)
    resp = _send("POST", f"{config.base_url}/pg/orders", config, order_id, data=raw.encode("utf-8"), headers=headers)
    data = _parse(resp)

    if not 200 <= resp.status_code < 300:
        logger.error("Cashfree create order %s returned %s: %s", order_id, resp.status_code, data)
        raise _upstream_error(resp, data, "Payment gateway error")
    if not isinstance(data, dict):
        raise GatewayError("Invalid response format from payment gateway", status_code=502)
    if not data.get("payment_session_id"):
        logger.error("Cashfree response for %s missing payment_session_id: %s", order_id, list(data))
        raise GatewayError(
            "Payment gateway returned incomplete response",
            status_code=502,
            details={"receivedFields": list(data)},
        )

    logger.info("Cashfree order created: cf_order_id=%s order_id=%s", data.get("cf_order_id"), data.get("order_id"))
    return {
        "cf_order_id": data.get("cf_order_id"),
        "order_id": data.get("order_id"),
        "payment_session_id": data.get("payment_session_id"),
        "order_status": data.get("order_status"),
        "order_amount": data.get("order_amount"),
        "order_currency": data.get("order_currency"),
        "order_expiry_time": data.get("order_expiry_time"),
    }


def get_order(order_id: str, config: CashfreeConfig | None = None) -> dict:
    order_id = (order_id or "").strip()
    if not order_id:
        raise ValidationError("Valid order ID is required")
    config = config or CashfreeConfig.from_settings()
    config.require()

    headers = _headers(config, f"verify_{_ms()}")
    resp = _send("GET", f"{config.base_url}/pg/orders/{order_id}", config, order_id, headers=headers)
    data = _parse(resp)
    if not 200 <= resp.status_code < 300:
        logger.error("Cashfree order status %s returned %s: %s", order_id, resp.status_code, data)
        raise _upstream_error(resp, data, "Verification failed")
    if not isinstance(data, dict):
        raise GatewayError("Invalid verification response from payment gateway", status_code=502)

    logger.info("Cashfree order %s status=%s amount=%s", order_id, data.get("order_status"), data.get("order_amount"))
    return data
