"""Payment gateway adapter.

One class per provider behind a closed :class:`Gateway` enumeration. Callers
always deal in major currency units (rupees); conversion to the provider's
minor unit happens inside each adapter.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

import razorpay
import requests
import stripe
from django.conf import settings

from shophub.errors import (
    GatewayError,
    InvalidSignatureError,
    NotConfiguredError,
    UnsupportedGatewayError,
    VerificationError,
)
from .utils import from_minor_units, json_number, to_minor_units, verify_razorpay_signature

logger = logging.getLogger(__name__)


class Gateway(Enum):
    RAZORPAY = "razorpay"
    STRIPE = "stripe"

    @classmethod
    def parse(cls, value) -> "Gateway":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            raise UnsupportedGatewayError(f"Unsupported payment gateway: {value}")


@dataclass(frozen=True)
class PaymentRequest:
    order_id: str
    amount: Decimal
    customer_email: str
    customer_name: str


@dataclass
class PaymentResult:
    gateway: Gateway
    amount: Decimal
    currency: str
    success: bool = True
    order_id: Optional[str] = None
    payment_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    status: Optional[str] = None
    extra: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        data = {
            "success": self.success,
            "gateway": self.gateway.value,
            "amount": json_number(self.amount),
            "currency": self.currency,
        }
        if self.order_id is not None:
            data["orderId"] = self.order_id
        if self.payment_id is not None:
            data["paymentId"] = self.payment_id
        if self.payment_intent_id is not None:
            data["paymentIntentId"] = self.payment_intent_id
        if self.status is not None:
            data["status"] = self.status
        data.update(self.extra)
        return data


class RazorpayGateway:
    gateway = Gateway.RAZORPAY

    def __init__(self, key_id: str, key_secret: str, currency: str = "INR", timeout: int = 30, client=None):
        self.key_id = key_id
        self.key_secret = key_secret
        self.currency = currency
        self.timeout = timeout
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def client(self):
        if not self.configured:
            raise NotConfiguredError("Razorpay not configured")
        if self._client is None:
            self._client = razorpay.Client(auth=(self.key_id, self.key_secret))
        return self._client

    def create_order(self, request: PaymentRequest) -> PaymentResult:
        client = self.client()
        data = {
            "amount": to_minor_units(request.amount),
            "currency": self.currency,
            "receipt": request.order_id,
            "notes": {
                "orderId": request.order_id,
                "customerEmail": request.customer_email,
                "customerName": request.customer_name,
            },
        }
        try:
            order = client.order.create(data=data, timeout=self.timeout)
        except (razorpay.errors.BadRequestError, razorpay.errors.GatewayError,
                razorpay.errors.ServerError, requests.RequestException) as e:
            logger.error("Razorpay order creation failed for %s: %s", request.order_id, e)
            raise GatewayError(f"Failed to create Razorpay order: {e}")

        logger.info("Razorpay order created: %s (receipt=%s)", order.get("id"), request.order_id)
        return PaymentResult(
            gateway=self.gateway,
            order_id=order.get("id"),
            amount=from_minor_units(order.get("amount", data["amount"])),
            currency=order.get("currency", self.currency),
            status=order.get("status"),
            extra={"receipt": order.get("receipt", request.order_id), "keyId": self.key_id},
        )

    def verify_payment(self, proof: dict) -> PaymentResult:
        client = self.client()
        order_id = proof.get("razorpay_order_id") or ""
        payment_id = proof.get("razorpay_payment_id") or ""
        signature = proof.get("razorpay_signature") or ""
        missing = [k for k, v in (("razorpay_order_id", order_id), ("razorpay_payment_id", payment_id),
                                  ("razorpay_signature", signature)) if not v]
        if missing:
            raise VerificationError(f"Missing fields: {', '.join(missing)}")

        if not verify_razorpay_signature(self.key_secret, order_id, payment_id, signature):
            logger.warning("Razorpay signature mismatch for order=%s payment=%s", order_id, payment_id)
            raise InvalidSignatureError("Invalid payment signature")

        try:
            payment = client.payment.fetch(payment_id, timeout=self.timeout)
        except (razorpay.errors.BadRequestError, razorpay.errors.GatewayError,
                razorpay.errors.ServerError, requests.RequestException) as e:
            logger.error("Razorpay payment fetch failed for %s: %s", payment_id, e)
            raise GatewayError(f"Payment verification failed: {e}")

        logger.info("Razorpay payment verified: %s", payment_id)
        return PaymentResult(
            gateway=self.gateway,
            order_id=order_id,
            payment_id=payment_id,
            amount=from_minor_units(payment.get("amount", 0)),
            currency=payment.get("currency", self.currency),
            status=payment.get("status"),
            extra={"method": payment.get("method")},
        )


class StripeGateway:
    gateway = Gateway.STRIPE

    def __init__(self, secret_key: str, currency: str = "inr", api_version: Optional[str] = None):
        self.secret_key = secret_key
        self.currency = currency
        self.api_version = api_version

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    def _options(self) -> dict:
        if not self.configured:
            raise NotConfiguredError("Stripe not configured")
        options = {"api_key": self.secret_key}
        if self.api_version:
            options["stripe_version"] = self.api_version
        return options

    def create_order(self, request: PaymentRequest) -> PaymentResult:
        options = self._options()
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(request.amount),
                currency=self.currency,
                metadata={
                    "orderId": request.order_id,
                    "customerEmail": request.customer_email,
                    "customerName": request.customer_name,
                },
                automatic_payment_methods={"enabled": True},
                idempotency_key=f"create_{request.order_id}",
                **options,
            )
        except stripe.StripeError as e:
            logger.error("Stripe payment intent creation failed for %s: %s", request.order_id, e)
            raise GatewayError(f"Failed to create Stripe payment intent: {e.user_message or e}")

        logger.info("Stripe payment intent created: %s (order=%s)", intent.id, request.order_id)
        return PaymentResult(
            gateway=self.gateway,
            payment_intent_id=intent.id,
            amount=from_minor_units(intent.amount),
            currency=intent.currency,
            status=intent.status,
            extra={"clientSecret": intent.client_secret},
        )

    def verify_payment(self, proof: dict) -> PaymentResult:
        options = self._options()
        intent_id = proof.get("paymentIntentId") or ""
        if not intent_id:
            raise VerificationError("Missing fields: paymentIntentId")
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, **options)
        except stripe.StripeError as e:
            logger.error("Stripe payment verification failed for %s: %s", intent_id, e)
            raise GatewayError(f"Payment verification failed: {e.user_message or e}")

        if intent.status != "succeeded":
            raise VerificationError(f"Payment not completed (status: {intent.status})")

        logger.info("Stripe payment verified: %s", intent_id)
        metadata = intent.metadata or {}
        return PaymentResult(
            gateway=self.gateway,
            payment_id=intent.id,
            payment_intent_id=intent.id,
            order_id=metadata.get("orderId"),
            amount=from_minor_units(intent.amount),
            currency=intent.currency,
            status=intent.status,
        )


class GatewayRegistry:
    """Maps each :class:`Gateway` to its adapter instance."""

    def __init__(self, adapters: dict):
        self.adapters = adapters

    @classmethod
    def from_settings(cls) -> "GatewayRegistry":
        rzp = settings.RAZORPAY
        stp = settings.STRIPE
        return cls({
            Gateway.RAZORPAY: RazorpayGateway(
                rzp.get("KEY_ID", ""), rzp.get("KEY_SECRET", ""),
                currency=rzp.get("CURRENCY", "INR"), timeout=rzp.get("TIMEOUT", 30),
            ),
            Gateway.STRIPE: StripeGateway(
                stp.get("SECRET_KEY", ""),
                currency=stp.get("CURRENCY", "inr"), api_version=stp.get("API_VERSION"),
            ),
        })

    def get(self, gateway):
        gateway = Gateway.parse(gateway)
        try:
            return self.adapters[gateway]
        except KeyError:
            raise UnsupportedGatewayError(f"Unsupported payment gateway: {gateway.value}")

    def create_order(self, gateway, request: PaymentRequest) -> PaymentResult:
        return self.get(gateway).create_order(request)

    def verify_payment(self, gateway, proof: dict) -> PaymentResult:
        return self.get(gateway).verify_payment(proof or {})

    def configured(self) -> dict:
        return {g.value: adapter.configured for g, adapter in self.adapters.items()}
