"""Order orchestration: validate, charge, notify.

Orders live only for the duration of a request. Payment is attempted before
the confirmation email and gates it; email problems never fail an order.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string

from notifications.emails import Dispatcher, NotificationKind, NotificationResult
from payments.gateways import GatewayRegistry, PaymentRequest, PaymentResult
from shophub.errors import ApiError, GatewayError, OrderNotFoundError
from .forms import validate_order
from .utils import estimated_delivery, gen_order_id, gen_tracking_number

logger = logging.getLogger(__name__)

COD = "cod"
DEFAULT_CANCEL_REASON = "Cancelled by customer"
REFUND_TIMELINE = "5-7 business days"


@dataclass
class Order:
    id: str
    customer_email: str
    customer_name: str
    total_amount: Decimal
    items: list
    shipping_address: dict
    payment_method: str
    estimated_delivery: str
    tracking_number: str
    status: str = "pending"
    created_at: datetime = field(default_factory=timezone.now)

    @classmethod
    def from_cleaned(cls, data: dict) -> "Order":
        return cls(
            id=gen_order_id(),
            customer_email=data["customerEmail"],
            customer_name=data["customerName"],
            total_amount=data["totalAmount"],
            items=data["items"],
            shipping_address=data["shippingAddress"],
            payment_method=data["paymentMethod"],
            estimated_delivery=estimated_delivery(),
            tracking_number=gen_tracking_number(),
        )

    @property
    def requires_payment(self) -> bool:
        return self.payment_method != COD

    def payment_request(self) -> PaymentRequest:
        return PaymentRequest(
            order_id=self.id,
            amount=self.total_amount,
            customer_email=self.customer_email,
            customer_name=self.customer_name,
        )

    def email_payload(self) -> dict:
        address = self.shipping_address
        return {
            "order_id": self.id,
            "customer_name": self.customer_name,
            "items": [
                {"name": i["name"], "quantity": i["quantity"], "price": i["price"]} for i in self.items
            ],
            "total_amount": self.total_amount,
            "shipping_address": {
                "name": address.get("fullName"),
                "address": address.get("address"),
                "city": address.get("city"),
                "state": address.get("state"),
                "pincode": address.get("pincode"),
                "phone": address.get("mobile"),
            },
            "estimated_delivery": self.estimated_delivery,
            "payment_method": self.payment_method,
            "tracking_number": self.tracking_number,
        }


@dataclass
class OrderOutcome:
    order: Order
    payment: Optional[PaymentResult]
    notification: NotificationResult

    @property
    def email_sent(self) -> bool:
        return self.notification.success


@dataclass
class CancellationOutcome:
    order_id: str
    notification: Optional[NotificationResult]

    @property
    def email_sent(self) -> bool:
        return bool(self.notification and self.notification.success)


def create_order(payload: dict, *, gateways: GatewayRegistry, dispatcher: Dispatcher) -> OrderOutcome:
    """Validate ``payload``, charge paid methods and send the confirmation email.

    Raises ``ValidationError`` before any side effect, and ``GatewayError``
    when the provider refuses the charge; no email goes out in either case.
    """
    order = Order.from_cleaned(validate_order(payload))
    logger.info(
        "Creating new order: id=%s customer=%s amount=%s method=%s items=%s",
        order.id, order.customer_email, order.total_amount, order.payment_method, len(order.items),
    )

    payment = None
    if order.requires_payment:
        try:
            payment = gateways.create_order(order.payment_method, order.payment_request())
        except ApiError as e:
            logger.error("Payment processing failed for %s: %s", order.id, e.message)
            raise GatewayError(e.message, details=e.details) from e
        logger.info("Payment processed: order=%s gateway=%s amount=%s", order.id, order.payment_method, payment.amount)

    notification = dispatcher.send(order.customer_email, NotificationKind.CONFIRMATION, order.email_payload())
    if notification.success:
        logger.info("Order confirmation email sent: order=%s message_id=%s", order.id, notification.message_id)
    else:
        logger.warning("Order %s created but confirmation email failed: %s", order.id, notification.error)
    return OrderOutcome(order=order, payment=payment, notification=notification)


def order_lookup() -> Optional[Callable]:
    path = getattr(settings, "ORDER_LOOKUP", None)
    return import_string(path) if path else None


def cancel_order(order_id: str, body: dict, *, dispatcher: Dispatcher, lookup: Optional[Callable] = None) -> CancellationOutcome:
    """Send the cancellation email for ``order_id``.

    With a ``lookup`` the stored order details are used and a miss raises
    ``OrderNotFoundError``; without one the details come from ``body``.
    """
    reason = body.get("reason") or DEFAULT_CANCEL_REASON
    logger.info("Cancelling order: id=%s reason=%s", order_id, reason)

    if lookup is not None:
        stored = lookup(order_id)
        if not stored:
            raise OrderNotFoundError(f"Order {order_id} not found")
        details = dict(stored)
    else:
        details = {
            "customer_email": body.get("customerEmail"),
            "customer_name": body.get("customerName"),
            "items": body.get("items"),
            "total_amount": body.get("totalAmount"),
        }

    to = details.get("customer_email") or ""
    if not to:
        logger.warning("No customer email for cancelled order %s; skipping notification", order_id)
        return CancellationOutcome(order_id=order_id, notification=None)

    payload = {
        "order_id": order_id,
        "customer_name": details.get("customer_name") or "Customer",
        "items": details.get("items") or [],
        "total_amount": details.get("total_amount"),
        "cancellation_reason": reason,
        "refund_amount": details.get("refund_amount", details.get("total_amount")),
        "refund_timeline": REFUND_TIMELINE,
    }
    notification = dispatcher.send(to, NotificationKind.CANCELLATION, payload)
    if not notification.success:
        logger.warning("Order %s cancelled but email failed: %s", order_id, notification.error)
    return CancellationOutcome(order_id=order_id, notification=notification)


def verify_payment(body: dict, *, gateways: GatewayRegistry) -> PaymentResult:
    gateway = body.get("gateway")
    proof = body.get("paymentData")
    logger.info("Verifying payment: gateway=%s", gateway)
    result = gateways.verify_payment(gateway, proof if isinstance(proof, dict) else {})
    logger.info("Payment verified: gateway=%s payment_id=%s order_id=%s amount=%s",
                gateway, result.payment_id, result.order_id, result.amount)
    return result
