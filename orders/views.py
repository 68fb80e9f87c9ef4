import logging
import time

from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from notifications.emails import get_dispatcher
from payments.gateways import GatewayRegistry
from payments.utils import json_number
from shophub.errors import ApiError, GatewayError, ValidationError
from shophub.responses import (
    api_error_response,
    error_response,
    internal_error_response,
    json_body,
    now_iso,
    sanitize_input,
    success_response,
)
from . import services

logger = logging.getLogger(__name__)


def _invalid_json():
    return error_response(400, "Invalid JSON in request body", error="INVALID_JSON")


@csrf_exempt
@require_POST
def create_order_view(request):
    started = time.monotonic()
    body = json_body(request)
    if body is None:
        return _invalid_json()

    try:
        outcome = services.create_order(
            sanitize_input(body),
            gateways=GatewayRegistry.from_settings(),
            dispatcher=get_dispatcher(),
        )
    except ValidationError as e:
        logger.warning("Order validation failed: %s", e.errors)
        return error_response(400, "Validation failed", error=e.code, errors=e.errors)
    except GatewayError as e:
        return api_error_response(e, "Payment processing failed")
    except Exception as e:
        processing_ms = int((time.monotonic() - started) * 1000)
        logger.exception("Order creation failed for %s", body.get("customerEmail"))
        return internal_error_response(e, "Failed to create order", processingTime=processing_ms)

    order = outcome.order
    return success_response(
        message="Order created successfully",
        status=201,
        order={
            "id": order.id,
            "status": order.status,
            "totalAmount": json_number(order.total_amount),
            "estimatedDelivery": order.estimated_delivery,
            "trackingNumber": order.tracking_number,
            "emailSent": outcome.email_sent,
        },
        payment=outcome.payment.as_dict() if outcome.payment else None,
        processingTime=int((time.monotonic() - started) * 1000),
        timestamp=now_iso(),
    )


@csrf_exempt
@require_POST
def cancel_order_view(request, order_id: str):
    body = json_body(request)
    if body is None:
        return _invalid_json()

    try:
        outcome = services.cancel_order(
            order_id,
            sanitize_input(body),
            dispatcher=get_dispatcher(),
            lookup=services.order_lookup(),
        )
    except ApiError as e:
        return api_error_response(e)
    except Exception as e:
        logger.exception("Order cancellation failed for %s", order_id)
        return internal_error_response(e, "Failed to cancel order")

    return success_response(
        message="Order cancelled successfully",
        orderId=outcome.order_id,
        emailSent=outcome.email_sent,
    )


@csrf_exempt
@require_POST
def verify_payment_view(request):
    body = json_body(request)
    if body is None:
        return _invalid_json()

    try:
        result = services.verify_payment(body, gateways=GatewayRegistry.from_settings())
    except ApiError as e:
        logger.error("Payment verification failed: %s", e.message)
        return error_response(400, "Payment verification failed", error=e.message)
    except Exception as e:
        logger.exception("Payment verification failed")
        return internal_error_response(e, "Payment verification failed")

    return success_response(
        message="Payment verified successfully",
        verification=result.as_dict(),
    )
