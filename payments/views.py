import logging

from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from shophub.errors import ApiError
from shophub.responses import (
    api_error_response,
    error_response,
    internal_error_response,
    json_body,
    sanitize_input,
    success_response,
)
from . import webhook
from .integrations import cashfree

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def cashfree_create_order_view(request):
    logger.info("Payment order creation request received")
    body = json_body(request)
    if body is None:
        return error_response(400, "Invalid JSON in request body", error="INVALID_JSON")

    try:
        data = cashfree.create_order(sanitize_input(body))
    except ApiError as e:
        return api_error_response(e)
    except Exception as e:
        logger.exception("Unexpected error in create-order")
        return internal_error_response(e, "An unexpected error occurred while creating payment order")
    return success_response(data, "Payment order created successfully")


@require_GET
def cashfree_verify_view(request, order_id: str):
    logger.info("Verifying Cashfree payment for order: %s", order_id)
    try:
        data = cashfree.get_order(order_id)
    except ApiError as e:
        return api_error_response(e)
    except Exception as e:
        logger.exception("Unexpected error in payment verification")
        return internal_error_response(e, "An unexpected error occurred during payment verification")
    return success_response(data, "Payment verification completed")


@csrf_exempt
@require_POST
def cashfree_webhook_view(request):
    # request.body is the exact wire bytes; it is verified before parsing.
    logger.info("Received Cashfree webhook")
    try:
        outcome = webhook.handle(
            request.body,
            request.headers.get(webhook.SIGNATURE_HEADER),
            request.headers.get(webhook.TIMESTAMP_HEADER),
        )
    except ApiError as e:
        return api_error_response(e)
    except Exception as e:
        logger.exception("Webhook processing failed")
        return internal_error_response(e, "Webhook processing failed")
    return success_response(
        {"processed": True, "handled": outcome.handled, "type": outcome.event_type},
        "Webhook processed successfully",
    )


@require_GET
def cashfree_status_view(request):
    config = cashfree.CashfreeConfig.from_settings()
    configured = config.configured
    return success_response(
        {
            "status": "configured" if configured else "not_configured",
            "environment": config.environment,
            "baseUrl": config.base_url,
            "configurationValid": configured,
        },
        "Payment gateway status checked",
    )
