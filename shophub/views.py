import time

from django.conf import settings
from django.views.decorators.http import require_GET

from notifications.apps import email_configured
from payments.gateways import GatewayRegistry
from payments.integrations.cashfree import CashfreeConfig
from .responses import error_response, success_response

ENDPOINTS = {
    "health": "GET /health",
    "createOrder": "POST /api/orders/create",
    "cancelOrder": "POST /api/orders/cancel/:orderId",
    "verifyPayment": "POST /api/orders/verify-payment",
    "sendConfirmation": "POST /api/email/send-confirmation",
    "sendCancellation": "POST /api/email/send-cancellation",
    "sendStatusUpdate": "POST /api/email/send-status-update",
    "emailStatus": "GET /api/email/status",
    "createPaymentOrder": "POST /api/payment/create-order",
    "verifyPaymentOrder": "GET /api/payment/verify/:orderId",
    "paymentWebhook": "POST /api/payment/webhook",
    "paymentStatus": "GET /api/payment/status",
}


def uptime_seconds() -> float:
    from django.apps import apps

    return round(time.monotonic() - apps.get_app_config("shophub").started_at, 3)


@require_GET
def health_view(request):
    gateways = GatewayRegistry.from_settings().configured()
    return success_response(
        {
            "status": "OK",
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "environment": settings.APP_ENV,
            "uptime": uptime_seconds(),
            "services": {
                "email": email_configured(),
                "razorpay": gateways.get("razorpay", False),
                "stripe": gateways.get("stripe", False),
                "cashfree": CashfreeConfig.from_settings().configured,
            },
            "rateLimit": {
                "windowMs": settings.RATE_LIMIT_WINDOW_MS,
                "maxRequests": settings.RATE_LIMIT_MAX_REQUESTS,
            },
        },
        "Server is running",
    )


@require_GET
def index_view(request):
    return success_response(
        message=f"{settings.SERVICE_NAME} API",
        version=settings.SERVICE_VERSION,
        endpoints=ENDPOINTS,
    )


def api_not_found_view(request, path=""):
    return error_response(
        404,
        "API endpoint not found",
        error="NOT_FOUND",
        path=request.path,
        method=request.method,
        availableEndpoints=list(ENDPOINTS.values()),
    )


def not_found_handler(request, exception=None):
    return error_response(404, "Not found", error="NOT_FOUND", path=request.path)


def server_error_handler(request):
    return error_response(500, "Internal server error", error="Internal server error")
