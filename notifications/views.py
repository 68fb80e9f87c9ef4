import logging

from django.conf import settings
from django.core.validators import validate_email
from django.core.exceptions import ValidationError as DjangoValidationError
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from shophub.responses import error_response, json_body, sanitize_input, success_response
from .apps import email_configured
from .emails import NotificationKind, get_dispatcher

logger = logging.getLogger(__name__)


def _read(request):
    body = json_body(request)
    if body is None:
        return None, error_response(400, "Invalid JSON in request body", error="INVALID_JSON")
    body = sanitize_input(body)
    to_email = (body.get("to_email") or "").strip()
    order_data = body.get("order_data")
    errors = []
    try:
        validate_email(to_email)
    except DjangoValidationError:
        errors.append("to_email must be a valid email address")
    if not isinstance(order_data, dict) or not str(order_data.get("order_id") or "").strip():
        errors.append("order_data.order_id is required")
    if errors:
        return None, error_response(400, "Validation failed", error="VALIDATION_ERROR",
                                    details={"validationErrors": errors})
    return body, None


def _send(request, kind: NotificationKind, label: str):
    body, problem = _read(request)
    if problem:
        return problem
    payload = dict(body["order_data"])
    if kind is NotificationKind.STATUS_UPDATE:
        payload["new_status"] = body.get("new_status") or payload.get("status") or ""

    logger.info("Manual %s email request: to=%s order_id=%s", label, body["to_email"], payload.get("order_id"))
    result = get_dispatcher().send(body["to_email"], kind, payload)
    if not result.success:
        logger.error("Manual %s email failed: %s", label, result.error)
        return error_response(500, f"Failed to send {label} email", error=result.error)
    return success_response(result.as_dict(), f"Order {label} email sent successfully")


@csrf_exempt
@require_POST
def send_confirmation_view(request):
    return _send(request, NotificationKind.CONFIRMATION, "confirmation")


@csrf_exempt
@require_POST
def send_cancellation_view(request):
    return _send(request, NotificationKind.CANCELLATION, "cancellation")


@csrf_exempt
@require_POST
def send_status_update_view(request):
    return _send(request, NotificationKind.STATUS_UPDATE, "status update")


@require_GET
def email_status_view(request):
    return success_response(
        message="Email service is operational",
        provider=getattr(settings, "EMAIL_PROVIDER", "smtp"),
        smtp_configured=email_configured(),
        environment=getattr(settings, "APP_ENV", "development"),
    )
