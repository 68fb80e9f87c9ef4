import json
import logging
import re

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.http import HttpResponse, JsonResponse
from django.utils import timezone

from .errors import ApiError, InternalError

logger = logging.getLogger(__name__)

SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)


def now_iso() -> str:
    return timezone.now().isoformat().replace("+00:00", "Z")


def json_body(request):
    """Parse a JSON request body, returning ``None`` when it is not a JSON object."""
    try:
        data = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def sanitize_input(value):
    """Strip ``<script>`` blocks from every string nested in ``value``."""
    if isinstance(value, str):
        return SCRIPT_RE.sub("", value)
    if isinstance(value, dict):
        return {k: sanitize_input(v) for k, v in value.items()}
    if isinstance(value, list):
        return [sanitize_input(v) for v in value]
    return value


def _safe_json(payload: dict, status: int) -> HttpResponse:
    try:
        return JsonResponse(payload, status=status, encoder=DjangoJSONEncoder)
    except (TypeError, ValueError):
        logger.exception("Failed to serialise JSON response (status=%s)", status)
        return HttpResponse("Internal Server Error", status=500, content_type="text/plain")


def success_response(data=None, message: str = "Success", status: int = 200, **extra) -> HttpResponse:
    payload = {"success": True, "message": message}
    if data is not None:
        payload["data"] = data
    payload.update(extra)
    payload.setdefault("timestamp", now_iso())
    return _safe_json(payload, status)


def error_response(status: int, message: str, error: str | None = None, details: dict | None = None, **extra) -> HttpResponse:
    payload = {
        "success": False,
        "message": message,
        "error": error or message,
        "timestamp": now_iso(),
    }
    if details:
        payload["details"] = details
    payload.update(extra)
    logger.warning("API error %s: %s", status, message)
    return _safe_json(payload, status)


def api_error_response(exc: ApiError, message: str | None = None, **extra) -> HttpResponse:
    """Render a domain error. ``message`` overrides the headline, the error text is kept."""
    return error_response(
        exc.status_code,
        message or exc.message,
        error=exc.message if message else exc.code,
        details=exc.details,
        **extra,
    )


def internal_error_response(exc: Exception, message: str = "Internal server error", **extra) -> HttpResponse:
    error = InternalError(str(exc) if settings.DEBUG else "Internal server error")
    return error_response(error.status_code, message, error=error.message, **extra)
