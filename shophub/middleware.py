import logging
import time

from .errors import ApiError
from .responses import api_error_response, internal_error_response

logger = logging.getLogger(__name__)


class RequestLogMiddleware:
    """Log method, path, status and duration of every request."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.monotonic()
        response = self.get_response(request)
        duration_ms = (time.monotonic() - started) * 1000
        logger.info(
            "Request completed: method=%s path=%s status=%s duration=%.0fms ip=%s",
            request.method,
            request.path,
            response.status_code,
            duration_ms,
            request.META.get("REMOTE_ADDR"),
        )
        return response


class ApiErrorMiddleware:
    """Turn exceptions that escape a view into the JSON error shape.

    Domain errors keep their status code; anything else becomes a 500 whose
    message is only exposed when DEBUG is on.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if isinstance(exception, ApiError):
            logger.warning("Unhandled %s on %s %s: %s", exception.code, request.method, request.path, exception.message)
            return api_error_response(exception)
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return internal_error_response(exception)
