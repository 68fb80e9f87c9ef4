"""Error taxonomy shared by every app.

Each error knows the HTTP status it maps to and a stable machine-readable
``code``; ``shophub.responses.error_response`` turns it into the JSON body
``{success, message, error, timestamp}``.
"""


class ApiError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = "", *, status_code: int | None = None, details: dict | None = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class ValidationError(ApiError):
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation failed", *, errors=None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []


class NotConfiguredError(ApiError):
    status_code = 503
    code = "NOT_CONFIGURED"


class UnsupportedGatewayError(ApiError):
    status_code = 400
    code = "UNSUPPORTED_GATEWAY"


class GatewayError(ApiError):
    """Upstream payment provider rejected the call or could not be reached."""

    status_code = 400
    code = "GATEWAY_ERROR"


class VerificationError(ApiError):
    status_code = 400
    code = "VERIFICATION_FAILED"


class InvalidSignatureError(VerificationError):
    code = "INVALID_SIGNATURE"


class WebhookParseError(ApiError):
    status_code = 400
    code = "INVALID_WEBHOOK_PAYLOAD"


class OrderNotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"


class NotificationError(ApiError):
    # Recovered by the dispatcher; never reaches a response.
    status_code = 502
    code = "NOTIFICATION_FAILED"


class InternalError(ApiError):
    status_code = 500
    code = "INTERNAL_ERROR"
