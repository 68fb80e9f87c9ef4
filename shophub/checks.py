"""System checks for integration credentials.

Missing credentials are warnings during development and errors when
``APP_ENV`` is ``production``.
"""

from django.conf import settings
from django.core import checks

from notifications.apps import email_configured
from payments.gateways import GatewayRegistry
from payments.integrations.cashfree import CashfreeConfig


def _level():
    return checks.Error if getattr(settings, "APP_ENV", "development") == "production" else checks.Warning


@checks.register(checks.Tags.compatibility)
def check_email(app_configs=None, **kwargs):
    if email_configured():
        return []
    if getattr(settings, "EMAIL_PROVIDER", "smtp") == "sendgrid":
        msg, hint = "SendGrid API key is not configured.", "Set SENDGRID_API_KEY."
    else:
        msg, hint = "SMTP credentials are not configured.", "Set SMTP_USER and SMTP_PASS."
    return [_level()(msg, hint=hint, id="shophub.E001")]


@checks.register(checks.Tags.compatibility)
def check_payment_gateways(app_configs=None, **kwargs):
    messages = []
    configured = GatewayRegistry.from_settings().configured()
    if not configured.get("razorpay"):
        messages.append(_level()(
            "Razorpay credentials are not configured.",
            hint="Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET.",
            id="shophub.E002",
        ))
    if not configured.get("stripe"):
        messages.append(_level()(
            "Stripe secret key is not configured.",
            hint="Set STRIPE_SECRET_KEY.",
            id="shophub.E003",
        ))
    missing = CashfreeConfig.from_settings().missing()
    if missing:
        messages.append(_level()(
            "Cashfree credentials are not configured.",
            hint=f"Set {', '.join(missing)}.",
            id="shophub.E004",
        ))
    return messages
