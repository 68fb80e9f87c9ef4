import logging

from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.mail import get_connection

logger = logging.getLogger(__name__)


def smtp_configured() -> bool:
    return bool(getattr(settings, "EMAIL_HOST_USER", "") and getattr(settings, "EMAIL_HOST_PASSWORD", ""))


def email_configured() -> bool:
    if getattr(settings, "EMAIL_PROVIDER", "smtp") == "sendgrid":
        return bool(getattr(settings, "SENDGRID_API_KEY", ""))
    return smtp_configured()


def verify_transport(config) -> bool:
    """Open and close one SMTP connection so a broken mail setup shows up at start.

    Missing credentials are fatal when APP_ENV is production; elsewhere they
    are logged and the service starts without working email.
    """
    production = getattr(settings, "APP_ENV", "development") == "production"
    if config.provider != "smtp":
        if not email_configured():
            if production:
                raise ImproperlyConfigured("SendGrid API key not configured")
            logger.warning("SendGrid API key not configured; emails will fail")
            return False
        return True

    if not smtp_configured():
        if production:
            raise ImproperlyConfigured("SMTP credentials not configured (SMTP_USER / SMTP_PASS)")
        logger.warning("SMTP credentials not configured; running without email delivery")
        return False

    connection = get_connection(config.backend, fail_silently=False)
    try:
        connection.open()
        connection.close()
    except Exception as e:
        if production:
            raise ImproperlyConfigured(f"SMTP connection verification failed: {e}")
        logger.error("SMTP connection verification failed: %s", e)
        return False
    logger.info("SMTP connection verified (%s:%s)", settings.EMAIL_HOST, settings.EMAIL_PORT)
    return True


class NotificationsConfig(AppConfig):
    name = "notifications"
    dispatcher = None

    def ready(self):
        from .emails import Dispatcher, MailerConfig

        config = MailerConfig.from_settings()
        self.dispatcher = Dispatcher(config)
        if getattr(settings, "EMAIL_VERIFY_ON_STARTUP", False):
            verify_transport(config)
        logger.info("Email service initialized with provider: %s", config.provider)
