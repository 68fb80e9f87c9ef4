import logging
from dataclasses import dataclass
from enum import Enum

from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection, make_msgid
from django.template.loader import render_to_string
from django.utils import timezone

from shophub.errors import NotificationError

logger = logging.getLogger(__name__)


class NotificationKind(Enum):
    CONFIRMATION = "confirmation"
    CANCELLATION = "cancellation"
    STATUS_UPDATE = "status_update"
    SHIPPED = "shipped"
    WELCOME = "welcome"
    PASSWORD_RESET = "password_reset"


# (subject, headline, message, colour); anything else gets GENERIC_STATUS.
STATUS_MESSAGES = {
    "confirmed": ("✅ Order #{order_id} Confirmed - {brand}", "Order Confirmed!",
                  "Your order has been confirmed and is being prepared.", "#22c55e"),
    "processing": ("⚙️ Order #{order_id} is Being Processed - {brand}", "Order Processing",
                   "Your order is currently being processed and will be shipped soon.", "#8b5cf6"),
    "shipped": ("📦 Order #{order_id} Has Been Shipped - {brand}", "Order Shipped!",
                "Your order has been shipped and is on its way to you.", "#3b82f6"),
    "delivered": ("🎉 Order #{order_id} Delivered - {brand}", "Order Delivered!",
                  "Your order has been successfully delivered. Thank you for shopping with us!", "#10b981"),
}
GENERIC_STATUS = ("📋 Order #{order_id} Status Update - {brand}", "Order Status Updated",
                  "Your order status has been updated to: {status}", "#6b7280")

SUBJECTS = {
    NotificationKind.CONFIRMATION: "🎉 Order Confirmed #{order_id} - {brand}",
    NotificationKind.CANCELLATION: "Order Cancelled #{order_id} - {brand}",
    NotificationKind.SHIPPED: "📦 Your Order #{order_id} Has Been Shipped!",
    NotificationKind.WELCOME: "Welcome to {brand}, {name}! 🎉",
    NotificationKind.PASSWORD_RESET: "Reset Your {brand} Password",
}


def status_info(status) -> dict:
    key = str(status or "").strip().lower()
    subject, title, message, color = STATUS_MESSAGES.get(key, GENERIC_STATUS)
    return {
        "subject": subject,
        "title": title,
        "message": message.format(status=status),
        "color": color,
        "known": key in STATUS_MESSAGES,
    }


@dataclass(frozen=True)
class MailerConfig:
    from_email: str
    from_name: str
    app_url: str
    provider: str
    backend: str
    support_email: str

    @classmethod
    def from_settings(cls) -> "MailerConfig":
        from_email = getattr(settings, "FROM_EMAIL", None) or getattr(settings, "EMAIL_HOST_USER", "")
        return cls(
            from_email=from_email,
            from_name=getattr(settings, "FROM_NAME", "ShopHub"),
            app_url=getattr(settings, "APP_URL", "").rstrip("/"),
            provider=getattr(settings, "EMAIL_PROVIDER", "smtp"),
            backend=settings.EMAIL_BACKEND,
            support_email=from_email,
        )

    @property
    def sender(self) -> str:
        return f"{self.from_name} <{self.from_email}>"


@dataclass
class NotificationResult:
    success: bool
    provider: str
    message_id: str | None = None
    error: str | None = None

    def as_dict(self) -> dict:
        data = {"success": self.success, "provider": self.provider}
        if self.success:
            data["messageId"] = self.message_id
        else:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class EmailJob:
    to: str
    subject: str
    html: str
    text: str


class Dispatcher:
    """Render and send transactional emails.

    ``send`` never raises: any rendering, transport or provider error is
    logged and reported as a failed :class:`NotificationResult`.
    """

    def __init__(self, config: MailerConfig, connection=None):
        self.config = config
        self.connection = connection

    def render(self, to: str, kind: NotificationKind, payload: dict) -> EmailJob:
        kind = NotificationKind(kind)
        context = self._context(kind, payload or {})
        template = f"emails/{kind.value}"
        return EmailJob(
            to=to,
            subject=self._subject(kind, context),
            html=render_to_string(f"{template}.html", context),
            text=render_to_string(f"{template}.txt", context).strip(),
        )

    def send(self, to: str, kind, payload: dict) -> NotificationResult:
        provider = self.config.provider
        if not to:
            return NotificationResult(False, provider, error="Recipient email is required")
        try:
            job = self.render(to, kind, payload)
            logger.info("Sending email: to=%s subject=%s provider=%s", to, job.subject, provider)
            message_id = self._deliver(job)
        except NotificationError as e:
            logger.error("Failed to send %s email to %s: %s", getattr(kind, "value", kind), to, e.message)
            return NotificationResult(False, provider, error=e.message)
        except Exception as e:
            logger.exception("Failed to send %s email to %s", getattr(kind, "value", kind), to)
            return NotificationResult(False, provider, error=str(e) or e.__class__.__name__)

        logger.info("Email sent successfully: to=%s message_id=%s provider=%s", to, message_id, provider)
        return NotificationResult(True, provider, message_id=message_id)

    def _deliver(self, job: EmailJob) -> str:
        message_id = make_msgid(domain=self.config.from_email.rpartition("@")[2] or None)
        msg = EmailMultiAlternatives(
            job.subject,
            job.text,
            self.config.sender,
            [job.to],
            headers={"Message-ID": message_id},
            connection=self.connection or get_connection(self.config.backend),
        )
        msg.attach_alternative(job.html, "text/html")
        try:
            sent = msg.send(fail_silently=False)
        except Exception as e:
            raise NotificationError(str(e) or e.__class__.__name__) from e
        if not sent:
            raise NotificationError("Transport accepted no messages")
        return getattr(msg, "provider_message_id", None) or message_id

    def _subject(self, kind: NotificationKind, context: dict) -> str:
        if kind is NotificationKind.STATUS_UPDATE:
            template = context["status_info"]["subject"]
        else:
            template = SUBJECTS[kind]
        return template.format(
            order_id=context.get("order_id", ""),
            brand=self.config.from_name,
            name=context.get("customer_name", ""),
        )

    def _context(self, kind: NotificationKind, payload: dict) -> dict:
        context = dict(payload)
        context.setdefault("customer_name", payload.get("name") or "Customer")
        context.update({
            "brand": self.config.from_name,
            "app_url": self.config.app_url,
            "support_email": self.config.support_email,
            "year": timezone.now().year,
        })
        items = payload.get("items") if isinstance(payload.get("items"), list) else []
        context["items"] = [
            {**item, "line_total": _line_total(item)} for item in items if isinstance(item, dict)
        ]
        if kind is NotificationKind.STATUS_UPDATE:
            status = payload.get("new_status") or payload.get("status") or ""
            context["new_status"] = status
            context["status_info"] = status_info(status)
        if kind is NotificationKind.CANCELLATION:
            context.setdefault("cancellation_reason", "Cancelled by customer")
            context.setdefault("refund_timeline", "5-7 business days")
        if kind is NotificationKind.PASSWORD_RESET and not context.get("reset_url"):
            context["reset_url"] = f"{self.config.app_url}/reset-password?token={payload.get('reset_token', '')}"
        return context


def _line_total(item: dict):
    try:
        return round(float(item.get("price", 0)) * int(item.get("quantity", 0)), 2)
    except (TypeError, ValueError):
        return ""


def get_dispatcher() -> Dispatcher:
    """Dispatcher built once when the notifications app became ready."""
    from django.apps import apps

    return apps.get_app_config("notifications").dispatcher
