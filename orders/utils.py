import secrets
import string
import time
from datetime import timedelta

from django.utils import timezone

BASE36 = string.digits + string.ascii_uppercase
DELIVERY_DAYS = 4


def _now_ms() -> int:
    return int(time.time() * 1000)


def _random_base36(length: int) -> str:
    return "".join(secrets.choice(BASE36) for _ in range(length))


def gen_order_id() -> str:
    return f"ORD_{_now_ms()}_{_random_base36(9)}"


def gen_tracking_number() -> str:
    return f"TRK{_now_ms()}{_random_base36(5)}"


def estimated_delivery(today=None) -> str:
    """Delivery date four days out, e.g. ``Monday, 23 October 2026``."""
    day = (today or timezone.localdate()) + timedelta(days=DELIVERY_DAYS)
    return f"{day:%A}, {day.day} {day:%B %Y}"
