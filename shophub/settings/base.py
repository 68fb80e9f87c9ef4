from dotenv import load_dotenv
load_dotenv()

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def env_list(name: str, default: str = "") -> list:
    return [v.strip() for v in (os.getenv(name, default) or "").split(",") if v.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
SERVICE_NAME = "ShopHub Production Server"
SERVICE_VERSION = "1.0.0"

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-insecure-secret-key")
DEBUG = env_bool("DJANGO_DEBUG", APP_ENV == "development")
ALLOWED_HOSTS = env_list("ALLOWED_HOSTS", "localhost,127.0.0.1")

INSTALLED_APPS = [
    "corsheaders",
    "shophub",
    "payments",
    "orders",
    "notifications",
]

MIDDLEWARE = [
    "shophub.middleware.RequestLogMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.common.CommonMiddleware",
    "shophub.middleware.ApiErrorMiddleware",
]

ROOT_URLCONF = "shophub.urls"
WSGI_APPLICATION = "shophub.wsgi.application"
APPEND_SLASH = False

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {"context_processors": []},
    },
]

# Orders are never persisted; no database is configured.
DATABASES = {}

LANGUAGE_CODE = "en-in"
TIME_ZONE = os.getenv("TIME_ZONE", "Asia/Kolkata")
USE_I18N = False
USE_TZ = True

DATA_UPLOAD_MAX_MEMORY_SIZE = 10 * 1024 * 1024

# --- CORS / rate limiting ---
CORS_ALLOWED_ORIGINS = env_list(
    "CORS_ORIGIN",
    "http://localhost:5173,http://localhost:3000,http://localhost:3001",
)
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_HEADERS = ["content-type", "authorization", "x-requested-with"]

RATE_LIMIT_WINDOW_MS = env_int("RATE_LIMIT_WINDOW_MS", 15 * 60 * 1000)
RATE_LIMIT_MAX_REQUESTS = env_int("RATE_LIMIT_MAX_REQUESTS", 100)

APP_URL = os.getenv("APP_URL", "http://localhost:3001")

# --- Payment gateways ---
RAZORPAY = {
    "KEY_ID": os.getenv("RAZORPAY_KEY_ID", ""),
    "KEY_SECRET": os.getenv("RAZORPAY_KEY_SECRET", ""),
    "CURRENCY": "INR",
    "TIMEOUT": 30,
}

STRIPE = {
    "SECRET_KEY": os.getenv("STRIPE_SECRET_KEY", ""),
    "API_VERSION": "2023-10-16",
    "CURRENCY": "inr",
}

CASHFREE = {
    "APP_ID": os.getenv("CASHFREE_APP_ID", ""),
    "SECRET_KEY": os.getenv("CASHFREE_SECRET_KEY", ""),
    "ENV": os.getenv("CASHFREE_ENV", "sandbox"),
    "API_VERSION": "2023-08-01",
    "TIMEOUT": 30,
}

# Dotted paths to collaborators that own order persistence.
ORDER_LOOKUP = os.getenv("ORDER_LOOKUP") or None
PAYMENT_STATUS_HOOK = os.getenv("PAYMENT_STATUS_HOOK", "payments.webhook.log_status_change")

# --- Email ---
EMAIL_PROVIDER = os.getenv("EMAIL_PROVIDER", "smtp").lower()
FROM_EMAIL = os.getenv("FROM_EMAIL") or os.getenv("SMTP_USER", "") or "noreply@shophub.local"
FROM_NAME = os.getenv("FROM_NAME", "ShopHub")
DEFAULT_FROM_EMAIL = f"{FROM_NAME} <{FROM_EMAIL}>"

EMAIL_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
EMAIL_PORT = env_int("SMTP_PORT", 587)
EMAIL_HOST_USER = os.getenv("SMTP_USER", "")
EMAIL_HOST_PASSWORD = os.getenv("SMTP_PASS", "")
EMAIL_USE_SSL = env_bool("SMTP_SECURE", False)
EMAIL_USE_TLS = not EMAIL_USE_SSL and EMAIL_PORT == 587
EMAIL_TIMEOUT = 30

SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY", "")

if EMAIL_PROVIDER == "sendgrid":
    EMAIL_BACKEND = "notifications.backends.SendGridBackend"
else:
    EMAIL_BACKEND = "django.core.mail.backends.smtp.EmailBackend"

EMAIL_VERIFY_ON_STARTUP = env_bool("EMAIL_VERIFY_ON_STARTUP", True)

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE", "")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s - %(levelname)s - [PID:%(process)d] - %(name)s - %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "urllib3": {"level": "WARNING"},
        "stripe": {"level": "WARNING"},
    },
}

if LOG_FILE:
    LOGGING["handlers"]["file"] = {
        "class": "logging.handlers.RotatingFileHandler",
        "filename": LOG_FILE,
        "maxBytes": 5 * 1024 * 1024,
        "backupCount": 5,
        "formatter": "standard",
    }
    LOGGING["root"]["handlers"].append("file")
