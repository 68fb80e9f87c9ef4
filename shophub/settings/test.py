from .base import *

DEBUG = False
APP_ENV = 'test'

SECRET_KEY = 'test-secret-key'

ALLOWED_HOSTS = ['testserver']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
EMAIL_VERIFY_ON_STARTUP = False

FROM_EMAIL = 'orders@shophub.test'
FROM_NAME = 'ShopHub'
DEFAULT_FROM_EMAIL = f'{FROM_NAME} <{FROM_EMAIL}>'
APP_URL = 'https://shop.example.com'

RAZORPAY = {**RAZORPAY, 'KEY_ID': '', 'KEY_SECRET': ''}
STRIPE = {**STRIPE, 'SECRET_KEY': ''}
CASHFREE = {**CASHFREE, 'APP_ID': '', 'SECRET_KEY': '', 'ENV': 'sandbox'}

ORDER_LOOKUP = None
PAYMENT_STATUS_HOOK = 'payments.webhook.log_status_change'

EMAIL_PROVIDER = 'smtp'
EMAIL_HOST_USER = ''
EMAIL_HOST_PASSWORD = ''
SENDGRID_API_KEY = ''

RATE_LIMIT_WINDOW_MS = 15 * 60 * 1000
RATE_LIMIT_MAX_REQUESTS = 100
