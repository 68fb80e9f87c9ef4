from django.urls import path
from . import views
app_name = "payments"
urlpatterns = [
    path("create-order", views.cashfree_create_order_view, name="cashfree_create_order"),
    path("verify/<str:order_id>", views.cashfree_verify_view, name="cashfree_verify"),
    path("webhook", views.cashfree_webhook_view, name="cashfree_webhook"),
    path("status", views.cashfree_status_view, name="cashfree_status"),
]
