from django.urls import path
from . import views
app_name = "notifications"
urlpatterns = [
    path("send-confirmation", views.send_confirmation_view, name="send_confirmation"),
    path("send-cancellation", views.send_cancellation_view, name="send_cancellation"),
    path("send-status-update", views.send_status_update_view, name="send_status_update"),
    path("status", views.email_status_view, name="status"),
]
