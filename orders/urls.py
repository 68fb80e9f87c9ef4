from django.urls import path
from . import views
app_name = "orders"
urlpatterns = [
    path("create", views.create_order_view, name="create"),
    path("cancel/<str:order_id>", views.cancel_order_view, name="cancel"),
    path("verify-payment", views.verify_payment_view, name="verify_payment"),
]
