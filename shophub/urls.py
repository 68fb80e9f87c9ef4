from django.urls import include, path, re_path

from . import views

urlpatterns = [
    path("", views.index_view, name="index"),
    path("health", views.health_view, name="health"),
    path("api/orders/", include("orders.urls")),
    path("api/email/", include("notifications.urls")),
    path("api/payment/", include("payments.urls")),
    re_path(r"^api/(?P<path>.*)$", views.api_not_found_view, name="api_not_found"),
]

handler404 = "shophub.views.not_found_handler"
handler500 = "shophub.views.server_error_handler"
