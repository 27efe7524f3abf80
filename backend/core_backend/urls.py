"""
URL configuration for the TableTech API.

Staff endpoints authenticate with JWT; everything under ``api/customer/`` is
public and keyed by table code or customer session token.
"""

from django.urls import path, include

from .views import health_check


urlpatterns = [
    path("api/health/", health_check, name="health_check"),
    path("api/auth/", include("staff.auth_urls")),
    path("api/staff/", include("staff.urls")),
    path("api/restaurants/", include("restaurants.urls")),
    path("api/tables/", include("tables.urls")),
    path("api/menu/", include("menu.urls")),
    path("api/orders/", include("orders.urls")),
    path("api/customer/", include("customers.urls")),
    path("api/audit-logs/", include("audit.urls")),
]
