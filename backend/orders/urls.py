from django.urls import include, path
from rest_framework.routers import SimpleRouter

from . import views

router = SimpleRouter()
router.register(r"", views.OrderViewSet, basename="order")

urlpatterns = [
    path("", include(router.urls)),
]
