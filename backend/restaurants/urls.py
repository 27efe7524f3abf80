from django.urls import path, include
from rest_framework.routers import SimpleRouter

from .views import RestaurantViewSet

router = SimpleRouter()
router.register(r"", RestaurantViewSet, basename="restaurant")

urlpatterns = [
    path("", include(router.urls)),
]
