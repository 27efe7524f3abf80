from django.urls import include, path
from rest_framework.routers import SimpleRouter

from . import views

router = SimpleRouter()
router.register(r"categories", views.MenuCategoryViewSet, basename="menu-category")
router.register(r"items", views.MenuItemViewSet, basename="menu-item")
router.register(r"modifier-groups", views.ModifierGroupViewSet, basename="modifier-group")
router.register(r"modifiers", views.ModifierViewSet, basename="modifier")
router.register(r"templates", views.ModifierTemplateViewSet, basename="modifier-template")

urlpatterns = [
    path("full/", views.FullMenuView.as_view(), name="menu-full"),
    path("", include(router.urls)),
]
