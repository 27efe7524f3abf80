from django.urls import include, path
from rest_framework.routers import SimpleRouter

from . import views

router = SimpleRouter()
router.register(r"", views.TableViewSet, basename="table")

urlpatterns = [
    path("assistance/", views.AssistanceListView.as_view(), name="table-assistance-list"),
    path(
        "assistance/<uuid:assistance_id>/resolve/",
        views.AssistanceResolveView.as_view(),
        name="table-assistance-resolve",
    ),
    path("", include(router.urls)),
]
