from django.urls import include, path
from rest_framework.routers import SimpleRouter

from . import views

router = SimpleRouter()
router.register(r"", views.StaffViewSet, basename="staff")

# Session routes come first so "sessions" is not taken as a staff id.
urlpatterns = [
    path("sessions/", views.MySessionsView.as_view(), name="my-sessions"),
    path(
        "sessions/revoke-others/",
        views.RevokeOtherSessionsView.as_view(),
        name="my-sessions-revoke-others",
    ),
    path("sessions/all/", views.AdminSessionListView.as_view(), name="admin-sessions"),
    path("sessions/cleanup/", views.SessionCleanupView.as_view(), name="sessions-cleanup"),
    path(
        "sessions/staff/<uuid:staff_id>/",
        views.AdminStaffSessionsView.as_view(),
        name="admin-staff-sessions",
    ),
    path(
        "sessions/staff/<uuid:staff_id>/revoke-all/",
        views.AdminRevokeStaffSessionsView.as_view(),
        name="admin-staff-sessions-revoke-all",
    ),
    path(
        "sessions/<uuid:session_id>/",
        views.MySessionDetailView.as_view(),
        name="my-session-detail",
    ),
    path(
        "sessions/<uuid:session_id>/revoke/",
        views.AdminRevokeSessionView.as_view(),
        name="admin-session-revoke",
    ),
    path("", include(router.urls)),
]
