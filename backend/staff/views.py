import logging

from django.conf import settings
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.views import APIView

from core_backend.exceptions import ResourceNotFoundError
from core_backend.pagination import StandardPagination
from core_backend.responses import success_response
from core_backend.utils import get_client_ip, get_user_agent
from .cookies import AuthCookieService
from .models import StaffSession
from .permissions import IsAdminOrHigher, IsManagerOrHigher, RequiresAntiCSRFHeader
from .serializers import (
    AdminStaffSessionSerializer,
    BulkStaffUpdateSerializer,
    ChangePasswordSerializer,
    LoginSerializer,
    RefreshSerializer,
    StaffCreateSerializer,
    StaffSerializer,
    StaffSessionSerializer,
    StaffSimpleSerializer,
    StaffUpdateSerializer,
)
from .services import AuthService, StaffService
from .sessions import StaffSessionService
from .tasks import run_session_cleanup

logger = logging.getLogger(__name__)


def _current_session_id(request):
    token = getattr(request, "auth", None)
    if token is None:
        return None
    return token.get("session_id")


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


@method_decorator(
    ratelimit(key=get_client_ip, rate="5/m", method="POST", block=True), name="post"
)
class LoginView(APIView):
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AuthService.login(
            email=serializer.validated_data["email"],
            password=serializer.validated_data["password"],
            ip_address=get_client_ip(None, request),
            user_agent=get_user_agent(request),
            device_name=serializer.validated_data.get("device_name", ""),
        )

        response = success_response(
            {
                "access": result["access"],
                "refresh": result["refresh"],
                "staff": StaffSerializer(result["staff"]).data,
            },
            message="Login successful",
        )
        AuthCookieService.set_auth_cookies(response, result["access"], result["refresh"])
        return response


@method_decorator(
    ratelimit(key=get_client_ip, rate="10/m", method="POST", block=True), name="post"
)
class RefreshView(APIView):
    """
    Rotate the token pair. The refresh token comes from the body, or from
    the refresh cookie for browser clients.
    """

    authentication_classes = []
    permission_classes = [permissions.AllowAny, RequiresAntiCSRFHeader]

    def post(self, request, *args, **kwargs):
        serializer = RefreshSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        raw_token = serializer.validated_data.get("refresh") or request.COOKIES.get(
            settings.SIMPLE_JWT["AUTH_COOKIE_REFRESH"]
        )

        tokens = AuthService.refresh(raw_token)

        response = success_response(tokens, message="Token refreshed")
        AuthCookieService.set_auth_cookies(response, tokens["access"], tokens["refresh"])
        return response


class LogoutView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, *args, **kwargs):
        AuthService.logout(
            request.user,
            _current_session_id(request),
            ip_address=get_client_ip(None, request),
            user_agent=get_user_agent(request),
        )
        response = success_response(None, message="Logged out successfully")
        AuthCookieService.clear_auth_cookies(response)
        return response


class MeView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return success_response(StaffSerializer(request.user).data)


class ChangePasswordView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = ChangePasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        AuthService.change_password(
            request.user,
            serializer.validated_data["current_password"],
            serializer.validated_data["new_password"],
            ip_address=get_client_ip(None, request),
            user_agent=get_user_agent(request),
        )
        response = success_response(
            None, message="Password changed successfully. Please log in again."
        )
        AuthCookieService.clear_auth_cookies(response)
        return response


# ---------------------------------------------------------------------------
# Staff management
# ---------------------------------------------------------------------------


class StaffViewSet(viewsets.GenericViewSet):
    """
    Staff members of the caller's restaurant.

    - list/retrieve/create/update/bulk/statistics: MANAGER+
    - destroy (soft deactivate): ADMIN+
    - simple: any staff member
    """

    serializer_class = StaffSerializer
    pagination_class = StandardPagination

    def get_permissions(self):
        if self.action == "destroy":
            permission_classes = [permissions.IsAuthenticated, IsAdminOrHigher]
        elif self.action == "simple":
            permission_classes = [permissions.IsAuthenticated]
        else:
            permission_classes = [permissions.IsAuthenticated, IsManagerOrHigher]
        return [permission() for permission in permission_classes]

    def get_queryset(self):
        return StaffService.get_queryset(self.request.user)

    def list(self, request):
        params = request.query_params
        is_active = params.get("is_active")
        queryset = StaffService.filter_staff(
            self.get_queryset(),
            role=params.get("role"),
            is_active=None if is_active is None else is_active.lower() in ("1", "true", "yes"),
            search=params.get("search"),
        ).order_by("name")

        page = self.paginate_queryset(queryset)
        return self.get_paginated_response(StaffSerializer(page, many=True).data)

    def retrieve(self, request, pk=None):
        staff = StaffService.get_staff(request.user, pk)
        return success_response(StaffSerializer(staff).data)

    def create(self, request):
        serializer = StaffCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        staff = StaffService.create_staff(request.user, serializer.validated_data, request=request)
        return success_response(
            StaffSerializer(staff).data,
            message="Staff member created successfully",
            status=status.HTTP_201_CREATED,
        )

    def partial_update(self, request, pk=None):
        staff = StaffService.get_staff(request.user, pk)
        serializer = StaffUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        staff = StaffService.update_staff(
            request.user, staff, dict(serializer.validated_data), request=request
        )
        return success_response(
            StaffSerializer(staff).data, message="Staff member updated successfully"
        )

    def update(self, request, pk=None):
        return self.partial_update(request, pk=pk)

    def destroy(self, request, pk=None):
        staff = StaffService.get_staff(request.user, pk)
        StaffService.deactivate_staff(request.user, staff, request=request)
        return success_response(None, message="Staff member deactivated successfully")

    @action(detail=False, methods=["get"])
    def simple(self, request):
        queryset = self.get_queryset().filter(is_active=True).order_by("name")
        return success_response(StaffSimpleSerializer(queryset, many=True).data)

    @action(detail=False, methods=["get"])
    def statistics(self, request):
        return success_response(StaffService.statistics(request.user))

    @action(detail=False, methods=["post"], url_path="bulk-update")
    def bulk_update(self, request):
        serializer = BulkStaffUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        staff_ids = data.pop("staff_ids")

        updated = StaffService.bulk_update(request.user, staff_ids, data, request=request)
        return success_response(
            {"updated": updated}, message=f"{updated} staff member(s) updated"
        )


# ---------------------------------------------------------------------------
# Staff sessions
# ---------------------------------------------------------------------------


class MySessionsView(APIView):
    """The caller's own active sessions."""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        sessions = StaffSession.objects.valid().filter(staff=request.user).order_by("-last_active_at")
        serializer = StaffSessionSerializer(
            sessions, many=True, context={"current_session_id": _current_session_id(request)}
        )
        return success_response(serializer.data)


class MySessionDetailView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def delete(self, request, session_id):
        session = StaffSession.objects.filter(
            session_id=session_id, staff=request.user, is_active=True
        ).first()
        if session is None:
            raise ResourceNotFoundError("Session", session_id)

        StaffSessionService.revoke_session(session.session_id, "user_revoked", request.user.pk)
        return success_response(None, message="Session revoked")


class RevokeOtherSessionsView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        count = StaffSessionService.revoke_all_for_staff(
            request.user,
            "user_revoked_others",
            request.user.pk,
            exclude_session_id=_current_session_id(request),
        )
        return success_response({"revoked": count}, message=f"{count} session(s) revoked")


class AdminSessionListView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminOrHigher]

    def get(self, request):
        sessions = StaffSessionService.sessions_visible_to(request.user).valid()
        paginator = StandardPagination()
        page = paginator.paginate_queryset(sessions.order_by("-last_active_at"), request, view=self)
        return paginator.get_paginated_response(AdminStaffSessionSerializer(page, many=True).data)


class AdminStaffSessionsView(APIView):
    """Sessions of one staff member, active and revoked."""

    permission_classes = [permissions.IsAuthenticated, IsAdminOrHigher]

    def get(self, request, staff_id):
        staff = StaffService.get_staff(request.user, staff_id)
        sessions = StaffSession.objects.select_related("staff").filter(staff=staff)
        if request.query_params.get("active") in ("1", "true"):
            sessions = sessions.valid()
        return success_response(AdminStaffSessionSerializer(sessions, many=True).data)


class AdminRevokeSessionView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminOrHigher]

    def post(self, request, session_id):
        session = StaffSessionService.get_managed_session(request.user, session_id)
        reason = str(request.data.get("reason") or "admin_revoked")[:50]
        revoked = StaffSessionService.revoke_managed_session(request, session, reason=reason)
        return success_response(
            {"revoked": revoked},
            message="Session revoked" if revoked else "Session was already inactive",
        )


class AdminRevokeStaffSessionsView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminOrHigher]

    def post(self, request, staff_id):
        staff = StaffService.get_staff(request.user, staff_id)
        sessions = list(StaffSession.objects.active().filter(staff=staff))
        count = sum(
            1
            for session in sessions
            if StaffSessionService.revoke_managed_session(request, session, reason="admin_revoked_all")
        )
        logger.warning(f"Admin {request.user.pk} revoked {count} session(s) of staff {staff.pk}")
        return success_response({"revoked": count}, message=f"{count} session(s) revoked")


class SessionCleanupView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminOrHigher]

    def post(self, request):
        return success_response(run_session_cleanup(), message="Expired sessions cleaned up")

