from rest_framework import permissions
from django.conf import settings
from .models import Staff
import logging

logger = logging.getLogger(__name__)


def _role(request):
    user = getattr(request, "user", None)
    if not user or not getattr(user, "is_authenticated", False):
        return None
    return getattr(user, "role", None)


class IsSuperAdmin(permissions.BasePermission):
    def has_permission(self, request, view):
        return _role(request) == Staff.Role.SUPER_ADMIN


class IsAdminOrHigher(permissions.BasePermission):
    def has_permission(self, request, view):
        return _role(request) in Staff.ADMIN_OR_HIGHER


class IsManagerOrHigher(permissions.BasePermission):
    def has_permission(self, request, view):
        return _role(request) in Staff.MANAGER_OR_HIGHER


class IsKitchenStaff(permissions.BasePermission):
    """CHEF, MANAGER, ADMIN and SUPER_ADMIN."""

    def has_permission(self, request, view):
        return _role(request) in Staff.KITCHEN_ROLES


def HasRole(*roles):
    """
    Build a permission class that admits the given roles.

    Usage:
        permission_classes = [IsAuthenticated, HasRole(Staff.Role.CHEF, Staff.Role.WAITER)]
    """
    allowed = frozenset(roles)

    class _HasRole(permissions.BasePermission):
        def has_permission(self, request, view):
            return _role(request) in allowed

    _HasRole.__name__ = f"HasRole({', '.join(sorted(allowed))})"
    return _HasRole


def has_anti_csrf_header(request):
    token = request.headers.get('X-CSRF-Token')
    xrw = request.headers.get('X-Requested-With')
    return bool(token) or bool(xrw and xrw.lower() == 'xmlhttprequest')


class RequiresAntiCSRFHeader(permissions.BasePermission):
    """
    Minimal CSRF guard for endpoints that read auth cookies.
    For unsafe methods, require either X-CSRF-Token or X-Requested-With header.
    """

    message = "Missing anti-CSRF header"

    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True

        if not getattr(settings, 'ENABLE_CSRF_HEADER_CHECK', True):
            return True

        # Bearer-token clients are not exposed to CSRF.
        if request.headers.get('Authorization'):
            return True

        allowed = has_anti_csrf_header(request)
        if not allowed:
            logger.warning(
                "CSRF header guard denied request: method=%s path=%s origin=%s ip=%s",
                request.method,
                request.get_full_path(),
                request.headers.get('Origin'),
                request.META.get('REMOTE_ADDR'),
            )
        return allowed
