import logging

from django.conf import settings
from rest_framework import exceptions
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError

from core_backend.exceptions import AuthenticationError
from restaurants.managers import set_current_restaurant
from restaurants.services import RestaurantService
from .models import Staff
from .permissions import has_anti_csrf_header
from .sessions import StaffSessionService

logger = logging.getLogger(__name__)


class StaffJWTAuthentication(JWTAuthentication):
    """
    Authenticates staff from the ``Authorization: Bearer`` header, falling
    back to the ``access_token`` cookie.

    Beyond signature and expiry checks this validates the session named by
    the token's ``session_id`` claim, records activity and establishes the
    restaurant context for the request.
    """

    def authenticate(self, request):
        header = self.get_header(request)
        from_cookie = False

        if header is not None:
            raw_token = self.get_raw_token(header)
        else:
            raw_token = request.COOKIES.get(settings.SIMPLE_JWT["AUTH_COOKIE"])
            from_cookie = raw_token is not None

        if raw_token is None:
            return None

        if (
            from_cookie
            and request.method not in ("GET", "HEAD", "OPTIONS")
            and getattr(settings, "ENABLE_CSRF_HEADER_CHECK", True)
            and not has_anti_csrf_header(request)
        ):
            logger.warning(
                f"Cookie-authenticated {request.method} {request.path} rejected: missing anti-CSRF header"
            )
            raise exceptions.PermissionDenied("Missing anti-CSRF header")

        try:
            validated_token = self.get_validated_token(raw_token)
        except (InvalidToken, TokenError):
            raise AuthenticationError("Invalid or expired token", code="INVALID_TOKEN")

        staff = self.get_user(validated_token)

        session_id = validated_token.get("session_id")
        if session_id:
            session = StaffSessionService.validate_session(session_id, staff=staff)
            StaffSessionService.touch(session)
            request.staff_session = session
        else:
            raise AuthenticationError("Token is not bound to a session", code="INVALID_TOKEN")

        restaurant = staff.restaurant
        if staff.is_super_admin:
            # SUPER_ADMIN acts on one restaurant at a time when it names one
            restaurant = RestaurantService.resolve_selected_restaurant(
                request.headers.get("X-Restaurant-ID") or request.query_params.get("restaurant_id")
            )

        set_current_restaurant(restaurant)
        request._request.restaurant = restaurant
        return staff, validated_token

    def get_user(self, validated_token):
        """
        Load the staff member through ``all_objects``: authentication runs
        before the restaurant context is trusted.
        """
        try:
            staff_id = validated_token[settings.SIMPLE_JWT.get("USER_ID_CLAIM", "staff_id")]
        except KeyError:
            raise AuthenticationError("Token contained no staff identification", code="INVALID_TOKEN")

        try:
            staff = Staff.all_objects.select_related("restaurant").get(pk=staff_id)
        except (Staff.DoesNotExist, ValueError):
            raise AuthenticationError("Staff member not found", code="INVALID_TOKEN")

        if not staff.is_active:
            raise AuthenticationError("Account has been deactivated", code="ACCOUNT_DEACTIVATED")

        return staff
