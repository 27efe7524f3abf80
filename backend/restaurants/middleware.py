import logging

import jwt
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError

from .managers import set_current_restaurant
from .models import Restaurant

logger = logging.getLogger(__name__)


class RestaurantContextMiddleware:
    """
    Sets the restaurant context from the staff access token's
    ``restaurant_id`` claim and attaches it to ``request.restaurant``.

    This runs before DRF authentication, so it only establishes context
    early; StaffJWTAuthentication sets it again from the loaded staff member
    and the customer views set it from the resolved table.

    The context is always cleared when the request finishes so it cannot
    leak into the next request handled by this thread.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        restaurant = self.get_restaurant_from_jwt(request)
        request.restaurant = restaurant
        set_current_restaurant(restaurant)

        try:
            return self.get_response(request)
        finally:
            set_current_restaurant(None)

    def _get_raw_token(self, request):
        header = request.META.get("HTTP_AUTHORIZATION", "")
        parts = header.split()
        if len(parts) == 2 and parts[0] in settings.SIMPLE_JWT.get("AUTH_HEADER_TYPES", ("Bearer",)):
            return parts[1]
        return request.COOKIES.get(settings.SIMPLE_JWT["AUTH_COOKIE"])

    def get_restaurant_from_jwt(self, request):
        token = self._get_raw_token(request)
        if not token:
            return None

        jwt_config = settings.SIMPLE_JWT
        try:
            payload = jwt.decode(
                token,
                jwt_config.get("SIGNING_KEY", settings.SECRET_KEY),
                algorithms=[jwt_config.get("ALGORITHM", "HS256")],
            )
        except jwt.InvalidTokenError:
            # Authentication will reject the token with a proper 401.
            return None

        restaurant_id = payload.get("restaurant_id")
        if not restaurant_id:
            return None

        try:
            return Restaurant.objects.filter(pk=restaurant_id).first()
        except (ValueError, TypeError, DjangoValidationError):
            logger.warning(f"Malformed restaurant_id claim in access token: {restaurant_id!r}")
            return None
