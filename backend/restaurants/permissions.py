import logging

from rest_framework import permissions

logger = logging.getLogger(__name__)


class HasRestaurantAccess(permissions.BasePermission):
    """
    Rejects requests that name a restaurant other than the caller's own.

    The restaurant id is looked up in the URL kwargs (``restaurant_id`` or the
    view's ``restaurant_url_kwarg``), the query string and the request body.
    SUPER_ADMIN staff may access any restaurant.
    """

    message = "You do not have access to this restaurant"

    def _requested_restaurant_id(self, request, view):
        kwarg = getattr(view, "restaurant_url_kwarg", "restaurant_id")
        kwargs = getattr(view, "kwargs", {}) or {}
        if kwargs.get(kwarg):
            return kwargs[kwarg]
        if request.query_params.get("restaurant_id"):
            return request.query_params["restaurant_id"]
        data = request.data if isinstance(request.data, dict) else {}
        return data.get("restaurant_id")

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        if user.is_super_admin:
            return True

        requested = self._requested_restaurant_id(request, view)
        if requested is None:
            return True

        if str(requested) != str(user.restaurant_id):
            logger.warning(
                f"Cross-restaurant access attempt: staff {user.id} (restaurant {user.restaurant_id}) "
                f"requested restaurant {requested} on {request.method} {request.path}"
            )
            return False
        return True
