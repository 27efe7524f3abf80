import logging

from rest_framework import filters, mixins, permissions, status, viewsets

from core_backend.pagination import StandardPagination
from core_backend.responses import success_response
from staff.permissions import IsAdminOrHigher, IsSuperAdmin
from .models import Restaurant
from .permissions import HasRestaurantAccess
from .serializers import RestaurantSerializer, RestaurantWriteSerializer
from .services import RestaurantService

logger = logging.getLogger(__name__)


class RestaurantViewSet(
    mixins.ListModelMixin,
    viewsets.GenericViewSet,
):
    """
    Restaurant management.

    - list/create: SUPER_ADMIN only
    - retrieve: SUPER_ADMIN or staff of the restaurant
    - update: ADMIN of the restaurant or SUPER_ADMIN
    """

    queryset = Restaurant.objects.all()
    serializer_class = RestaurantSerializer
    pagination_class = StandardPagination
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ["name"]
    ordering_fields = ["name", "created_at"]
    ordering = ["name"]
    restaurant_url_kwarg = "pk"

    def get_permissions(self):
        if self.action in ("list", "create"):
            permission_classes = [permissions.IsAuthenticated, IsSuperAdmin]
        elif self.action in ("update", "partial_update"):
            permission_classes = [permissions.IsAuthenticated, IsAdminOrHigher, HasRestaurantAccess]
        else:
            permission_classes = [permissions.IsAuthenticated, HasRestaurantAccess]
        return [permission() for permission in permission_classes]

    def get_queryset(self):
        return RestaurantService.list_restaurants()

    def create(self, request):
        serializer = RestaurantWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        restaurant = RestaurantService.create_restaurant(serializer.validated_data)
        return success_response(
            RestaurantSerializer(restaurant).data,
            message="Restaurant created successfully",
            status=status.HTTP_201_CREATED,
        )

    def retrieve(self, request, pk=None):
        restaurant = RestaurantService.get_restaurant_for_staff(pk, request.user)
        return success_response(RestaurantSerializer(restaurant).data)

    def partial_update(self, request, pk=None):
        restaurant = RestaurantService.get_restaurant_for_staff(pk, request.user)
        serializer = RestaurantWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        restaurant = RestaurantService.update_restaurant(restaurant, serializer.validated_data)
        return success_response(
            RestaurantSerializer(restaurant).data, message="Restaurant updated successfully"
        )

    def update(self, request, pk=None):
        return self.partial_update(request, pk=pk)
