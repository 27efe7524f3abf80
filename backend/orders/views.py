import logging

from rest_framework import permissions, status
from rest_framework.decorators import action

from core_backend.base import ReadOnlyBaseViewSet
from core_backend.responses import success_response
from restaurants.services import RestaurantService
from staff.permissions import IsKitchenStaff, IsManagerOrHigher
from tables.services import TableService
from .filters import OrderFilter
from .models import Order
from .serializers import (
    OrderCancelSerializer,
    OrderListSerializer,
    OrderNotesSerializer,
    OrderSerializer,
    OrderStatisticsQuerySerializer,
    OrderStatusUpdateSerializer,
    StaffOrderCreateSerializer,
)
from .services import KitchenService, OrderService

logger = logging.getLogger(__name__)


class OrderViewSet(ReadOnlyBaseViewSet):
    """
    Orders of the current restaurant.

    Any staff member may place orders and read them. Status changes are
    checked per target status by OrderService; cancelling and statistics
    need MANAGER+, the kitchen view needs a kitchen role.
    """

    queryset = Order.objects.all()
    serializer_class = OrderSerializer
    filterset_class = OrderFilter
    search_fields = ["order_number", "customer_name"]
    ordering_fields = ["created_at", "total_amount", "status"]
    ordering = ["-created_at"]

    def get_serializer_class(self):
        if self.action == "list":
            return OrderListSerializer
        return OrderSerializer

    def get_permissions(self):
        if self.action in ("cancel", "statistics"):
            permission_classes = [permissions.IsAuthenticated, IsManagerOrHigher]
        elif self.action == "kitchen":
            permission_classes = [permissions.IsAuthenticated, IsKitchenStaff]
        else:
            permission_classes = [permissions.IsAuthenticated]
        return [permission() for permission in permission_classes]

    def create(self, request, *args, **kwargs):
        serializer = StaffOrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        data["table"] = TableService.get_table(data["table"])

        order = OrderService.create_staff_order(
            request.user, RestaurantService.require_current_restaurant(), data, request=request
        )
        return success_response(
            OrderSerializer(order).data,
            message=f"Order {order.order_number} created",
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["patch"], url_path="status")
    def update_status(self, request, pk=None):
        order = self.get_object()
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = OrderService.update_status(
            order,
            serializer.validated_data["status"],
            request.user,
            estimated_time=serializer.validated_data.get("estimated_time"),
            status_notes=serializer.validated_data.get("status_notes"),
            request=request,
        )
        return success_response(OrderSerializer(order).data, message="Order status updated")

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        order = self.get_object()
        serializer = OrderCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = OrderService.cancel_order(
            order, request.user, reason=serializer.validated_data.get("reason"), request=request
        )
        return success_response(OrderSerializer(order).data, message="Order cancelled")

    @action(detail=True, methods=["patch"])
    def notes(self, request, pk=None):
        order = self.get_object()
        serializer = OrderNotesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = OrderService.update_notes(order, serializer.validated_data["notes"], request.user)
        return success_response(OrderSerializer(order).data, message="Order notes updated")

    @action(detail=False, methods=["get"])
    def kitchen(self, request):
        orders = list(KitchenService.get_active_orders())
        counts = {
            str(order_status): len(bucket)
            for order_status, bucket in KitchenService.group_by_status(orders).items()
        }
        return success_response(OrderSerializer(orders, many=True).data, counts=counts)

    @action(detail=False, methods=["get"])
    def statistics(self, request):
        serializer = OrderStatisticsQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        RestaurantService.require_current_restaurant()
        return success_response(OrderService.get_statistics(serializer.validated_data["days"]))

    @action(detail=False, methods=["get"], url_path="active-count")
    def active_count(self, request):
        return success_response({"count": OrderService.get_active_count()})
