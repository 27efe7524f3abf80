from datetime import timedelta
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Prefetch
from django.utils import timezone
from rest_framework import status

from core_backend.exceptions import ApiError
from orders.models import Order, OrderItem

logger = logging.getLogger(__name__)

TABLE_ORDER_HISTORY = timedelta(hours=24)


def _order_not_found():
    return ApiError(status.HTTP_404_NOT_FOUND, "ORDER_NOT_FOUND", "Order not found")


class CustomerOrderService:
    """
    Read-only order lookups for the public customer routes. These run without
    staff authentication, so every query is explicit about its scope.
    """

    @staticmethod
    def _with_items(queryset):
        items = OrderItem.all_objects.select_related("menu_item").prefetch_related("modifiers")
        return queryset.select_related("table", "restaurant").prefetch_related(
            Prefetch("items", queryset=items)
        )

    @staticmethod
    def track_order(order_number):
        order_number = (order_number or "").strip().upper()
        order = (
            Order.all_objects.select_related("table", "restaurant")
            .filter(order_number=order_number)
            .first()
        )
        if order is None:
            raise _order_not_found()
        return order

    @staticmethod
    def get_order_detail(order_id):
        try:
            return CustomerOrderService._with_items(Order.all_objects).get(pk=order_id)
        except (Order.DoesNotExist, ValueError, DjangoValidationError):
            raise _order_not_found()

    @staticmethod
    def table_orders(table):
        """Orders placed at ``table`` during the last 24 hours, newest first."""
        since = timezone.now() - TABLE_ORDER_HISTORY
        return CustomerOrderService._with_items(
            Order.all_objects.filter(table=table, created_at__gte=since)
        ).order_by("-created_at")

    @staticmethod
    def session_orders(session_id):
        return CustomerOrderService._with_items(
            Order.all_objects.filter(session_id=session_id)
        ).order_by("-created_at")
