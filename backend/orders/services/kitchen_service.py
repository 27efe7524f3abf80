from django.db.models import Prefetch
import logging

from orders.models import Order, OrderItem

logger = logging.getLogger(__name__)


class KitchenService:
    """Service for the kitchen view - active orders with their items, oldest first."""

    @staticmethod
    def get_active_orders():
        items = OrderItem.all_objects.select_related("menu_item").prefetch_related("modifiers")
        return (
            Order.objects.filter(status__in=Order.ACTIVE_STATUSES)
            .select_related("table")
            .prefetch_related(Prefetch("items", queryset=items))
            .order_by("created_at")
        )

    @staticmethod
    def group_by_status(orders):
        """
        Bucket orders by status for the kitchen board. Every active status is
        present, possibly empty.
        """
        grouped = {status: [] for status in Order.ACTIVE_STATUSES}
        for order in orders:
            grouped.setdefault(order.status, []).append(order)
        return grouped

