"""
Orders services package.

- OrderService: order lifecycle (create, status changes, cancel, statistics)
- OrderCalculationService: item limits, pricing and tax-inclusive totals
- KitchenService: the kitchen view of active orders
- KitchenNotificationService: realtime kitchen broadcasts
- CustomerOrderService: order lookups for customer-facing routes
"""

from .order_service import OrderService
from .calculation_service import OrderCalculationService
from .kitchen_service import KitchenService
from .notification_service import KitchenNotificationService, kitchen_group_name
from .customer_service import CustomerOrderService

__all__ = [
    'OrderService',
    'OrderCalculationService',
    'KitchenService',
    'KitchenNotificationService',
    'kitchen_group_name',
    'CustomerOrderService',
]
