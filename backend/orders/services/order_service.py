from datetime import timedelta
from decimal import Decimal
import logging

from django.db import transaction
from django.db.models import Avg, Count, Sum
from django.utils import timezone

from audit.models import AuditLog
from audit.services import AuditService
from core_backend.exceptions import AuthorizationError, ValidationError
from orders.exceptions import (
    InvalidStatusTransitionError,
    OrderNotModifiableError,
    RestaurantClosedError,
    TableUnavailableError,
)
from orders.models import Order, OrderItem, OrderItemModifier
from orders.security import (
    enforce_customer_order_guards,
    enforce_staff_order_guards,
    release_order_slot,
)
from staff.models import Staff
from tables.models import Table
from .calculation_service import OrderCalculationService, quantize
from .notification_service import KitchenNotificationService

logger = logging.getLogger(__name__)


class OrderService:
    """Core service for order lifecycle management - creating orders and moving them through the kitchen."""

    # Roles allowed to move an order into each status; SUPER_ADMIN may set any
    STATUS_ROLES = {
        Order.Status.PENDING: (Staff.Role.MANAGER, Staff.Role.ADMIN),
        Order.Status.CONFIRMED: (Staff.Role.MANAGER, Staff.Role.ADMIN, Staff.Role.CHEF),
        Order.Status.PREPARING: (Staff.Role.CHEF, Staff.Role.MANAGER, Staff.Role.ADMIN),
        Order.Status.READY: (
            Staff.Role.CHEF,
            Staff.Role.WAITER,
            Staff.Role.MANAGER,
            Staff.Role.ADMIN,
        ),
        Order.Status.DELIVERED: (Staff.Role.WAITER, Staff.Role.MANAGER, Staff.Role.ADMIN),
        Order.Status.COMPLETED: (Staff.Role.MANAGER, Staff.Role.ADMIN, Staff.Role.CASHIER),
        Order.Status.CANCELLED: (Staff.Role.MANAGER, Staff.Role.ADMIN),
    }

    STATUS_TIMESTAMPS = {
        Order.Status.CONFIRMED: "confirmed_at",
        Order.Status.READY: "ready_at",
        Order.Status.DELIVERED: "delivered_at",
        Order.Status.COMPLETED: "completed_at",
        Order.Status.CANCELLED: "cancelled_at",
    }

    STATUS_ACTORS = {
        Order.Status.CONFIRMED: "confirmed_by",
        Order.Status.CANCELLED: "cancelled_by",
    }

    @staticmethod
    def ensure_can_order(restaurant, table):
        if not restaurant.is_active:
            raise RestaurantClosedError(f"{restaurant.name} is not accepting orders")
        if not table.is_active or table.status == Table.Status.MAINTENANCE:
            raise TableUnavailableError(f"Table {table.number} is not available for orders")
        if table.status == Table.Status.RESERVED:
            raise TableUnavailableError(
                f"Table {table.number} is reserved", code="TABLE_RESERVED"
            )

    @staticmethod
    @transaction.atomic
    def _create_order(restaurant, table, items, max_lines, **order_fields):
        """
        Validate, price and persist an order with its lines in one
        transaction. ``order_fields`` are copied onto the Order.
        """
        OrderCalculationService.validate_item_limits(items, max_lines)
        OrderService.ensure_can_order(restaurant, table)

        lines = OrderCalculationService.price_items(restaurant, items)
        totals = OrderCalculationService.calculate_totals(restaurant, lines)

        order = Order.all_objects.create(restaurant=restaurant, table=table, **totals, **order_fields)

        for line in lines:
            order_item = OrderItem.all_objects.create(
                order=order,
                menu_item=line["menu_item"],
                quantity=line["quantity"],
                price=line["price"],
                notes=line["notes"],
            )
            OrderItemModifier.all_objects.bulk_create(
                [
                    OrderItemModifier(
                        order_item=order_item,
                        option=selection["option"],
                        modifier=selection["modifier"],
                        name=selection["name"],
                        price=selection["price"],
                    )
                    for selection in line["modifiers"]
                ]
            )

        logger.info(
            f"Order {order.order_number} created at table {table.number} "
            f"({restaurant.id}) total={order.total_amount}"
        )
        return order

    @staticmethod
    def _after_create(order, request=None, staff=None):
        audit_kwargs = {
            "restaurant_id": order.restaurant_id,
            "new_values": {
                "order_number": order.order_number,
                "table": order.table.number,
                "total_amount": order.total_amount,
                "item_count": order.item_count,
            },
        }
        if staff is not None:
            audit_kwargs["staff_id"] = staff.pk
        if request is not None:
            AuditService.log_from_request(
                request, AuditLog.Action.ORDER_CREATED, "Order", order.pk, **audit_kwargs
            )
        else:
            AuditService.log(AuditLog.Action.ORDER_CREATED, "Order", order.pk, **audit_kwargs)

        KitchenNotificationService.order_created(order)

    @staticmethod
    def create_staff_order(staff, restaurant, data, request=None):
        """
        Place an order on behalf of a guest.

        Args:
            staff: The staff member placing the order
            restaurant: Restaurant the order belongs to; the table must be one of its tables
            data: Validated input with ``table``, ``items`` and optional
                ``notes``, ``customer_name`` and ``customer_phone``
        """
        table = data["table"]
        if table.restaurant_id != restaurant.pk:
            logger.warning(
                f"Staff {staff.pk} tried to order on table {table.pk} of another restaurant"
            )
            raise ValidationError("Table does not belong to this restaurant", code="INVALID_TABLE")

        actor_key = enforce_staff_order_guards(staff)
        try:
            order = OrderService._create_order(
                restaurant,
                table,
                data["items"],
                OrderCalculationService.STAFF_MAX_LINES,
                notes=data.get("notes", ""),
                customer_name=data.get("customer_name", ""),
                customer_phone=data.get("customer_phone", ""),
                created_by=staff,
            )
        except Exception:
            release_order_slot(actor_key)
            raise
        OrderService._after_create(order, request=request, staff=staff)
        return order

    @staticmethod
    def create_customer_order(session, data, ip_address=None, request=None):
        """
        Place an order from a customer session. The session's table and
        restaurant are authoritative; customer limits apply.
        """
        table = session.table
        actor_key = enforce_customer_order_guards(ip_address, table.code)
        try:
            order = OrderService._create_order(
                table.restaurant,
                table,
                data["items"],
                OrderCalculationService.CUSTOMER_MAX_LINES,
                notes=data.get("notes", ""),
                customer_name=data.get("customer_name") or session.customer_name,
                customer_phone=data.get("customer_phone", ""),
                session_id=session.session_id,
            )
        except Exception:
            release_order_slot(actor_key)
            raise
        OrderService._after_create(order, request=request)
        return order

    @staticmethod
    def ensure_role_can_set(staff, new_status):
        if staff.is_super_admin:
            return
        if staff.role not in OrderService.STATUS_ROLES.get(new_status, ()):
            logger.warning(
                f"Staff {staff.pk} ({staff.role}) not allowed to set orders to {new_status}"
            )
            raise AuthorizationError(
                f"Your role cannot set orders to {new_status}",
                details={"role": staff.role, "status": new_status},
            )

    @staticmethod
    @transaction.atomic
    def update_status(order, new_status, staff, estimated_time=None, status_notes=None, request=None):
        """
        Move ``order`` to ``new_status``, stamping the matching timestamp and
        actor. The first confirmation occupies an available table.
        """
        OrderService.ensure_role_can_set(staff, new_status)

        order = Order.all_objects.select_for_update().select_related("table").get(pk=order.pk)
        previous_status = order.status
        if not order.can_transition_to(new_status):
            raise InvalidStatusTransitionError(
                previous_status,
                new_status,
                allowed=order.STATUS_TRANSITIONS.get(Order.Status(previous_status), ()),
            )

        now = timezone.now()
        order.status = new_status
        update_fields = ["status", "updated_at"]

        timestamp_field = OrderService.STATUS_TIMESTAMPS.get(new_status)
        if timestamp_field:
            setattr(order, timestamp_field, now)
            update_fields.append(timestamp_field)
        actor_field = OrderService.STATUS_ACTORS.get(new_status)
        if actor_field:
            setattr(order, actor_field, staff)
            update_fields.append(actor_field)
        if estimated_time is not None:
            order.estimated_time = estimated_time
            update_fields.append("estimated_time")
        if status_notes is not None:
            order.status_notes = status_notes
            update_fields.append("status_notes")
        order.save(update_fields=update_fields)

        if new_status == Order.Status.CONFIRMED and order.table.status == Table.Status.AVAILABLE:
            order.table.status = Table.Status.OCCUPIED
            order.table.save(update_fields=["status", "updated_at"])
            logger.info(f"Table {order.table.number} ({order.restaurant_id}) occupied by {order.order_number}")

        action = (
            AuditLog.Action.ORDER_CANCELLED
            if new_status == Order.Status.CANCELLED
            else AuditLog.Action.ORDER_STATUS_CHANGED
        )
        audit_kwargs = {
            "staff_id": staff.pk,
            "restaurant_id": order.restaurant_id,
            "old_values": {"status": previous_status},
            "new_values": {"status": new_status},
            "metadata": {"status_notes": status_notes} if status_notes else None,
        }
        if request is not None:
            AuditService.log_from_request(request, action, "Order", order.pk, **audit_kwargs)
        else:
            AuditService.log(action, "Order", order.pk, **audit_kwargs)

        logger.info(f"Order {order.order_number} {previous_status} -> {new_status} by {staff.pk}")
        # Broadcast only once the row lock is released and the change is visible
        transaction.on_commit(
            lambda: KitchenNotificationService.order_status_changed(order, previous_status)
        )
        return order

    @staticmethod
    def cancel_order(order, staff, reason=None, request=None):
        return OrderService.update_status(
            order, Order.Status.CANCELLED, staff, status_notes=reason, request=request
        )

    @staticmethod
    def can_modify_order(order):
        """
        Orders can be changed only while they are still open and within a
        few minutes of being placed.
        """
        if order.status in Order.LOCKED_STATUSES:
            return False
        return timezone.now() - order.created_at <= Order.MODIFICATION_WINDOW

    @staticmethod
    def get_active_count():
        return Order.objects.filter(status__in=Order.ACTIVE_STATUSES).count()

    @staticmethod
    def get_statistics(days=7):
        """
        Order statistics for the current restaurant over the last ``days``.
        Revenue counts only delivered and completed orders.
        """
        since = timezone.now() - timedelta(days=days)
        orders = Order.objects.filter(created_at__gte=since)

        revenue_orders = orders.filter(status__in=Order.REVENUE_STATUSES)
        revenue = revenue_orders.aggregate(total=Sum("total_amount"), average=Avg("total_amount"))

        by_status = {status: 0 for status in Order.Status.values}
        for row in orders.values("status").annotate(count=Count("id")):
            by_status[row["status"]] = row["count"]

        top_items = (
            OrderItem.objects.filter(order__in=orders)
            .exclude(order__status=Order.Status.CANCELLED)
            .values("menu_item_id", "menu_item__name")
            .annotate(quantity=Sum("quantity"))
            .order_by("-quantity", "menu_item__name")[:5]
        )

        return {
            "period_days": days,
            "total_orders": sum(by_status.values()),
            "total_revenue": str(quantize(revenue["total"] or Decimal("0"))),
            "average_order_value": str(quantize(revenue["average"] or Decimal("0"))),
            "orders_by_status": by_status,
            "top_items": [
                {
                    "menu_item_id": str(row["menu_item_id"]),
                    "name": row["menu_item__name"],
                    "quantity": row["quantity"],
                }
                for row in top_items
            ],
        }

    @staticmethod
    def update_notes(order, notes, staff):
        if not OrderService.can_modify_order(order):
            raise OrderNotModifiableError(
                f"Order {order.order_number} can no longer be modified",
                details={"status": order.status},
            )
        order.notes = notes
        order.save(update_fields=["notes", "updated_at"])
        logger.info(f"Order {order.order_number} notes updated by {staff.pk}")
        return order
