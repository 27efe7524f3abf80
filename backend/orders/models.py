import uuid
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from restaurants.managers import RestaurantManager


def generate_order_number():
    return f"ORD-{uuid.uuid4().hex[:8].upper()}"


class Order(models.Model):
    class Status(models.TextChoices):
        PENDING = "PENDING", _("Pending")
        CONFIRMED = "CONFIRMED", _("Confirmed")
        PREPARING = "PREPARING", _("Preparing")
        READY = "READY", _("Ready")
        DELIVERED = "DELIVERED", _("Delivered")
        COMPLETED = "COMPLETED", _("Completed")
        CANCELLED = "CANCELLED", _("Cancelled")

    class PaymentStatus(models.TextChoices):
        PENDING = "PENDING", _("Pending")
        PAID = "PAID", _("Paid")
        FAILED = "FAILED", _("Failed")
        REFUNDED = "REFUNDED", _("Refunded")

    STATUS_TRANSITIONS = {
        Status.PENDING: (Status.CONFIRMED, Status.CANCELLED),
        Status.CONFIRMED: (Status.PREPARING, Status.CANCELLED),
        Status.PREPARING: (Status.READY, Status.CANCELLED),
        Status.READY: (Status.DELIVERED, Status.CANCELLED),
        Status.DELIVERED: (Status.COMPLETED,),
        Status.COMPLETED: (),
        Status.CANCELLED: (),
    }

    # Orders in these states still need the kitchen or floor staff
    ACTIVE_STATUSES = (Status.PENDING, Status.CONFIRMED, Status.PREPARING, Status.READY)
    # Orders in these states are counted as revenue
    REVENUE_STATUSES = (Status.DELIVERED, Status.COMPLETED)
    LOCKED_STATUSES = (Status.DELIVERED, Status.COMPLETED, Status.CANCELLED)
    MODIFICATION_WINDOW = timedelta(minutes=5)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        "restaurants.Restaurant", on_delete=models.CASCADE, related_name="orders"
    )
    table = models.ForeignKey(
        "tables.Table", on_delete=models.PROTECT, related_name="orders"
    )
    order_number = models.CharField(
        max_length=20, unique=True, default=generate_order_number, editable=False
    )

    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True
    )
    payment_status = models.CharField(
        max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING
    )

    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    service_fee = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))

    notes = models.CharField(max_length=500, blank=True, default="")
    status_notes = models.CharField(max_length=500, blank=True, default="")
    estimated_time = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(300)],
        help_text=_("Minutes until the order is expected to be ready"),
    )

    customer_name = models.CharField(max_length=100, blank=True, default="")
    customer_phone = models.CharField(max_length=20, blank=True, default="")
    session_id = models.CharField(max_length=64, blank=True, default="", db_index=True)

    confirmed_at = models.DateTimeField(null=True, blank=True)
    confirmed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    ready_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_orders",
    )

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RestaurantManager()
    all_objects = models.Manager()

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        default_manager_name = "all_objects"
        indexes = [
            models.Index(fields=["restaurant", "status", "created_at"]),
            models.Index(fields=["restaurant", "table", "created_at"]),
        ]

    def __str__(self):
        return self.order_number

    def can_transition_to(self, new_status):
        return new_status in self.STATUS_TRANSITIONS.get(self.Status(self.status), ())

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES

    @property
    def item_count(self):
        return sum(item.quantity for item in self.items.all())


class OrderItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    menu_item = models.ForeignKey(
        "menu.MenuItem", on_delete=models.PROTECT, related_name="order_items"
    )
    quantity = models.PositiveSmallIntegerField(
        default=1, validators=[MinValueValidator(1), MaxValueValidator(10)]
    )
    price = models.DecimalField(
        max_digits=8, decimal_places=2, help_text=_("Base unit price at the time of ordering")
    )
    notes = models.CharField(max_length=255, blank=True, default="")

    objects = RestaurantManager("order__restaurant")
    all_objects = models.Manager()

    class Meta:
        db_table = "order_items"
        default_manager_name = "all_objects"

    def __str__(self):
        return f"{self.quantity}x {self.menu_item_id}"

    @property
    def unit_price(self):
        return self.price + sum((m.price for m in self.modifiers.all()), Decimal("0.00"))

    @property
    def line_total(self):
        return self.unit_price * self.quantity


class OrderItemModifier(models.Model):
    """
    A modifier chosen for an order line. Name and price are captured so later
    menu edits never change what the customer was charged.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_item = models.ForeignKey(OrderItem, on_delete=models.CASCADE, related_name="modifiers")
    option = models.ForeignKey(
        "menu.ModifierOption",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_item_modifiers",
    )
    modifier = models.ForeignKey(
        "menu.Modifier",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_item_modifiers",
    )
    name = models.CharField(max_length=100)
    price = models.DecimalField(max_digits=8, decimal_places=2, default=Decimal("0.00"))

    objects = RestaurantManager("order_item__order__restaurant")
    all_objects = models.Manager()

    class Meta:
        db_table = "order_item_modifiers"
        default_manager_name = "all_objects"

    def __str__(self):
        return self.name
