import uuid

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from core_backend.utils.archiving import SoftDeleteMixin
from restaurants.managers import RestaurantManager, RestaurantSoftDeleteManager


class Table(SoftDeleteMixin):
    """
    A physical table. Its ``code`` is printed in the QR sticker and must not
    change unless deliberately regenerated.
    """

    class Status(models.TextChoices):
        AVAILABLE = "AVAILABLE", _("Available")
        OCCUPIED = "OCCUPIED", _("Occupied")
        RESERVED = "RESERVED", _("Reserved")
        MAINTENANCE = "MAINTENANCE", _("Maintenance")

    STATUS_TRANSITIONS = {
        Status.AVAILABLE: (Status.OCCUPIED, Status.RESERVED, Status.MAINTENANCE),
        Status.OCCUPIED: (Status.AVAILABLE, Status.MAINTENANCE),
        Status.RESERVED: (Status.OCCUPIED, Status.AVAILABLE, Status.MAINTENANCE),
        Status.MAINTENANCE: (Status.AVAILABLE,),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        "restaurants.Restaurant", on_delete=models.CASCADE, related_name="tables"
    )
    number = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(999)]
    )
    code = models.CharField(max_length=6, unique=True, help_text=_("6-character code printed in the QR"))
    capacity = models.PositiveSmallIntegerField(
        default=4, validators=[MinValueValidator(1), MaxValueValidator(20)]
    )
    qr_code_url = models.URLField(max_length=500, blank=True, default="")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.AVAILABLE)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RestaurantSoftDeleteManager()
    all_objects = models.Manager()

    class Meta:
        db_table = "tables"
        ordering = ["number"]
        default_manager_name = "all_objects"
        constraints = [
            models.UniqueConstraint(
                fields=["restaurant", "number"],
                condition=models.Q(is_active=True),
                name="unique_active_table_number_per_restaurant",
            ),
        ]
        indexes = [
            models.Index(fields=["restaurant", "status"]),
        ]

    def __str__(self):
        return f"Table {self.number} ({self.code})"

    def can_transition_to(self, new_status):
        return new_status in self.STATUS_TRANSITIONS.get(self.Status(self.status), ())


class TableAssistance(models.Model):
    """A customer's request for staff attention at their table."""

    class Type(models.TextChoices):
        WAITER = "WAITER", _("Call waiter")
        BILL = "BILL", _("Request bill")
        HELP = "HELP", _("Help")
        OTHER = "OTHER", _("Other")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        "restaurants.Restaurant", on_delete=models.CASCADE, related_name="assistance_requests"
    )
    table = models.ForeignKey(Table, on_delete=models.CASCADE, related_name="assistance_requests")
    session = models.ForeignKey(
        "customers.CustomerSession",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assistance_requests",
    )
    type = models.CharField(max_length=10, choices=Type.choices, default=Type.WAITER)
    message = models.CharField(max_length=500, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="resolved_assistance_requests",
    )

    objects = RestaurantManager()
    all_objects = models.Manager()

    class Meta:
        db_table = "table_assistance"
        ordering = ["created_at"]
        default_manager_name = "all_objects"
        indexes = [
            models.Index(fields=["restaurant", "resolved_at"]),
        ]

    def __str__(self):
        return f"{self.get_type_display()} at table {self.table_id}"

    @property
    def is_resolved(self):
        return self.resolved_at is not None
