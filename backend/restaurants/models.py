import uuid

from django.db import models


class Restaurant(models.Model):
    """
    Root entity for multi-tenancy. Every table, menu, staff member and
    order belongs to exactly one restaurant.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=120)
    slug = models.SlugField(max_length=140, unique=True)

    email = models.EmailField(max_length=255, blank=True, default="")
    phone = models.CharField(max_length=20, blank=True, default="")
    address = models.CharField(max_length=500, blank=True, default="")
    logo_url = models.URLField(max_length=500, blank=True, default="")

    currency = models.CharField(max_length=3, default="EUR")
    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=9,
        help_text="VAT percentage included in menu prices",
    )
    timezone = models.CharField(max_length=64, default="Europe/Amsterdam")

    is_active = models.BooleanField(
        default=True, help_text="Inactive restaurants cannot accept orders"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "restaurants"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["is_active"]),
        ]

    def __str__(self):
        return self.name
