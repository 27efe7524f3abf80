import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from core_backend.utils.archiving import SoftDeleteMixin
from restaurants.managers import RestaurantManager, RestaurantSoftDeleteManager


class MenuCategory(SoftDeleteMixin):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        "restaurants.Restaurant", on_delete=models.CASCADE, related_name="menu_categories"
    )
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True, default="")
    image_url = models.URLField(max_length=500, blank=True, default="")
    display_order = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RestaurantSoftDeleteManager()
    all_objects = models.Manager()

    class Meta:
        db_table = "menu_categories"
        ordering = ["display_order", "name"]
        default_manager_name = "all_objects"
        verbose_name_plural = "menu categories"
        indexes = [
            models.Index(fields=["restaurant", "is_active", "display_order"]),
        ]

    def __str__(self):
        return self.name


class MenuItem(SoftDeleteMixin):
    MAX_PER_CATEGORY = 100

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        "restaurants.Restaurant", on_delete=models.CASCADE, related_name="menu_items"
    )
    category = models.ForeignKey(MenuCategory, on_delete=models.PROTECT, related_name="items")
    name = models.CharField(max_length=120)
    description = models.CharField(max_length=1000, blank=True, default="")
    image_url = models.URLField(max_length=500, blank=True, default="")
    price = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01")), MaxValueValidator(Decimal("9999.99"))],
    )
    is_available = models.BooleanField(default=True)
    preparation_time = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(180)],
        help_text=_("Minutes"),
    )
    display_order = models.PositiveIntegerField(default=0)

    stock_count = models.PositiveIntegerField(null=True, blank=True)
    availability_note = models.CharField(max_length=255, blank=True, default="")
    last_unavailable_at = models.DateTimeField(null=True, blank=True)
    unavailable_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RestaurantSoftDeleteManager()
    all_objects = models.Manager()

    class Meta:
        db_table = "menu_items"
        ordering = ["display_order", "name"]
        default_manager_name = "all_objects"
        indexes = [
            models.Index(fields=["restaurant", "category", "is_active"]),
            models.Index(fields=["restaurant", "is_available"]),
        ]

    def __str__(self):
        return self.name


class ModifierGroup(SoftDeleteMixin):
    """
    Legacy per-item modifier group, e.g. "Doneness" on a single steak.
    New menus should prefer ModifierTemplate assignments.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    menu_item = models.ForeignKey(MenuItem, on_delete=models.CASCADE, related_name="modifier_groups")
    name = models.CharField(max_length=100)
    required = models.BooleanField(default=False)
    multi_select = models.BooleanField(default=False)
    min_select = models.PositiveSmallIntegerField(default=0)
    max_select = models.PositiveSmallIntegerField(default=1)
    display_order = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RestaurantSoftDeleteManager("menu_item__restaurant")
    all_objects = models.Manager()

    class Meta:
        db_table = "modifier_groups"
        ordering = ["display_order", "name"]
        default_manager_name = "all_objects"

    def __str__(self):
        return f"{self.menu_item_id}: {self.name}"


class Modifier(SoftDeleteMixin):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group = models.ForeignKey(ModifierGroup, on_delete=models.CASCADE, related_name="modifiers")
    name = models.CharField(max_length=100)
    price = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("999.99"))],
    )
    display_order = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RestaurantSoftDeleteManager("group__menu_item__restaurant")
    all_objects = models.Manager()

    class Meta:
        db_table = "modifiers"
        ordering = ["display_order", "name"]
        default_manager_name = "all_objects"

    def __str__(self):
        return self.name


class ModifierTemplate(SoftDeleteMixin):
    """A reusable modifier group ("Sauces", "Sizes") shared across menu items."""

    class Type(models.TextChoices):
        SINGLE_CHOICE = "SINGLE_CHOICE", _("Single choice")
        MULTIPLE_CHOICE = "MULTIPLE_CHOICE", _("Multiple choice")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        "restaurants.Restaurant", on_delete=models.CASCADE, related_name="modifier_templates"
    )
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True, default="")
    type = models.CharField(max_length=20, choices=Type.choices, default=Type.SINGLE_CHOICE)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RestaurantSoftDeleteManager()
    all_objects = models.Manager()

    class Meta:
        db_table = "modifier_templates"
        ordering = ["name"]
        default_manager_name = "all_objects"

    def __str__(self):
        return self.name


class ModifierOption(SoftDeleteMixin):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    template = models.ForeignKey(ModifierTemplate, on_delete=models.CASCADE, related_name="options")
    name = models.CharField(max_length=100)
    price = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    display_order = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RestaurantSoftDeleteManager("template__restaurant")
    all_objects = models.Manager()

    class Meta:
        db_table = "modifier_options"
        ordering = ["display_order", "name"]
        default_manager_name = "all_objects"

    def __str__(self):
        return self.name


class MenuItemModifierGroup(models.Model):
    """Assignment of a ModifierTemplate to a MenuItem with per-item rules."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    menu_item = models.ForeignKey(MenuItem, on_delete=models.CASCADE, related_name="template_groups")
    template = models.ForeignKey(ModifierTemplate, on_delete=models.CASCADE, related_name="assignments")
    display_name = models.CharField(max_length=100, blank=True, default="")
    required = models.BooleanField(default=False)
    min_select = models.PositiveSmallIntegerField(default=0)
    max_select = models.PositiveSmallIntegerField(
        null=True, blank=True, help_text=_("Empty means no upper limit")
    )
    display_order = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RestaurantManager("menu_item__restaurant")
    all_objects = models.Manager()

    class Meta:
        db_table = "menu_item_modifier_groups"
        ordering = ["display_order"]
        default_manager_name = "all_objects"
        unique_together = ("menu_item", "template")

    def __str__(self):
        return f"{self.menu_item_id} <- {self.template_id}"


class MenuItemModifierOption(models.Model):
    """Per-item override of one template option: hide it, rename it or reprice it."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group = models.ForeignKey(
        MenuItemModifierGroup, on_delete=models.CASCADE, related_name="option_overrides"
    )
    option = models.ForeignKey(ModifierOption, on_delete=models.CASCADE, related_name="overrides")
    is_hidden = models.BooleanField(default=False)
    price_override = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0"))],
    )
    name_override = models.CharField(max_length=100, blank=True, default="")
    is_default = models.BooleanField(default=False)

    objects = RestaurantManager("group__menu_item__restaurant")
    all_objects = models.Manager()

    class Meta:
        db_table = "menu_item_modifier_options"
        default_manager_name = "all_objects"
        unique_together = ("group", "option")

    def __str__(self):
        return f"{self.group_id}/{self.option_id}"
