import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Count, Prefetch, Q
from django.utils import timezone
from rest_framework import status

from core_backend.exceptions import ApiError, ResourceNotFoundError, ValidationError
from orders.models import Order, OrderItem
from .models import MenuCategory, MenuItem
from .modifier_services import ModifierResolutionService

logger = logging.getLogger(__name__)


def _get_or_404(queryset, pk, resource):
    try:
        return queryset.get(pk=pk)
    except (queryset.model.DoesNotExist, ValueError, DjangoValidationError):
        raise ResourceNotFoundError(resource, pk)


def menu_item_has_active_orders(menu_item):
    return OrderItem.objects.filter(
        menu_item=menu_item, order__status__in=Order.ACTIVE_STATUSES
    ).exists()


class MenuCategoryService:
    """
    Category management for the current restaurant.
    """

    @staticmethod
    def annotate_item_counts(queryset):
        return queryset.annotate(
            item_count=Count("items", filter=Q(items__is_active=True)),
            available_item_count=Count(
                "items", filter=Q(items__is_active=True, items__is_available=True)
            ),
        )

    @staticmethod
    def list_categories():
        return MenuCategoryService.annotate_item_counts(MenuCategory.objects.all()).order_by(
            "display_order", "name"
        )

    @staticmethod
    def get_category(category_id):
        return _get_or_404(MenuCategory.objects.all(), category_id, "Category")

    @staticmethod
    def get_category_with_items(category_id):
        available_items = MenuItem.all_objects.filter(is_active=True, is_available=True).order_by(
            "display_order", "name"
        )
        queryset = MenuCategory.objects.prefetch_related(
            Prefetch("items", queryset=available_items, to_attr="available_items")
        )
        return _get_or_404(queryset, category_id, "Category")

    @staticmethod
    def _ensure_name_available(restaurant, name, exclude_id=None):
        queryset = MenuCategory.all_objects.filter(
            restaurant=restaurant, name__iexact=name, is_active=True
        )
        if exclude_id is not None:
            queryset = queryset.exclude(pk=exclude_id)
        if queryset.exists():
            raise ApiError(
                status.HTTP_409_CONFLICT,
                "DUPLICATE_NAME",
                f'A category named "{name}" already exists',
            )

    @staticmethod
    def create_category(restaurant, data):
        MenuCategoryService._ensure_name_available(restaurant, data["name"])
        category = MenuCategory.objects.create(restaurant=restaurant, **data)
        logger.info(f"Menu category {category.pk} created for restaurant {restaurant.pk}")
        return category

    @staticmethod
    def update_category(category, data):
        if "name" in data:
            MenuCategoryService._ensure_name_available(
                category.restaurant_id, data["name"], exclude_id=category.pk
            )
        for field, value in data.items():
            setattr(category, field, value)
        category.save()
        return category

    @staticmethod
    def delete_category(category, staff=None):
        category.archive(archived_by=staff)
        logger.info(f"Menu category {category.pk} archived")

    @staticmethod
    @transaction.atomic
    def reorder(category_orders):
        """
        Apply ``[{"id", "display_order"}]`` to categories of the current restaurant.
        Unknown ids reject the whole batch.
        """
        ids = [entry["id"] for entry in category_orders]
        categories = {c.pk: c for c in MenuCategory.objects.filter(pk__in=ids)}
        missing = [str(pk) for pk in ids if pk not in categories]
        if missing:
            raise ValidationError(
                "Some categories were not found",
                details={"ids": missing},
                code="INVALID_CATEGORY",
            )

        for entry in category_orders:
            category = categories[entry["id"]]
            category.display_order = entry["display_order"]
        MenuCategory.objects.bulk_update(categories.values(), ["display_order"])
        return sorted(categories.values(), key=lambda c: (c.display_order, c.name))

    @staticmethod
    def bulk_set_active(category_ids, is_active):
        queryset = MenuCategory.objects.with_archived().filter(pk__in=category_ids)
        updated = queryset.update(
            is_active=is_active,
            archived_at=None if is_active else timezone.now(),
            updated_at=timezone.now(),
        )
        logger.info(f"Bulk set is_active={is_active} on {updated} menu categories")
        return updated


class MenuItemService:
    """
    Menu item management, including kitchen availability toggles.
    """

    @staticmethod
    def list_items(category_id=None, is_available=None, search=None):
        queryset = MenuItem.objects.select_related("category").order_by(
            "category__display_order", "display_order", "name"
        )
        if category_id:
            queryset = queryset.filter(category_id=category_id)
        if is_available is not None:
            queryset = queryset.filter(is_available=is_available)
        if search:
            queryset = queryset.filter(name__icontains=search)
        return queryset

    @staticmethod
    def get_item(item_id):
        return _get_or_404(MenuItem.objects.select_related("category"), item_id, "Menu item")

    @staticmethod
    def _resolve_category(restaurant, category_id):
        try:
            return MenuCategory.all_objects.get(pk=category_id, restaurant=restaurant, is_active=True)
        except (MenuCategory.DoesNotExist, ValueError, DjangoValidationError):
            raise ValidationError(
                "Category does not exist in this restaurant", code="INVALID_CATEGORY"
            )

    @staticmethod
    def _ensure_name_available(category, name, exclude_id=None):
        queryset = MenuItem.all_objects.filter(category=category, name__iexact=name, is_active=True)
        if exclude_id is not None:
            queryset = queryset.exclude(pk=exclude_id)
        if queryset.exists():
            raise ApiError(
                status.HTTP_409_CONFLICT,
                "DUPLICATE_ITEM_NAME",
                f'Menu item "{name}" already exists in this category',
            )

    @staticmethod
    def _ensure_category_has_room(category):
        count = MenuItem.all_objects.filter(category=category, is_active=True).count()
        if count >= MenuItem.MAX_PER_CATEGORY:
            raise ValidationError(
                f"Category cannot have more than {MenuItem.MAX_PER_CATEGORY} items",
                code="CATEGORY_FULL",
            )

    @staticmethod
    @transaction.atomic
    def create_item(restaurant, data):
        data = dict(data)
        category = MenuItemService._resolve_category(restaurant, data.pop("category"))
        MenuItemService._ensure_name_available(category, data["name"])
        MenuItemService._ensure_category_has_room(category)

        item = MenuItem.objects.create(restaurant=restaurant, category=category, **data)
        logger.info(f"Menu item {item.pk} ({item.name}) created in category {category.pk}")
        return item

    @staticmethod
    @transaction.atomic
    def update_item(item, data):
        data = dict(data)
        category = item.category
        if "category" in data:
            category = MenuItemService._resolve_category(item.restaurant_id, data.pop("category"))
            if category.pk != item.category_id:
                MenuItemService._ensure_category_has_room(category)

        if "name" in data or category.pk != item.category_id:
            MenuItemService._ensure_name_available(
                category, data.get("name", item.name), exclude_id=item.pk
            )

        item.category = category
        for field, value in data.items():
            setattr(item, field, value)
        item.save()
        return item

    @staticmethod
    def delete_item(item, staff=None):
        if menu_item_has_active_orders(item):
            raise ApiError(
                status.HTTP_409_CONFLICT,
                "HAS_ACTIVE_ORDERS",
                "Cannot delete a menu item that is part of an active order",
            )
        item.archive(archived_by=staff)
        logger.info(f"Menu item {item.pk} archived")

    @staticmethod
    def update_availability(item, is_available, staff, note=None):
        item.is_available = is_available
        if not is_available:
            item.last_unavailable_at = timezone.now()
            item.unavailable_by = staff
        if note is not None:
            item.availability_note = note
        elif is_available:
            item.availability_note = ""
        item.save(
            update_fields=[
                "is_available",
                "last_unavailable_at",
                "unavailable_by",
                "availability_note",
                "updated_at",
            ]
        )
        logger.info(
            f"Menu item {item.pk} marked {'available' if is_available else 'unavailable'} "
            f"by staff {getattr(staff, 'pk', None)}"
        )
        return item


class MenuService:
    """
    Read models of the whole menu for the staff dashboard and customer tablets.
    """

    @staticmethod
    def get_full_menu():
        items = MenuItem.all_objects.filter(is_active=True).order_by("display_order", "name")
        return MenuCategory.objects.prefetch_related(
            Prefetch("items", queryset=items, to_attr="menu_items")
        ).order_by("display_order", "name")

    @staticmethod
    def get_customer_menu(restaurant):
        """
        Active categories with their available items, each item carrying its
        resolved modifier groups.

        Runs with the restaurant resolved from the table code, so it reads the
        unscoped managers explicitly.
        """
        items = (
            MenuItem.all_objects.filter(is_active=True, is_available=True)
            .order_by("display_order", "name")
        )
        categories = (
            MenuCategory.all_objects.filter(restaurant=restaurant, is_active=True)
            .prefetch_related(Prefetch("items", queryset=items, to_attr="menu_items"))
            .order_by("display_order", "name")
        )

        menu = []
        for category in categories:
            if not category.menu_items:
                continue
            menu.append(
                {
                    "id": str(category.pk),
                    "name": category.name,
                    "description": category.description,
                    "image_url": category.image_url,
                    "display_order": category.display_order,
                    "items": [
                        {
                            "id": str(item.pk),
                            "name": item.name,
                            "description": item.description,
                            "image_url": item.image_url,
                            "price": str(item.price),
                            "preparation_time": item.preparation_time,
                            "display_order": item.display_order,
                            "modifier_groups": ModifierResolutionService.resolve_for_menu_item(item),
                            "legacy_modifier_groups": ModifierResolutionService.legacy_groups_for_menu_item(
                                item
                            ),
                        }
                        for item in category.menu_items
                    ],
                }
            )
        return menu
