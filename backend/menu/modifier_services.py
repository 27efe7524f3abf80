"""
Modifier management: legacy per-item modifier groups, reusable modifier
templates with per-item overrides, and resolution/validation of a customer's
modifier selection for a menu item.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Avg, Count, Max, Prefetch, Q
from rest_framework import status

from core_backend.exceptions import ApiError, ResourceNotFoundError, ValidationError
from orders.exceptions import ModifierNotAvailableError
from orders.models import Order, OrderItemModifier
from .models import (
    MenuItem,
    MenuItemModifierGroup,
    MenuItemModifierOption,
    Modifier,
    ModifierGroup,
    ModifierOption,
    ModifierTemplate,
)

logger = logging.getLogger(__name__)


def _get_or_404(queryset, pk, resource):
    try:
        return queryset.get(pk=pk)
    except (queryset.model.DoesNotExist, ValueError, DjangoValidationError):
        raise ResourceNotFoundError(resource, pk)


def validate_selection_range(min_select, max_select, single_select):
    if max_select is not None and min_select > max_select:
        raise ValidationError(
            "min_select cannot be greater than max_select", code="INVALID_SELECTION_RANGE"
        )
    if single_select and (max_select is None or max_select > 1):
        raise ValidationError(
            "A single-select group allows at most one selection", code="INVALID_SINGLE_SELECT"
        )


class ModifierGroupService:
    """
    Legacy modifier groups attached directly to one menu item.
    """

    @staticmethod
    def list_groups(menu_item_id=None):
        queryset = ModifierGroup.objects.prefetch_related(
            Prefetch(
                "modifiers",
                queryset=Modifier.all_objects.filter(is_active=True).order_by("display_order", "name"),
            )
        ).order_by("menu_item_id", "display_order", "name")
        if menu_item_id:
            queryset = queryset.filter(menu_item_id=menu_item_id)
        return queryset

    @staticmethod
    def get_group(group_id):
        return _get_or_404(ModifierGroupService.list_groups(), group_id, "Modifier group")

    @staticmethod
    def _ensure_name_available(menu_item, name, exclude_id=None):
        queryset = ModifierGroup.all_objects.filter(
            menu_item=menu_item, name__iexact=name, is_active=True
        )
        if exclude_id is not None:
            queryset = queryset.exclude(pk=exclude_id)
        if queryset.exists():
            raise ApiError(
                status.HTTP_409_CONFLICT,
                "DUPLICATE_NAME",
                "Modifier group with this name already exists for this menu item",
            )

    @staticmethod
    def create_group(data):
        data = dict(data)
        menu_item = _get_or_404(MenuItem.objects.all(), data.pop("menu_item"), "Menu item")
        multi_select = data.get("multi_select", False)
        min_select = data.get("min_select", 0)
        max_select = data.get("max_select", 1)
        validate_selection_range(min_select, max_select, not multi_select)
        ModifierGroupService._ensure_name_available(menu_item, data["name"])

        group = ModifierGroup.objects.create(menu_item=menu_item, **data)
        logger.info(f"Modifier group {group.pk} created for menu item {menu_item.pk}")
        return group

    @staticmethod
    def update_group(group, data):
        multi_select = data.get("multi_select", group.multi_select)
        min_select = data.get("min_select", group.min_select)
        max_select = data.get("max_select", group.max_select)
        validate_selection_range(min_select, max_select, not multi_select)
        if "name" in data:
            ModifierGroupService._ensure_name_available(
                group.menu_item_id, data["name"], exclude_id=group.pk
            )

        for field, value in data.items():
            setattr(group, field, value)
        group.save()
        return group

    @staticmethod
    @transaction.atomic
    def delete_group(group, staff=None):
        in_use = OrderItemModifier.all_objects.filter(
            modifier__group=group, order_item__order__status__in=Order.ACTIVE_STATUSES
        ).exists()
        if in_use:
            raise ApiError(
                status.HTTP_409_CONFLICT,
                "HAS_ACTIVE_ORDERS",
                "Cannot delete modifier group with active orders",
            )
        Modifier.all_objects.filter(group=group, is_active=True).update(is_active=False)
        group.archive(archived_by=staff)
        logger.info(f"Modifier group {group.pk} and its modifiers archived")

    @staticmethod
    @transaction.atomic
    def reorder(group_orders):
        ids = [entry["id"] for entry in group_orders]
        groups = {g.pk: g for g in ModifierGroup.objects.filter(pk__in=ids)}
        missing = [str(pk) for pk in ids if pk not in groups]
        if missing:
            raise ResourceNotFoundError("Modifier group", ", ".join(missing))
        if len({g.menu_item_id for g in groups.values()}) > 1:
            raise ValidationError(
                "All modifier groups must belong to the same menu item", code="MIXED_MENU_ITEMS"
            )

        for entry in group_orders:
            groups[entry["id"]].display_order = entry["display_order"]
        ModifierGroup.objects.bulk_update(groups.values(), ["display_order"])
        return sorted(groups.values(), key=lambda g: g.display_order)

    @staticmethod
    def bulk_update(group_ids, data):
        queryset = ModifierGroup.objects.with_archived().filter(pk__in=group_ids)
        updated = queryset.update(**data)
        logger.info(f"Bulk updated {updated} modifier groups with {sorted(data)}")
        return updated

    @staticmethod
    def statistics(menu_item_id):
        menu_item = _get_or_404(MenuItem.objects.all(), menu_item_id, "Menu item")
        groups = ModifierGroup.all_objects.filter(menu_item=menu_item, is_active=True)
        modifiers = Modifier.all_objects.filter(group__in=groups, is_active=True)
        average = modifiers.aggregate(avg=Avg("price"))["avg"] or Decimal("0")

        return {
            "menu_item_id": str(menu_item.pk),
            "group_count": groups.count(),
            "modifier_count": modifiers.count(),
            "required_count": groups.filter(required=True).count(),
            "average_modifier_price": str(
                Decimal(average).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
            ),
        }


class ModifierService:
    """Options inside a legacy modifier group."""

    @staticmethod
    def list_modifiers(group_id=None):
        queryset = Modifier.objects.select_related("group").order_by("group_id", "display_order", "name")
        if group_id:
            queryset = queryset.filter(group_id=group_id)
        return queryset

    @staticmethod
    def get_modifier(modifier_id):
        return _get_or_404(Modifier.objects.select_related("group"), modifier_id, "Modifier")

    @staticmethod
    def _ensure_name_available(group, name, exclude_id=None):
        queryset = Modifier.all_objects.filter(group=group, name__iexact=name, is_active=True)
        if exclude_id is not None:
            queryset = queryset.exclude(pk=exclude_id)
        if queryset.exists():
            raise ApiError(
                status.HTTP_409_CONFLICT,
                "DUPLICATE_NAME",
                "Modifier with this name already exists in this group",
            )

    @staticmethod
    def create_modifier(data):
        data = dict(data)
        group = _get_or_404(ModifierGroup.objects.all(), data.pop("group"), "Modifier group")
        ModifierService._ensure_name_available(group, data["name"])
        return Modifier.objects.create(group=group, **data)

    @staticmethod
    def update_modifier(modifier, data):
        if "name" in data:
            ModifierService._ensure_name_available(modifier.group_id, data["name"], exclude_id=modifier.pk)
        for field, value in data.items():
            setattr(modifier, field, value)
        modifier.save()
        return modifier

    @staticmethod
    def delete_modifier(modifier, staff=None):
        modifier.archive(archived_by=staff)


class ModifierTemplateService:
    """
    Reusable modifier templates, their options, and their assignment to menu
    items with per-item option overrides.
    """

    @staticmethod
    def _active_options():
        return ModifierOption.all_objects.filter(is_active=True).order_by("display_order", "name")

    @staticmethod
    def list_templates(search=None, is_active=None):
        queryset = ModifierTemplate.objects.with_archived()
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active)
        else:
            queryset = queryset.filter(is_active=True)
        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(description__icontains=search))
        return (
            queryset.annotate(usage_count=Count("assignments", distinct=True))
            .prefetch_related(Prefetch("options", queryset=ModifierTemplateService._active_options()))
            .order_by("name")
        )

    @staticmethod
    def get_template(template_id):
        queryset = ModifierTemplate.objects.annotate(
            usage_count=Count("assignments", distinct=True)
        ).prefetch_related(Prefetch("options", queryset=ModifierTemplateService._active_options()))
        return _get_or_404(queryset, template_id, "Modifier template")

    @staticmethod
    def _ensure_name_available(restaurant_id, name, exclude_id=None):
        queryset = ModifierTemplate.all_objects.filter(
            restaurant_id=restaurant_id, name__iexact=name, is_active=True
        )
        if exclude_id is not None:
            queryset = queryset.exclude(pk=exclude_id)
        if queryset.exists():
            raise ApiError(
                status.HTTP_409_CONFLICT,
                "DUPLICATE_NAME",
                "A modifier template with this name already exists in this restaurant",
            )

    @staticmethod
    @transaction.atomic
    def create_template(restaurant, data):
        data = dict(data)
        options = data.pop("options", [])
        ModifierTemplateService._ensure_name_available(restaurant.pk, data["name"])

        names = [option["name"].lower() for option in options]
        if len(names) != len(set(names)):
            raise ApiError(
                status.HTTP_409_CONFLICT,
                "DUPLICATE_OPTION",
                "Option names must be unique within a template",
            )

        template = ModifierTemplate.objects.create(restaurant=restaurant, **data)
        ModifierOption.objects.bulk_create(
            [
                ModifierOption(
                    template=template,
                    name=option["name"],
                    price=option.get("price", Decimal("0.00")),
                    display_order=option.get("display_order", index),
                )
                for index, option in enumerate(options)
            ]
        )
        logger.info(
            f"Modifier template {template.pk} created with {len(options)} options "
            f"for restaurant {restaurant.pk}"
        )
        return ModifierTemplateService.get_template(template.pk)

    @staticmethod
    def update_template(template, data):
        if "name" in data:
            ModifierTemplateService._ensure_name_available(
                template.restaurant_id, data["name"], exclude_id=template.pk
            )
        for field, value in data.items():
            setattr(template, field, value)
        template.save()
        return ModifierTemplateService.get_template(template.pk)

    @staticmethod
    @transaction.atomic
    def delete_template(template, staff=None):
        if template.assignments.exists():
            raise ValidationError(
                "Cannot delete template that is assigned to menu items", code="TEMPLATE_IN_USE"
            )
        ModifierOption.all_objects.filter(template=template, is_active=True).update(is_active=False)
        template.archive(archived_by=staff)
        logger.info(f"Modifier template {template.pk} archived")

    # Options

    @staticmethod
    def _ensure_option_name_available(template, name, exclude_id=None):
        queryset = ModifierOption.all_objects.filter(template=template, name__iexact=name, is_active=True)
        if exclude_id is not None:
            queryset = queryset.exclude(pk=exclude_id)
        if queryset.exists():
            raise ApiError(
                status.HTTP_409_CONFLICT,
                "DUPLICATE_OPTION",
                "An option with this name already exists in this template",
            )

    @staticmethod
    def get_option(template, option_id):
        return _get_or_404(
            ModifierOption.all_objects.filter(template=template, is_active=True),
            option_id,
            "Modifier option",
        )

    @staticmethod
    def add_option(template, data):
        data = dict(data)
        ModifierTemplateService._ensure_option_name_available(template, data["name"])
        if data.get("display_order") is None:
            current_max = ModifierOption.all_objects.filter(
                template=template, is_active=True
            ).aggregate(max_order=Max("display_order"))["max_order"]
            data["display_order"] = 0 if current_max is None else current_max + 1
        return ModifierOption.objects.create(template=template, **data)

    @staticmethod
    def update_option(template, option_id, data):
        option = ModifierTemplateService.get_option(template, option_id)
        if "name" in data:
            ModifierTemplateService._ensure_option_name_available(
                template, data["name"], exclude_id=option.pk
            )
        for field, value in data.items():
            setattr(option, field, value)
        option.save()
        return option

    @staticmethod
    def delete_option(template, option_id, staff=None):
        option = ModifierTemplateService.get_option(template, option_id)
        option.archive(archived_by=staff)

    # Assignments

    @staticmethod
    def list_assignments(menu_item):
        return (
            MenuItemModifierGroup.all_objects.filter(menu_item=menu_item)
            .select_related("template")
            .prefetch_related("option_overrides")
            .order_by("display_order")
        )

    @staticmethod
    def get_assignment(menu_item, template_id):
        try:
            return MenuItemModifierGroup.all_objects.select_related("template").get(
                menu_item=menu_item, template_id=template_id
            )
        except (MenuItemModifierGroup.DoesNotExist, ValueError, DjangoValidationError):
            raise ResourceNotFoundError("Template assignment", template_id)

    @staticmethod
    def _validate_assignment_rules(template, min_select, max_select):
        single = template.type == ModifierTemplate.Type.SINGLE_CHOICE
        validate_selection_range(min_select, max_select, single)

    @staticmethod
    def assign_to_menu_item(menu_item, data):
        data = dict(data)
        template = _get_or_404(
            ModifierTemplate.all_objects.filter(is_active=True), data.pop("template"), "Modifier template"
        )
        if template.restaurant_id != menu_item.restaurant_id:
            raise ValidationError(
                "Template and menu item belong to different restaurants", code="RESTAURANT_MISMATCH"
            )
        if MenuItemModifierGroup.all_objects.filter(menu_item=menu_item, template=template).exists():
            raise ApiError(
                status.HTTP_409_CONFLICT,
                "ALREADY_ASSIGNED",
                "This template is already assigned to the menu item",
            )

        if template.type == ModifierTemplate.Type.SINGLE_CHOICE and data.get("max_select") is None:
            data["max_select"] = 1
        ModifierTemplateService._validate_assignment_rules(
            template, data.get("min_select", 0), data.get("max_select")
        )

        assignment = MenuItemModifierGroup.objects.create(menu_item=menu_item, template=template, **data)
        logger.info(f"Template {template.pk} assigned to menu item {menu_item.pk}")
        return assignment

    @staticmethod
    def update_assignment(menu_item, template_id, data):
        assignment = ModifierTemplateService.get_assignment(menu_item, template_id)
        ModifierTemplateService._validate_assignment_rules(
            assignment.template,
            data.get("min_select", assignment.min_select),
            data.get("max_select", assignment.max_select),
        )
        for field, value in data.items():
            setattr(assignment, field, value)
        assignment.save()
        return assignment

    @staticmethod
    def unassign(menu_item, template_id):
        assignment = ModifierTemplateService.get_assignment(menu_item, template_id)
        assignment.delete()
        logger.info(f"Template {template_id} unassigned from menu item {menu_item.pk}")

    @staticmethod
    def upsert_override(menu_item, template_id, option_id, data):
        assignment = ModifierTemplateService.get_assignment(menu_item, template_id)
        option = ModifierOption.all_objects.filter(
            pk=option_id, template_id=assignment.template_id, is_active=True
        ).first()
        if option is None:
            raise ValidationError(
                "Option does not belong to the assigned template", code="OPTION_NOT_IN_TEMPLATE"
            )
        override, _ = MenuItemModifierOption.all_objects.update_or_create(
            group=assignment, option=option, defaults=data
        )
        return override

    @staticmethod
    def remove_override(menu_item, template_id, option_id):
        assignment = ModifierTemplateService.get_assignment(menu_item, template_id)
        deleted, _ = MenuItemModifierOption.all_objects.filter(
            group=assignment, option_id=option_id
        ).delete()
        if not deleted:
            raise ResourceNotFoundError("Option override", option_id)


class ModifierResolutionService:
    """
    Merges each assigned template with the menu item's overrides into the
    groups a customer actually chooses from.
    """

    @staticmethod
    def _template_groups(menu_item):
        assignments = (
            MenuItemModifierGroup.all_objects.filter(menu_item=menu_item, template__is_active=True)
            .select_related("template")
            .prefetch_related(
                Prefetch(
                    "template__options",
                    queryset=ModifierTemplateService._active_options(),
                    to_attr="active_options",
                ),
                "option_overrides",
            )
            .order_by("display_order")
        )

        groups = []
        for assignment in assignments:
            template = assignment.template
            overrides = {o.option_id: o for o in assignment.option_overrides.all()}
            options = []
            for option in template.active_options:
                override = overrides.get(option.pk)
                if override is not None and override.is_hidden:
                    continue
                price = option.price
                if override is not None and override.price_override is not None:
                    price = override.price_override
                options.append(
                    {
                        "id": option.pk,
                        "name": (override.name_override if override else "") or option.name,
                        "price": price,
                        "is_default": bool(override and override.is_default),
                        "display_order": option.display_order,
                        "option": option,
                    }
                )

            groups.append(
                {
                    "id": assignment.pk,
                    "template_id": template.pk,
                    "name": assignment.display_name or template.name,
                    "type": template.type,
                    "required": assignment.required,
                    "min_select": assignment.min_select,
                    "max_select": assignment.max_select,
                    "display_order": assignment.display_order,
                    "options": options,
                }
            )
        return groups

    @staticmethod
    def _legacy_groups(menu_item):
        groups = ModifierGroup.all_objects.filter(menu_item=menu_item, is_active=True).prefetch_related(
            Prefetch(
                "modifiers",
                queryset=Modifier.all_objects.filter(is_active=True).order_by("display_order", "name"),
                to_attr="active_modifiers",
            )
        ).order_by("display_order", "name")
        return list(groups)

    @staticmethod
    def resolve_for_menu_item(menu_item):
        return [
            {
                **{key: group[key] for key in ("name", "type", "required", "min_select", "max_select", "display_order")},
                "id": str(group["id"]),
                "template_id": str(group["template_id"]),
                "options": [
                    {
                        "id": str(option["id"]),
                        "name": option["name"],
                        "price": str(option["price"]),
                        "is_default": option["is_default"],
                        "display_order": option["display_order"],
                    }
                    for option in group["options"]
                ],
            }
            for group in ModifierResolutionService._template_groups(menu_item)
        ]

    @staticmethod
    def legacy_groups_for_menu_item(menu_item):
        return [
            {
                "id": str(group.pk),
                "name": group.name,
                "required": group.required,
                "multi_select": group.multi_select,
                "min_select": group.min_select,
                "max_select": group.max_select,
                "display_order": group.display_order,
                "modifiers": [
                    {
                        "id": str(modifier.pk),
                        "name": modifier.name,
                        "price": str(modifier.price),
                        "display_order": modifier.display_order,
                    }
                    for modifier in group.active_modifiers
                ],
            }
            for group in ModifierResolutionService._legacy_groups(menu_item)
        ]


class BaseSelectionStrategy:
    def validate(self, group, selected):
        raise NotImplementedError("Subclasses must implement this method.")

    def _check_required(self, group, selected):
        if (group["required"] or group["min_select"] > 0) and not selected:
            raise ValidationError(
                f"A selection is required for '{group['name']}'",
                details={"group": group["name"]},
                code="REQUIRED_MODIFIER",
            )


class SingleSelectionStrategy(BaseSelectionStrategy):
    def validate(self, group, selected):
        self._check_required(group, selected)
        if len(selected) > 1:
            raise ValidationError(
                f"Only one option can be selected for '{group['name']}'",
                details={"group": group["name"], "max_select": 1},
                code="MAX_MODIFIER_EXCEEDED",
            )


class MultipleSelectionStrategy(BaseSelectionStrategy):
    def validate(self, group, selected):
        if group["required"]:
            self._check_required(group, selected)
        count = len(selected)
        if count < group["min_select"]:
            raise ValidationError(
                f"Select at least {group['min_select']} options for '{group['name']}'",
                details={"group": group["name"], "min_select": group["min_select"]},
                code="MIN_MODIFIER_NOT_MET",
            )
        if group["max_select"] is not None and count > group["max_select"]:
            raise ValidationError(
                f"Select at most {group['max_select']} options for '{group['name']}'",
                details={"group": group["name"], "max_select": group["max_select"]},
                code="MAX_MODIFIER_EXCEEDED",
            )


class ModifierSelectionService:
    """
    Validates the modifier ids chosen for one order line and returns the
    priced selections to capture on the order.
    """

    SINGLE = "SINGLE"
    MULTIPLE = "MULTIPLE"

    STRATEGIES = {
        SINGLE: SingleSelectionStrategy(),
        MULTIPLE: MultipleSelectionStrategy(),
    }

    @classmethod
    def _selectable_groups(cls, menu_item):
        groups = []
        for group in ModifierResolutionService._template_groups(menu_item):
            groups.append(
                {
                    "name": group["name"],
                    "selection": cls.SINGLE
                    if group["type"] == ModifierTemplate.Type.SINGLE_CHOICE
                    else cls.MULTIPLE,
                    "required": group["required"],
                    "min_select": group["min_select"],
                    "max_select": group["max_select"],
                    "choices": {
                        option["id"]: {
                            "option": option["option"],
                            "modifier": None,
                            "name": option["name"],
                            "price": option["price"],
                        }
                        for option in group["options"]
                    },
                }
            )

        for group in ModifierResolutionService._legacy_groups(menu_item):
            groups.append(
                {
                    "name": group.name,
                    "selection": cls.MULTIPLE if group.multi_select else cls.SINGLE,
                    "required": group.required,
                    "min_select": group.min_select,
                    "max_select": group.max_select,
                    "choices": {
                        modifier.pk: {
                            "option": None,
                            "modifier": modifier,
                            "name": modifier.name,
                            "price": modifier.price,
                        }
                        for modifier in group.active_modifiers
                    },
                }
            )
        return groups

    @classmethod
    def validate_selection(cls, menu_item, selected_ids):
        """
        Returns a list of ``{"option", "modifier", "name", "price"}`` for the
        selected ids, in the order the groups are displayed.

        Raises MODIFIER_UNAVAILABLE for unknown or hidden ids and the group
        rule errors (REQUIRED_MODIFIER, MIN_MODIFIER_NOT_MET, MAX_MODIFIER_EXCEEDED).
        """
        selected_ids = set(selected_ids or [])
        groups = cls._selectable_groups(menu_item)

        valid_ids = set()
        for group in groups:
            valid_ids.update(group["choices"])

        invalid = selected_ids - valid_ids
        if invalid:
            raise ModifierNotAvailableError(
                f"Modifier not available for '{menu_item.name}'",
                details={"modifier_ids": sorted(str(pk) for pk in invalid)},
            )

        selections = []
        for group in groups:
            chosen = [pk for pk in group["choices"] if pk in selected_ids]
            cls.STRATEGIES[group["selection"]].validate(group, chosen)
            selections.extend(group["choices"][pk] for pk in chosen)
        return selections
