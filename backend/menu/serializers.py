from decimal import Decimal

from rest_framework import serializers

from core_backend.base import BaseModelSerializer, TimestampedSerializer
from .models import (
    MenuCategory,
    MenuItem,
    MenuItemModifierGroup,
    MenuItemModifierOption,
    Modifier,
    ModifierGroup,
    ModifierOption,
    ModifierTemplate,
)


class DisplayOrderEntrySerializer(serializers.Serializer):
    id = serializers.UUIDField()
    display_order = serializers.IntegerField(min_value=0, max_value=9999)


class ReorderSerializer(serializers.Serializer):
    items = DisplayOrderEntrySerializer(many=True, allow_empty=False, max_length=100)

    def validate_items(self, value):
        ids = [entry["id"] for entry in value]
        if len(ids) != len(set(ids)):
            raise serializers.ValidationError("Duplicate ids in reorder request")
        return value


class BulkActiveSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.UUIDField(), min_length=1, max_length=50)
    is_active = serializers.BooleanField()


# Categories


class MenuCategorySerializer(TimestampedSerializer):
    item_count = serializers.IntegerField(read_only=True, default=None)
    available_item_count = serializers.IntegerField(read_only=True, default=None)

    class Meta:
        model = MenuCategory
        fields = [
            "id",
            "name",
            "description",
            "image_url",
            "display_order",
            "is_active",
            "item_count",
            "available_item_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "is_active", "created_at", "updated_at"]


class MenuCategoryWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)
    image_url = serializers.URLField(max_length=500, required=False, allow_blank=True)
    display_order = serializers.IntegerField(min_value=0, max_value=9999, required=False)

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Name cannot be blank")
        return value


# Menu items


class MenuItemSerializer(TimestampedSerializer):
    category_name = serializers.CharField(source="category.name", read_only=True)

    class Meta:
        model = MenuItem
        fields = [
            "id",
            "category",
            "category_name",
            "name",
            "description",
            "image_url",
            "price",
            "is_available",
            "preparation_time",
            "display_order",
            "stock_count",
            "availability_note",
            "last_unavailable_at",
            "unavailable_by",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
        select_related_fields = ["category"]


class MenuItemWriteSerializer(serializers.Serializer):
    category = serializers.UUIDField()
    name = serializers.CharField(max_length=120)
    description = serializers.CharField(max_length=1000, required=False, allow_blank=True)
    image_url = serializers.URLField(max_length=500, required=False, allow_blank=True)
    price = serializers.DecimalField(
        max_digits=6, decimal_places=2, min_value=Decimal("0.01"), max_value=Decimal("9999.99")
    )
    is_available = serializers.BooleanField(required=False)
    preparation_time = serializers.IntegerField(
        min_value=1, max_value=180, required=False, allow_null=True
    )
    display_order = serializers.IntegerField(min_value=0, max_value=9999, required=False)
    stock_count = serializers.IntegerField(min_value=0, required=False, allow_null=True)

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Name cannot be blank")
        return value


class MenuItemAvailabilitySerializer(serializers.Serializer):
    is_available = serializers.BooleanField()
    note = serializers.CharField(max_length=255, required=False, allow_blank=True)


class CategoryWithItemsSerializer(MenuCategorySerializer):
    items = serializers.SerializerMethodField()

    class Meta(MenuCategorySerializer.Meta):
        fields = MenuCategorySerializer.Meta.fields + ["items"]

    def get_items(self, obj):
        items = getattr(obj, "available_items", None)
        if items is None:
            items = getattr(obj, "menu_items", [])
        return MenuItemSerializer(items, many=True).data


# Legacy modifier groups


class ModifierSerializer(TimestampedSerializer):
    class Meta:
        model = Modifier
        fields = [
            "id",
            "group",
            "name",
            "price",
            "display_order",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ModifierWriteSerializer(serializers.Serializer):
    group = serializers.UUIDField()
    name = serializers.CharField(max_length=100)
    price = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=Decimal("0"),
        max_value=Decimal("999.99"),
        required=False,
    )
    display_order = serializers.IntegerField(min_value=0, max_value=9999, required=False)


class ModifierGroupSerializer(TimestampedSerializer):
    modifiers = ModifierSerializer(many=True, read_only=True)

    class Meta:
        model = ModifierGroup
        fields = [
            "id",
            "menu_item",
            "name",
            "required",
            "multi_select",
            "min_select",
            "max_select",
            "display_order",
            "is_active",
            "modifiers",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ModifierGroupWriteSerializer(serializers.Serializer):
    # Range rules are checked by ModifierGroupService so they report their own codes
    menu_item = serializers.UUIDField()
    name = serializers.CharField(max_length=100)
    required = serializers.BooleanField(required=False)
    multi_select = serializers.BooleanField(required=False)
    min_select = serializers.IntegerField(min_value=0, max_value=50, required=False)
    max_select = serializers.IntegerField(min_value=0, max_value=50, required=False)
    display_order = serializers.IntegerField(min_value=0, max_value=9999, required=False)


class ModifierGroupBulkUpdateSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.UUIDField(), min_length=1, max_length=50)
    is_active = serializers.BooleanField(required=False)
    required = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if "is_active" not in attrs and "required" not in attrs:
            raise serializers.ValidationError("Provide is_active and/or required")
        return attrs


# Modifier templates


class ModifierOptionSerializer(TimestampedSerializer):
    class Meta:
        model = ModifierOption
        fields = ["id", "name", "price", "display_order", "is_active", "created_at", "updated_at"]
        read_only_fields = fields


class ModifierOptionWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    price = serializers.DecimalField(
        max_digits=6, decimal_places=2, min_value=Decimal("0"), required=False
    )
    display_order = serializers.IntegerField(min_value=0, max_value=9999, required=False)


class ModifierTemplateSerializer(TimestampedSerializer):
    options = ModifierOptionSerializer(many=True, read_only=True)
    usage_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = ModifierTemplate
        fields = [
            "id",
            "name",
            "description",
            "type",
            "is_active",
            "options",
            "usage_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ModifierTemplateWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)
    type = serializers.ChoiceField(choices=ModifierTemplate.Type.choices, required=False)
    options = ModifierOptionWriteSerializer(many=True, required=False, max_length=50)


class MenuItemModifierOptionSerializer(BaseModelSerializer):
    class Meta:
        model = MenuItemModifierOption
        fields = ["id", "option", "is_hidden", "price_override", "name_override", "is_default"]
        read_only_fields = fields


class OptionOverrideWriteSerializer(serializers.Serializer):
    is_hidden = serializers.BooleanField(required=False)
    price_override = serializers.DecimalField(
        max_digits=6, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True
    )
    name_override = serializers.CharField(max_length=100, required=False, allow_blank=True)
    is_default = serializers.BooleanField(required=False)


class MenuItemModifierGroupSerializer(BaseModelSerializer):
    template_name = serializers.CharField(source="template.name", read_only=True)
    template_type = serializers.CharField(source="template.type", read_only=True)
    option_overrides = MenuItemModifierOptionSerializer(many=True, read_only=True)

    class Meta:
        model = MenuItemModifierGroup
        fields = [
            "id",
            "menu_item",
            "template",
            "template_name",
            "template_type",
            "display_name",
            "required",
            "min_select",
            "max_select",
            "display_order",
            "option_overrides",
        ]
        read_only_fields = fields


class TemplateAssignmentSerializer(serializers.Serializer):
    template = serializers.UUIDField()
    display_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    required = serializers.BooleanField(required=False)
    min_select = serializers.IntegerField(min_value=0, max_value=50, required=False)
    max_select = serializers.IntegerField(min_value=0, max_value=50, required=False, allow_null=True)
    display_order = serializers.IntegerField(min_value=0, max_value=9999, required=False)


class TemplateAssignmentUpdateSerializer(TemplateAssignmentSerializer):
    template = None
