from rest_framework import serializers

from core_backend.base import BaseModelSerializer, TimestampedSerializer
from .models import Order, OrderItem, OrderItemModifier
from .services import OrderService


# Input


class OrderItemInputSerializer(serializers.Serializer):
    menu_item = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, max_value=10, default=1)
    modifiers = serializers.ListField(
        child=serializers.UUIDField(), required=False, default=list, max_length=20
    )
    notes = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class OrderCreateBaseSerializer(serializers.Serializer):
    # Line limits differ for staff and customers and are checked by the service
    items = OrderItemInputSerializer(many=True, allow_empty=True)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    customer_name = serializers.CharField(
        max_length=100, required=False, allow_blank=True, default=""
    )
    customer_phone = serializers.RegexField(
        r"^\+?[\d\s\-()]{8,20}$", max_length=20, required=False, allow_blank=True, default=""
    )


class StaffOrderCreateSerializer(OrderCreateBaseSerializer):
    table = serializers.UUIDField()


class CustomerOrderCreateSerializer(OrderCreateBaseSerializer):
    session_token = serializers.CharField(max_length=100, required=False, allow_blank=True)


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.Status.choices)
    estimated_time = serializers.IntegerField(
        min_value=1, max_value=300, required=False, allow_null=True
    )
    status_notes = serializers.CharField(max_length=500, required=False, allow_blank=True)


class OrderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True)


class OrderNotesSerializer(serializers.Serializer):
    notes = serializers.CharField(max_length=500, allow_blank=True)


class OrderStatisticsQuerySerializer(serializers.Serializer):
    days = serializers.IntegerField(min_value=1, max_value=365, default=7)


# Output


class OrderItemModifierSerializer(BaseModelSerializer):
    class Meta:
        model = OrderItemModifier
        fields = ["id", "option", "modifier", "name", "price"]
        read_only_fields = fields


class OrderItemSerializer(BaseModelSerializer):
    menu_item_name = serializers.CharField(source="menu_item.name", read_only=True)
    modifiers = OrderItemModifierSerializer(many=True, read_only=True)
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)
    line_total = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "menu_item",
            "menu_item_name",
            "quantity",
            "price",
            "unit_price",
            "line_total",
            "notes",
            "modifiers",
        ]
        read_only_fields = fields


class OrderSerializer(TimestampedSerializer):
    table_number = serializers.IntegerField(source="table.number", read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    can_modify = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "table",
            "table_number",
            "status",
            "payment_status",
            "subtotal",
            "tax_amount",
            "service_fee",
            "total_amount",
            "notes",
            "status_notes",
            "estimated_time",
            "customer_name",
            "customer_phone",
            "session_id",
            "items",
            "can_modify",
            "confirmed_at",
            "confirmed_by",
            "ready_at",
            "delivered_at",
            "completed_at",
            "cancelled_at",
            "cancelled_by",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
        select_related_fields = ["table"]
        prefetch_related_fields = ["items__menu_item", "items__modifiers"]

    def get_can_modify(self, obj):
        return OrderService.can_modify_order(obj)


class OrderListSerializer(TimestampedSerializer):
    table_number = serializers.IntegerField(source="table.number", read_only=True)
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "table",
            "table_number",
            "status",
            "payment_status",
            "total_amount",
            "item_count",
            "customer_name",
            "estimated_time",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
        select_related_fields = ["table"]
        prefetch_related_fields = ["items"]

    def get_item_count(self, obj):
        return obj.item_count


# Customer-facing


class CustomerOrderItemSerializer(serializers.Serializer):
    name = serializers.CharField(source="menu_item.name")
    quantity = serializers.IntegerField()
    line_total = serializers.DecimalField(max_digits=10, decimal_places=2)
    modifiers = serializers.SerializerMethodField()
    notes = serializers.CharField()

    def get_modifiers(self, obj):
        return [modifier.name for modifier in obj.modifiers.all()]


class OrderTrackingSerializer(serializers.Serializer):
    """Limited order view for tracking by order number."""

    order_number = serializers.CharField()
    status = serializers.CharField()
    estimated_time = serializers.IntegerField(allow_null=True)
    table_number = serializers.IntegerField(source="table.number")
    restaurant_name = serializers.CharField(source="restaurant.name")
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()


class CustomerOrderSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    order_number = serializers.CharField()
    status = serializers.CharField()
    estimated_time = serializers.IntegerField(allow_null=True)
    total_amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    tax_amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    notes = serializers.CharField()
    items = CustomerOrderItemSerializer(many=True)
    created_at = serializers.DateTimeField()
