from rest_framework import serializers

from core_backend.base import BaseModelSerializer, TimestampedSerializer
from .models import Table, TableAssistance


class TableSerializer(TimestampedSerializer):
    class Meta:
        model = Table
        fields = [
            "id",
            "number",
            "code",
            "capacity",
            "qr_code_url",
            "status",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TableCreateSerializer(serializers.Serializer):
    # Capacity range is checked by TableService so it reports INVALID_CAPACITY
    number = serializers.IntegerField(min_value=1, max_value=999)
    capacity = serializers.IntegerField(required=False)


class TableUpdateSerializer(serializers.Serializer):
    number = serializers.IntegerField(min_value=1, max_value=999, required=False)
    capacity = serializers.IntegerField(required=False)


class BulkTableCreateSerializer(serializers.Serializer):
    tables = TableCreateSerializer(many=True)


class TableStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Table.Status.choices)


class TableAssistanceSerializer(BaseModelSerializer):
    table_number = serializers.IntegerField(source="table.number", read_only=True)
    resolved_by_name = serializers.CharField(source="resolved_by.name", read_only=True, default=None)

    class Meta:
        model = TableAssistance
        fields = [
            "id",
            "table",
            "table_number",
            "type",
            "message",
            "created_at",
            "resolved_at",
            "resolved_by",
            "resolved_by_name",
        ]
        read_only_fields = fields
        select_related_fields = ["table", "resolved_by"]


class AssistanceRequestSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=TableAssistance.Type.choices, default=TableAssistance.Type.WAITER)
    message = serializers.CharField(max_length=500, required=False, allow_blank=True)
