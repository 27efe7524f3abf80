import re

import pytz
from rest_framework import serializers

from core_backend.base import BaseModelSerializer
from .models import Restaurant

PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]{8,20}$")


class RestaurantSerializer(BaseModelSerializer):
    class Meta:
        model = Restaurant
        fields = [
            "id",
            "name",
            "slug",
            "email",
            "phone",
            "address",
            "logo_url",
            "currency",
            "tax_rate",
            "timezone",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class RestaurantSummarySerializer(BaseModelSerializer):
    class Meta:
        model = Restaurant
        fields = ["id", "name", "slug", "currency", "timezone"]
        read_only_fields = fields


class RestaurantWriteSerializer(serializers.Serializer):
    """
    Input validation for create and update. Contact requirements are
    enforced by RestaurantService on the merged result.
    """

    name = serializers.CharField(min_length=2, max_length=120, trim_whitespace=True)
    email = serializers.EmailField(max_length=255, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    address = serializers.CharField(max_length=500, required=False, allow_blank=True)
    logo_url = serializers.URLField(max_length=500, required=False, allow_blank=True)
    currency = serializers.CharField(min_length=3, max_length=3, required=False)
    tax_rate = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False
    )
    timezone = serializers.CharField(max_length=64, required=False)
    is_active = serializers.BooleanField(required=False)

    def validate_email(self, value):
        return value.strip().lower()

    def validate_phone(self, value):
        value = value.strip()
        if value and not PHONE_PATTERN.match(value):
            raise serializers.ValidationError("Invalid phone number format")
        return value

    def validate_currency(self, value):
        value = value.upper()
        if not value.isalpha():
            raise serializers.ValidationError("Currency must be a 3-letter ISO code")
        return value

    def validate_timezone(self, value):
        if value not in pytz.all_timezones_set:
            raise serializers.ValidationError(f"Unknown timezone: {value}")
        return value

    def validate(self, attrs):
        if self.partial and not attrs:
            raise serializers.ValidationError("At least one field must be provided for update")
        return attrs
