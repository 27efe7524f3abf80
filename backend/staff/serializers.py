from rest_framework import serializers

from core_backend.base import BaseModelSerializer
from restaurants.serializers import RestaurantSummarySerializer
from .models import Staff, StaffSession

ASSIGNABLE_ROLES = [role for role in Staff.Role.values if role != Staff.Role.SUPER_ADMIN]


class StaffSerializer(BaseModelSerializer):
    restaurant = RestaurantSummarySerializer(read_only=True)

    class Meta:
        model = Staff
        fields = [
            "id",
            "name",
            "email",
            "role",
            "is_active",
            "restaurant",
            "last_login_at",
            "last_active_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
        select_related_fields = ["restaurant"]


class StaffSimpleSerializer(BaseModelSerializer):
    class Meta:
        model = Staff
        fields = ["id", "name", "role"]
        read_only_fields = fields


class StaffCreateSerializer(serializers.Serializer):
    """
    Write-only input for staff creation. Password strength and role
    restrictions are enforced by StaffService so the error codes match.
    """

    name = serializers.CharField(min_length=2, max_length=100, trim_whitespace=True)
    email = serializers.EmailField(max_length=255)
    password = serializers.CharField(max_length=100, write_only=True, trim_whitespace=False)
    role = serializers.ChoiceField(choices=Staff.Role.choices)
    restaurant_id = serializers.UUIDField(required=False)


class StaffUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=100, required=False)
    email = serializers.EmailField(max_length=255, required=False)
    role = serializers.ChoiceField(choices=Staff.Role.choices, required=False)
    is_active = serializers.BooleanField(required=False)
    password = serializers.CharField(
        max_length=100, required=False, write_only=True, trim_whitespace=False
    )

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field must be provided for update")
        return attrs


class BulkStaffUpdateSerializer(serializers.Serializer):
    staff_ids = serializers.ListField(
        child=serializers.UUIDField(), min_length=1, max_length=20
    )
    is_active = serializers.BooleanField(required=False)
    role = serializers.ChoiceField(choices=ASSIGNABLE_ROLES, required=False)

    def validate(self, attrs):
        if "is_active" not in attrs and "role" not in attrs:
            raise serializers.ValidationError("Provide is_active and/or role")
        return attrs


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(max_length=100, trim_whitespace=False)
    device_name = serializers.CharField(max_length=100, required=False, allow_blank=True)


class RefreshSerializer(serializers.Serializer):
    refresh = serializers.CharField(required=False, allow_blank=True)


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(trim_whitespace=False)
    new_password = serializers.CharField(max_length=100, trim_whitespace=False)

    def validate(self, attrs):
        if attrs["current_password"] == attrs["new_password"]:
            raise serializers.ValidationError(
                {"new_password": "New password must differ from the current password"}
            )
        return attrs


class StaffSessionSerializer(BaseModelSerializer):
    is_current = serializers.SerializerMethodField()

    class Meta:
        model = StaffSession
        fields = [
            "session_id",
            "device_info",
            "device_name",
            "ip_address",
            "user_agent",
            "created_at",
            "last_active_at",
            "expires_at",
            "is_current",
        ]
        read_only_fields = fields

    def get_is_current(self, obj):
        current = self.context.get("current_session_id")
        return current is not None and str(obj.session_id) == str(current)


class AdminStaffSessionSerializer(StaffSessionSerializer):
    staff = StaffSimpleSerializer(read_only=True)

    class Meta(StaffSessionSerializer.Meta):
        fields = StaffSessionSerializer.Meta.fields + [
            "staff",
            "is_active",
            "revoked_at",
            "revoked_by",
            "revoke_reason",
        ]
        read_only_fields = fields
        select_related_fields = ["staff"]
