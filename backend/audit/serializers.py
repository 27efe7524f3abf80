from core_backend.base import BaseModelSerializer
from .models import AuditLog


class AuditLogSerializer(BaseModelSerializer):
    class Meta:
        model = AuditLog
        fields = [
            "id",
            "action",
            "entity_type",
            "entity_id",
            "staff_id",
            "restaurant_id",
            "changes",
            "metadata",
            "ip_address",
            "user_agent",
            "severity",
            "success",
            "timestamp",
        ]
        read_only_fields = fields
