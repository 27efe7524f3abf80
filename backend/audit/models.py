from django.db import models


class AuditLog(models.Model):
    """
    Immutable record of a security or business event.

    Staff and restaurant are stored as plain ids so that entries survive
    deletion of the rows they describe.
    """

    class Action(models.TextChoices):
        LOGIN_SUCCESS = "LOGIN_SUCCESS", "Login succeeded"
        LOGIN_FAILED = "LOGIN_FAILED", "Login failed"
        ACCOUNT_LOCKED = "ACCOUNT_LOCKED", "Account locked"
        LOGOUT = "LOGOUT", "Logout"
        PASSWORD_CHANGED = "PASSWORD_CHANGED", "Password changed"
        STAFF_CREATED = "STAFF_CREATED", "Staff created"
        STAFF_UPDATED = "STAFF_UPDATED", "Staff updated"
        STAFF_DEACTIVATED = "STAFF_DEACTIVATED", "Staff deactivated"
        ORDER_CREATED = "ORDER_CREATED", "Order created"
        ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED", "Order status changed"
        ORDER_CANCELLED = "ORDER_CANCELLED", "Order cancelled"
        TABLE_CODE_REGENERATED = "TABLE_CODE_REGENERATED", "Table code regenerated"
        SESSION_REVOKED = "SESSION_REVOKED", "Session revoked"

    class Severity(models.TextChoices):
        INFO = "info", "Info"
        WARNING = "warning", "Warning"
        CRITICAL = "critical", "Critical"

    action = models.CharField(max_length=50, choices=Action.choices, db_index=True)
    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=64, blank=True, default="")

    staff_id = models.UUIDField(null=True, blank=True, db_index=True)
    restaurant_id = models.UUIDField(null=True, blank=True, db_index=True)

    changes = models.JSONField(null=True, blank=True)
    metadata = models.JSONField(null=True, blank=True)

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True, default="")

    severity = models.CharField(max_length=10, choices=Severity.choices, default=Severity.INFO)
    success = models.BooleanField(default=True)
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = "audit_logs"
        ordering = ["-timestamp"]
        indexes = [
            models.Index(fields=["restaurant_id", "timestamp"]),
            models.Index(fields=["entity_type", "entity_id"]),
        ]

    def __str__(self):
        return f"{self.action} {self.entity_type}:{self.entity_id}"
