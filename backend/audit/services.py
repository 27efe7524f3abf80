import logging
from decimal import Decimal
from uuid import UUID

from django.db import transaction

from core_backend.utils import get_client_ip, get_user_agent
from .models import AuditLog

logger = logging.getLogger(__name__)


def _json_safe(value):
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


class AuditService:
    """
    Writes audit log entries. Logging an event never raises: a failed write
    is reported at ERROR and the calling operation carries on.
    """

    @staticmethod
    def log(
        action,
        entity_type,
        entity_id=None,
        staff_id=None,
        restaurant_id=None,
        old_values=None,
        new_values=None,
        metadata=None,
        ip_address=None,
        user_agent="",
        severity=AuditLog.Severity.INFO,
        success=True,
    ):
        changes = None
        if old_values is not None or new_values is not None:
            changes = {"old": _json_safe(old_values), "new": _json_safe(new_values)}

        try:
            with transaction.atomic():
                entry = AuditLog.objects.create(
                    action=action,
                    entity_type=entity_type,
                    entity_id=str(entity_id) if entity_id is not None else "",
                    staff_id=staff_id,
                    restaurant_id=restaurant_id,
                    changes=changes,
                    metadata=_json_safe(metadata) if metadata is not None else None,
                    ip_address=ip_address or None,
                    user_agent=(user_agent or "")[:500],
                    severity=severity,
                    success=success,
                )
        except Exception as e:
            logger.error(
                f"Failed to write audit log {action} on {entity_type}:{entity_id}: {e}",
                exc_info=True,
            )
            return None

        level = {
            AuditLog.Severity.CRITICAL: logging.ERROR,
            AuditLog.Severity.WARNING: logging.WARNING,
        }.get(severity, logging.INFO)
        logger.log(level, f"Audit: {action} on {entity_type}:{entity_id} success={success}")
        return entry

    @staticmethod
    def log_from_request(request, action, entity_type, entity_id=None, **kwargs):
        """
        Same as ``log`` but fills staff, restaurant, IP and user agent from
        the request unless they are passed explicitly.
        """
        user = getattr(request, "user", None)
        if user is not None and getattr(user, "is_authenticated", False):
            kwargs.setdefault("staff_id", user.pk)
            kwargs.setdefault("restaurant_id", getattr(user, "restaurant_id", None))
        kwargs.setdefault("ip_address", get_client_ip(None, request))
        kwargs.setdefault("user_agent", get_user_agent(request))
        return AuditService.log(action, entity_type, entity_id, **kwargs)

    @staticmethod
    def diff(old, new):
        """
        Return ``(old_values, new_values)`` restricted to the keys whose
        values changed.
        """
        old = old or {}
        new = new or {}
        changed = [key for key in new if old.get(key) != new.get(key)]
        return (
            {key: old.get(key) for key in changed},
            {key: new.get(key) for key in changed},
        )
