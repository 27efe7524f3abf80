import hmac
import logging
from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from audit.models import AuditLog
from audit.services import AuditService
from core_backend.exceptions import AuthenticationError, ResourceNotFoundError
from .models import StaffSession
from .tokens import hash_token_id

logger = logging.getLogger(__name__)


def parse_user_agent(user_agent):
    """Very small user agent summary for the session list."""
    if not user_agent:
        return ""
    if "Mobile" in user_agent:
        if "iPhone" in user_agent:
            return "iPhone Safari"
        if "Android" in user_agent:
            return "Android Browser"
        return "Mobile Browser"
    if "Edg/" in user_agent:
        return "Edge on Desktop"
    if "Chrome" in user_agent:
        return "Chrome on Desktop"
    if "Firefox" in user_agent:
        return "Firefox on Desktop"
    if "Safari" in user_agent:
        return "Safari on Desktop"
    return "Unknown Browser"


class StaffSessionService:
    """
    Lifecycle of staff login sessions: creation with the concurrent-session
    limit, validation, refresh-token binding, extension and revocation.
    """

    @staticmethod
    def session_duration():
        return timedelta(hours=settings.STAFF_SESSION_DURATION_HOURS)

    @staticmethod
    @transaction.atomic
    def create_session(staff, user_agent="", device_name="", ip_address=None):
        active_sessions = list(
            StaffSession.objects.valid().filter(staff=staff).order_by("created_at")
        )
        while len(active_sessions) >= staff.max_concurrent_sessions:
            oldest = active_sessions.pop(0)
            StaffSessionService.revoke_session(
                oldest.session_id, "session_limit_exceeded", StaffSession.SYSTEM
            )
            logger.warning(
                f"Concurrent session limit enforced for staff {staff.id}: "
                f"revoked oldest session {oldest.session_id}"
            )

        session = StaffSession.objects.create(
            staff=staff,
            device_info=parse_user_agent(user_agent),
            user_agent=(user_agent or "")[:500],
            device_name=(device_name or "")[:100],
            ip_address=ip_address or None,
            expires_at=timezone.now() + StaffSessionService.session_duration(),
        )
        logger.info(f"Staff session {session.session_id} created for staff {staff.id}")
        return session

    @staticmethod
    def set_refresh_hash(session, refresh_hash):
        session.refresh_token_hash = refresh_hash
        session.save(update_fields=["refresh_token_hash"])

    @staticmethod
    def validate_session(session_id, staff=None):
        """
        Return the active, unexpired session or raise 401.

        An expired session is revoked on the spot.
        """
        try:
            session = StaffSession.objects.select_related("staff").get(session_id=session_id)
        except (StaffSession.DoesNotExist, ValueError, TypeError, DjangoValidationError):
            raise AuthenticationError("Session not found", code="SESSION_INVALID")

        if staff is not None and session.staff_id != staff.pk:
            logger.warning(f"Session {session_id} presented by staff {staff.pk} belongs to {session.staff_id}")
            raise AuthenticationError("Session not found", code="SESSION_INVALID")

        if not session.is_active:
            raise AuthenticationError(
                f"Session revoked: {session.revoke_reason or 'unknown'}", code="SESSION_INVALID"
            )

        if session.is_expired:
            StaffSessionService.revoke_session(session.session_id, "expired", StaffSession.SYSTEM)
            raise AuthenticationError("Session expired", code="SESSION_EXPIRED")

        return session

    @staticmethod
    def touch(session):
        """
        Record activity on the session and its staff member, at most once per
        SESSION_ACTIVITY_THRESHOLD_MINUTES.
        """
        now = timezone.now()
        threshold = timedelta(minutes=settings.SESSION_ACTIVITY_THRESHOLD_MINUTES)
        if session.last_active_at and now - session.last_active_at < threshold:
            return False

        StaffSession.objects.filter(session_id=session.session_id).update(last_active_at=now)
        session.staff.__class__.all_objects.filter(pk=session.staff_id).update(last_active_at=now)
        session.last_active_at = now
        return True

    @staticmethod
    def validate_refresh_token(session, jti):
        if not session.refresh_token_hash:
            return False
        return hmac.compare_digest(session.refresh_token_hash, hash_token_id(jti))

    @staticmethod
    def extend_session(session, hours=None):
        hours = hours or settings.STAFF_SESSION_DURATION_HOURS
        session.expires_at = timezone.now() + timedelta(hours=hours)
        session.last_active_at = timezone.now()
        session.save(update_fields=["expires_at", "last_active_at"])
        return session.expires_at

    @staticmethod
    def revoke_session(session_id, reason, revoked_by):
        updated = StaffSession.objects.filter(session_id=session_id, is_active=True).update(
            is_active=False,
            revoked_at=timezone.now(),
            revoked_by=str(revoked_by),
            revoke_reason=reason,
        )
        if updated:
            logger.info(f"Staff session {session_id} revoked ({reason}) by {revoked_by}")
        return bool(updated)

    @staticmethod
    def revoke_all_for_staff(staff, reason, revoked_by, exclude_session_id=None):
        queryset = StaffSession.objects.active().filter(staff=staff)
        if exclude_session_id:
            queryset = queryset.exclude(session_id=exclude_session_id)
        count = queryset.update(
            is_active=False,
            revoked_at=timezone.now(),
            revoked_by=str(revoked_by),
            revoke_reason=reason,
        )
        if count:
            logger.info(f"Revoked {count} session(s) of staff {staff.pk} ({reason})")
        return count

    @staticmethod
    def sessions_visible_to(actor):
        """Sessions an ADMIN+ may manage: their restaurant, or all for SUPER_ADMIN."""
        queryset = StaffSession.objects.select_related("staff")
        if actor.is_super_admin:
            return queryset
        return queryset.filter(staff__restaurant_id=actor.restaurant_id)

    @staticmethod
    def get_managed_session(actor, session_id):
        try:
            return StaffSessionService.sessions_visible_to(actor).get(session_id=session_id)
        except (StaffSession.DoesNotExist, ValueError, DjangoValidationError):
            raise ResourceNotFoundError("Session", session_id)

    @staticmethod
    def revoke_managed_session(request, session, reason="admin_revoked"):
        revoked = StaffSessionService.revoke_session(session.session_id, reason, request.user.pk)
        if revoked:
            AuditService.log_from_request(
                request,
                AuditLog.Action.SESSION_REVOKED,
                "StaffSession",
                session.session_id,
                metadata={"target_staff_id": session.staff_id, "reason": reason},
                severity=AuditLog.Severity.WARNING,
            )
        return revoked

    @staticmethod
    def cleanup_expired_sessions():
        count = StaffSession.objects.expired().update(
            is_active=False,
            revoked_at=timezone.now(),
            revoked_by=StaffSession.SYSTEM,
            revoke_reason="expired",
        )
        if count:
            logger.info(f"Expired {count} staff session(s)")
        return count
