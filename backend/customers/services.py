import logging
from datetime import timedelta

from django.conf import settings
from django.core.cache import cache
from django.db import DEFAULT_DB_ALIAS, transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from core_backend.exceptions import AuthenticationError, ValidationError
from orders.services import CustomerOrderService
from tables.models import Table
from tables.services import TableService
from .models import CustomerSession

logger = logging.getLogger(__name__)

SESSION_CACHE_PREFIX = "customer_session"


def session_cache_key(token):
    return f"{SESSION_CACHE_PREFIX}:{token}"


class CustomerSessionService:
    """
    Anonymous table sessions for the customer app.

    Session data is cached under ``customer_session:<token>`` for the life of
    the session; the database row is read only when the cache misses. A
    cached session is trusted until it expires or is ended, since ending a
    session drops its cache entry.
    """

    @staticmethod
    def session_duration():
        return timedelta(hours=settings.CUSTOMER_SESSION_DURATION_HOURS)

    @staticmethod
    def _cache_session(session):
        ttl = int((session.expires_at - timezone.now()).total_seconds())
        if ttl <= 0:
            return
        try:
            cache.set(
                session_cache_key(session.token),
                {
                    "session_id": session.session_id,
                    "table_id": str(session.table_id),
                    "customer_name": session.customer_name,
                    "expires_at": session.expires_at.isoformat(),
                    "last_active_at": session.last_active_at.isoformat(),
                },
                timeout=ttl,
            )
        except Exception as e:
            logger.error(f"Failed to cache customer session {session.session_id}: {e}")

    @staticmethod
    def _from_cache(cached):
        """
        Rebuild an active session from its cached data without touching the
        database. Fields that are not cached load on first access.
        """
        values = {
            "session_id": cached["session_id"],
            "table_id": CustomerSession._meta.get_field("table").to_python(cached["table_id"]),
            "customer_name": cached["customer_name"],
            "expires_at": parse_datetime(cached["expires_at"]),
            "last_active_at": parse_datetime(cached["last_active_at"]),
            "is_active": True,
        }
        fields = [f.attname for f in CustomerSession._meta.concrete_fields if f.attname in values]
        return CustomerSession.from_db(DEFAULT_DB_ALIAS, fields, [values[name] for name in fields])

    @staticmethod
    def _uncache(token):
        try:
            cache.delete(session_cache_key(token))
        except Exception as e:
            logger.error(f"Failed to drop cached customer session {token}: {e}")

    @staticmethod
    @transaction.atomic
    def create_session(table_code, customer_name="", customer_email="", ip_address=None, user_agent=""):
        """
        Open a session at the table identified by ``table_code``.

        Raises:
            404 TABLE_NOT_FOUND for unknown or inactive codes
            400 TABLE_UNAVAILABLE for tables under maintenance
        """
        table = TableService.get_table_by_code(table_code)
        if table.status == Table.Status.MAINTENANCE:
            raise ValidationError(
                f"Table {table.number} is currently unavailable", code="TABLE_UNAVAILABLE"
            )

        session = CustomerSession.objects.create(
            table=table,
            customer_name=(customer_name or "").strip(),
            customer_email=customer_email or "",
            ip_address=ip_address or None,
            user_agent=(user_agent or "")[:500],
            expires_at=timezone.now() + CustomerSessionService.session_duration(),
        )
        CustomerSessionService._cache_session(session)
        logger.info(
            f"Customer session {session.session_id} opened at table {table.number} ({table.restaurant_id})"
        )
        return session

    @staticmethod
    def _load(session_id):
        return (
            CustomerSession.objects.select_related("table__restaurant")
            .filter(session_id=session_id)
            .first()
        )

    @staticmethod
    def validate_session(token):
        """
        Return the active session for ``token`` or raise 401.

        A cached session is rebuilt without a query; the database is read
        only on a cache miss. An expired session is deactivated on the spot.
        """
        session_id = CustomerSession.session_id_from_token(token)
        if not session_id:
            raise AuthenticationError("Invalid session token", code="INVALID_SESSION")

        try:
            cached = cache.get(session_cache_key(token))
        except Exception as e:
            logger.error(f"Customer session cache lookup failed, using database: {e}")
            cached = None

        if cached is not None and cached.get("session_id") == session_id:
            session = CustomerSessionService._from_cache(cached)
        else:
            cached = None
            session = CustomerSessionService._load(session_id)
            if session is None or not session.is_active:
                raise AuthenticationError("Invalid session token", code="INVALID_SESSION")

        if session.is_expired:
            CustomerSession.objects.filter(pk=session.pk).update(is_active=False)
            CustomerSessionService._uncache(session.token)
            logger.info(f"Customer session {session.session_id} expired")
            raise AuthenticationError("Session has expired", code="SESSION_EXPIRED")

        touched = CustomerSessionService.touch(session)
        if cached is None or touched:
            CustomerSessionService._cache_session(session)
        return session

    @staticmethod
    def resolve_table(session):
        """
        Load the session's table and restaurant in one query when the session
        came from the cache.
        """
        if not CustomerSession.table.is_cached(session):
            table = Table.all_objects.select_related("restaurant").filter(pk=session.table_id).first()
            if table is None:
                CustomerSessionService._uncache(session.token)
                raise AuthenticationError("Invalid session token", code="INVALID_SESSION")
            session.table = table
        return session.table

    @staticmethod
    def touch(session):
        """Record activity, writing at most once per SESSION_ACTIVITY_THRESHOLD_MINUTES."""
        now = timezone.now()
        threshold = timedelta(minutes=settings.SESSION_ACTIVITY_THRESHOLD_MINUTES)
        if session.last_active_at and now - session.last_active_at < threshold:
            return False

        CustomerSession.objects.filter(pk=session.pk).update(last_active_at=now)
        session.last_active_at = now
        return True

    @staticmethod
    def extend_session(session):
        session.expires_at = timezone.now() + CustomerSessionService.session_duration()
        session.last_active_at = timezone.now()
        session.save(update_fields=["expires_at", "last_active_at"])
        CustomerSessionService._cache_session(session)
        logger.info(f"Customer session {session.session_id} extended to {session.expires_at.isoformat()}")
        return session

    @staticmethod
    def end_session(session):
        session.is_active = False
        session.save(update_fields=["is_active"])
        CustomerSessionService._uncache(session.token)
        logger.info(f"Customer session {session.session_id} ended")
        return session

    @staticmethod
    def get_session_orders(session):
        return CustomerOrderService.session_orders(session.session_id)

    @staticmethod
    def cleanup_expired_sessions():
        count = CustomerSession.objects.expired().update(is_active=False)
        if count:
            logger.info(f"Deactivated {count} expired customer session(s)")
        return count
