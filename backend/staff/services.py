import logging
from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Count, F, Q
from django.utils import timezone
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from audit.models import AuditLog
from audit.services import AuditService
from core_backend.exceptions import (
    ApiError,
    AuthenticationError,
    AuthorizationError,
    ResourceNotFoundError,
    ValidationError,
)
from restaurants.models import Restaurant
from .models import Staff
from .passwords import enforce_password_policy
from .sessions import StaffSessionService
from .tokens import issue_token_pair

logger = logging.getLogger(__name__)


class AuthService:
    """
    Staff login, token refresh, logout and password changes.
    """

    @staticmethod
    def _record_failed_login(staff, email, reason, ip_address, user_agent):
        AuditService.log(
            AuditLog.Action.LOGIN_FAILED,
            "Staff",
            staff.pk if staff else None,
            restaurant_id=staff.restaurant_id if staff else None,
            metadata={"email": email, "reason": reason},
            ip_address=ip_address,
            user_agent=user_agent,
            severity=AuditLog.Severity.WARNING,
            success=False,
        )
        logger.warning(f"Failed login for {email} from {ip_address}: {reason}")

    @staticmethod
    def login(email, password, ip_address=None, user_agent="", device_name=""):
        """
        Authenticate a staff member and open a new session.

        Returns a dict with ``access``, ``refresh``, ``staff`` and ``session``.
        """
        email = (email or "").strip().lower()

        try:
            staff = Staff.all_objects.select_related("restaurant").get(email=email)
        except Staff.DoesNotExist:
            AuthService._record_failed_login(None, email, "unknown_email", ip_address, user_agent)
            raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")

        if not staff.is_active:
            AuthService._record_failed_login(staff, email, "account_deactivated", ip_address, user_agent)
            raise AuthenticationError("Account has been deactivated", code="ACCOUNT_DEACTIVATED")

        if staff.is_locked:
            AuthService._record_failed_login(staff, email, "account_locked", ip_address, user_agent)
            raise AuthenticationError(
                "Account is temporarily locked due to failed login attempts",
                code="ACCOUNT_LOCKED",
            )

        if not staff.check_password(password):
            failed = Staff.all_objects.filter(pk=staff.pk)
            failed.update(login_attempts=F("login_attempts") + 1)
            attempts = failed.values_list("login_attempts", flat=True).get()
            locked_until = None
            if attempts >= settings.MAX_LOGIN_ATTEMPTS:
                locked_until = timezone.now() + timedelta(minutes=settings.LOGIN_LOCKOUT_MINUTES)
                failed.update(locked_until=locked_until)

            AuthService._record_failed_login(staff, email, "invalid_password", ip_address, user_agent)
            if locked_until:
                AuditService.log(
                    AuditLog.Action.ACCOUNT_LOCKED,
                    "Staff",
                    staff.pk,
                    staff_id=staff.pk,
                    restaurant_id=staff.restaurant_id,
                    metadata={"attempts": attempts, "locked_until": locked_until},
                    ip_address=ip_address,
                    user_agent=user_agent,
                    severity=AuditLog.Severity.CRITICAL,
                )
                logger.warning(f"Account {staff.id} locked until {locked_until} after {attempts} failed logins")
            raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")

        with transaction.atomic():
            now = timezone.now()
            Staff.all_objects.filter(pk=staff.pk).update(
                login_attempts=0, locked_until=None, last_login_at=now, last_active_at=now
            )
            staff.login_attempts = 0
            staff.locked_until = None
            staff.last_login_at = now

            session = StaffSessionService.create_session(
                staff, user_agent=user_agent, device_name=device_name, ip_address=ip_address
            )
            tokens, refresh_hash = issue_token_pair(staff, session)
            StaffSessionService.set_refresh_hash(session, refresh_hash)

        AuditService.log(
            AuditLog.Action.LOGIN_SUCCESS,
            "Staff",
            staff.pk,
            staff_id=staff.pk,
            restaurant_id=staff.restaurant_id,
            metadata={"session_id": session.session_id, "device_name": device_name},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info(f"Staff {staff.id} logged in (session {session.session_id})")

        return {**tokens, "staff": staff, "session": session}

    @staticmethod
    def refresh(raw_refresh_token):
        """
        Exchange a refresh token for a new pair bound to the same session.
        """
        if not raw_refresh_token:
            raise AuthenticationError("Refresh token not provided", code="INVALID_TOKEN")

        try:
            refresh = RefreshToken(raw_refresh_token)
        except TokenError:
            raise AuthenticationError("Invalid or expired refresh token", code="INVALID_TOKEN")

        staff_id = refresh.get(settings.SIMPLE_JWT.get("USER_ID_CLAIM", "staff_id"))
        staff = Staff.all_objects.select_related("restaurant").filter(pk=staff_id).first()
        if staff is None or not staff.is_active:
            raise AuthenticationError("Invalid refresh token", code="INVALID_TOKEN")

        session_id = refresh.get("session_id")
        if not session_id:
            raise AuthenticationError("Invalid refresh token", code="INVALID_TOKEN")

        try:
            session = StaffSessionService.validate_session(session_id, staff=staff)
        except AuthenticationError as e:
            raise AuthenticationError(e.message, code="SESSION_INVALID")

        if not StaffSessionService.validate_refresh_token(session, refresh.get("jti")):
            logger.warning(
                f"Refresh token mismatch for session {session.session_id} (staff {staff.id}); "
                f"possible token reuse"
            )
            raise AuthenticationError(
                "Refresh token does not match session", code="INVALID_REFRESH_TOKEN"
            )

        with transaction.atomic():
            StaffSessionService.extend_session(session)
            tokens, refresh_hash = issue_token_pair(staff, session)
            StaffSessionService.set_refresh_hash(session, refresh_hash)

        return tokens

    @staticmethod
    def logout(staff, session_id, ip_address=None, user_agent=""):
        revoked = False
        if session_id:
            revoked = StaffSessionService.revoke_session(session_id, "logout", staff.pk)

        AuditService.log(
            AuditLog.Action.LOGOUT,
            "Staff",
            staff.pk,
            staff_id=staff.pk,
            restaurant_id=staff.restaurant_id,
            metadata={"session_id": session_id},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return revoked

    @staticmethod
    def change_password(staff, current_password, new_password, ip_address=None, user_agent=""):
        if not staff.check_password(current_password):
            logger.warning(f"Password change for staff {staff.id} rejected: wrong current password")
            raise AuthenticationError("Current password is incorrect", code="INVALID_PASSWORD")

        enforce_password_policy(new_password)

        with transaction.atomic():
            staff.set_password(new_password)
            staff.save(update_fields=["password", "updated_at"])
            revoked = StaffSessionService.revoke_all_for_staff(staff, "password_changed", staff.pk)

        AuditService.log(
            AuditLog.Action.PASSWORD_CHANGED,
            "Staff",
            staff.pk,
            staff_id=staff.pk,
            restaurant_id=staff.restaurant_id,
            metadata={"revoked_sessions": revoked},
            ip_address=ip_address,
            user_agent=user_agent,
            severity=AuditLog.Severity.WARNING,
        )
        return revoked


class StaffService:
    """
    Staff management, always scoped to the acting staff member's restaurant.
    """

    @staticmethod
    def get_queryset(actor):
        queryset = Staff.all_objects.select_related("restaurant")
        if actor.is_super_admin:
            return queryset
        return queryset.filter(restaurant_id=actor.restaurant_id)

    @staticmethod
    def get_staff(actor, staff_id):
        try:
            return StaffService.get_queryset(actor).get(pk=staff_id)
        except (Staff.DoesNotExist, ValueError, DjangoValidationError):
            raise ResourceNotFoundError("Staff member", staff_id)

    @staticmethod
    def filter_staff(queryset, role=None, is_active=None, search=None):
        if role:
            queryset = queryset.filter(role=role)
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active)
        if search:
            search = search.strip()
            queryset = queryset.filter(Q(name__icontains=search) | Q(email__icontains=search))
        return queryset

    @staticmethod
    def _check_role_assignment(actor, role):
        if role == Staff.Role.SUPER_ADMIN:
            raise AuthorizationError("SUPER_ADMIN accounts cannot be created or assigned through the API")
        if role == Staff.Role.ADMIN and not actor.is_admin_or_higher:
            raise AuthorizationError("Only administrators can assign the ADMIN role")

    @staticmethod
    def _check_can_manage(actor, target):
        if target.is_super_admin and not actor.is_super_admin:
            raise AuthorizationError("You cannot modify a super administrator")
        if target.role == Staff.Role.ADMIN and not actor.is_admin_or_higher:
            raise AuthorizationError("Only administrators can modify administrators")

    @staticmethod
    def _ensure_email_available(email, exclude_id=None):
        queryset = Staff.all_objects.filter(email__iexact=email)
        if exclude_id is not None:
            queryset = queryset.exclude(pk=exclude_id)
        if queryset.exists():
            raise ApiError(409, "EMAIL_EXISTS", "Email already registered")

    @staticmethod
    def _resolve_restaurant(actor, restaurant_id):
        if not actor.is_super_admin:
            return actor.restaurant
        if not restaurant_id:
            raise ValidationError(
                "restaurant_id is required",
                details={"fields": {"restaurant_id": ["This field is required."]}},
            )
        restaurant = Restaurant.objects.filter(pk=restaurant_id).first()
        if restaurant is None:
            raise ResourceNotFoundError("Restaurant", restaurant_id)
        return restaurant

    @staticmethod
    def _snapshot(staff):
        return {
            "name": staff.name,
            "email": staff.email,
            "role": staff.role,
            "is_active": staff.is_active,
        }

    @staticmethod
    def create_staff(actor, data, request=None):
        StaffService._check_role_assignment(actor, data["role"])
        email = data["email"].strip().lower()
        StaffService._ensure_email_available(email)
        enforce_password_policy(data["password"])
        restaurant = StaffService._resolve_restaurant(actor, data.get("restaurant_id"))

        staff = Staff.objects.create_user(
            email=email,
            password=data["password"],
            name=data["name"],
            role=data["role"],
            restaurant=restaurant,
        )

        if request is not None:
            AuditService.log_from_request(
                request,
                AuditLog.Action.STAFF_CREATED,
                "Staff",
                staff.pk,
                new_values=StaffService._snapshot(staff),
            )
        logger.info(f"Staff {staff.id} ({staff.role}) created by {actor.id}")
        return staff

    @staticmethod
    @transaction.atomic
    def update_staff(actor, staff, data, request=None):
        if not data:
            raise ValidationError("At least one field must be provided for update")

        StaffService._check_can_manage(actor, staff)
        before = StaffService._snapshot(staff)

        if "role" in data and data["role"] != staff.role:
            if staff.pk == actor.pk:
                raise ValidationError("You cannot change your own role", code="CANNOT_CHANGE_OWN_ROLE")
            StaffService._check_role_assignment(actor, data["role"])

        if "email" in data:
            data["email"] = data["email"].strip().lower()
            StaffService._ensure_email_available(data["email"], exclude_id=staff.pk)

        password = data.pop("password", None)
        for field in ("name", "email", "role", "is_active"):
            if field in data:
                setattr(staff, field, data[field])

        if password:
            enforce_password_policy(password)
            staff.set_password(password)

        staff.save()

        if password:
            StaffSessionService.revoke_all_for_staff(staff, "password_changed", actor.pk)
        if data.get("is_active") is False:
            StaffSessionService.revoke_all_for_staff(staff, "account_deactivated", actor.pk)

        old_values, new_values = AuditService.diff(before, StaffService._snapshot(staff))
        if password:
            new_values["password"] = "changed"
        if request is not None:
            AuditService.log_from_request(
                request,
                AuditLog.Action.STAFF_UPDATED,
                "Staff",
                staff.pk,
                old_values=old_values,
                new_values=new_values,
            )
        return staff

    @staticmethod
    @transaction.atomic
    def deactivate_staff(actor, staff, request=None):
        if staff.pk == actor.pk:
            raise ValidationError("You cannot delete your own account", code="CANNOT_DELETE_SELF")
        StaffService._check_can_manage(actor, staff)

        staff.is_active = False
        staff.save(update_fields=["is_active", "updated_at"])
        revoked = StaffSessionService.revoke_all_for_staff(staff, "account_deactivated", actor.pk)

        if request is not None:
            AuditService.log_from_request(
                request,
                AuditLog.Action.STAFF_DEACTIVATED,
                "Staff",
                staff.pk,
                metadata={"revoked_sessions": revoked},
                severity=AuditLog.Severity.WARNING,
            )
        logger.info(f"Staff {staff.id} deactivated by {actor.id}")
        return staff

    @staticmethod
    @transaction.atomic
    def bulk_update(actor, staff_ids, data, request=None):
        queryset = StaffService.get_queryset(actor).filter(pk__in=staff_ids)

        if "role" in data:
            StaffService._check_role_assignment(actor, data["role"])
            if any(str(pk) == str(actor.pk) for pk in staff_ids):
                raise ValidationError("You cannot change your own role", code="CANNOT_CHANGE_OWN_ROLE")
        if data.get("is_active") is False and any(str(pk) == str(actor.pk) for pk in staff_ids):
            raise ValidationError("You cannot deactivate your own account", code="CANNOT_DELETE_SELF")

        targets = list(queryset)
        for target in targets:
            StaffService._check_can_manage(actor, target)

        updated = queryset.update(**data, updated_at=timezone.now())

        if data.get("is_active") is False:
            for target in targets:
                StaffSessionService.revoke_all_for_staff(target, "account_deactivated", actor.pk)

        if request is not None:
            for target in targets:
                AuditService.log_from_request(
                    request,
                    AuditLog.Action.STAFF_UPDATED,
                    "Staff",
                    target.pk,
                    new_values=data,
                    metadata={"bulk": True},
                )
        return updated

    @staticmethod
    def statistics(actor):
        queryset = StaffService.get_queryset(actor)
        totals = queryset.aggregate(
            total=Count("id"),
            active=Count("id", filter=Q(is_active=True)),
        )
        by_role = {role: 0 for role in Staff.Role.values}
        for row in queryset.values("role").annotate(count=Count("id")):
            by_role[row["role"]] = row["count"]
        return {
            "total": totals["total"],
            "active": totals["active"],
            "inactive": totals["total"] - totals["active"],
            "by_role": by_role,
        }

