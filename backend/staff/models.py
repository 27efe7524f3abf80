import uuid

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from restaurants.managers import get_current_restaurant_id


class StaffManager(BaseUserManager):
    """
    Default manager for Staff.

    Filters by the current restaurant when one is set. Unlike other
    restaurant-owned models it does NOT fail closed, because authentication
    and SUPER_ADMIN operations run without restaurant context. Use
    ``all_objects`` where an unfiltered lookup is intended.
    """

    def get_queryset(self):
        qs = super().get_queryset()
        restaurant_id = get_current_restaurant_id()
        if restaurant_id:
            qs = qs.filter(restaurant_id=restaurant_id)
        return qs

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError(_("The Email must be set"))
        email = self.normalize_email(email).lower()
        staff = self.model(email=email, **extra_fields)
        staff.set_password(password)
        staff.save(using=self._db)
        return staff

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault("role", Staff.Role.WAITER)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password, **extra_fields):
        extra_fields["role"] = Staff.Role.SUPER_ADMIN
        extra_fields["restaurant"] = None
        extra_fields.setdefault("name", "Super Admin")
        return self._create_user(email, password, **extra_fields)


class Staff(AbstractBaseUser):
    class Role(models.TextChoices):
        SUPER_ADMIN = "SUPER_ADMIN", _("Super admin")
        ADMIN = "ADMIN", _("Admin")
        MANAGER = "MANAGER", _("Manager")
        CHEF = "CHEF", _("Chef")
        WAITER = "WAITER", _("Waiter")
        CASHIER = "CASHIER", _("Cashier")

    MANAGER_OR_HIGHER = (Role.SUPER_ADMIN, Role.ADMIN, Role.MANAGER)
    ADMIN_OR_HIGHER = (Role.SUPER_ADMIN, Role.ADMIN)
    KITCHEN_ROLES = (Role.SUPER_ADMIN, Role.ADMIN, Role.MANAGER, Role.CHEF)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        "restaurants.Restaurant",
        on_delete=models.CASCADE,
        related_name="staff",
        null=True,
        blank=True,
        help_text=_("Empty only for SUPER_ADMIN accounts"),
    )
    name = models.CharField(_("name"), max_length=100)
    email = models.EmailField(_("email address"), max_length=255, unique=True)
    role = models.CharField(_("role"), max_length=20, choices=Role.choices, default=Role.WAITER)

    is_active = models.BooleanField(_("active"), default=True)
    login_attempts = models.PositiveIntegerField(default=0)
    locked_until = models.DateTimeField(null=True, blank=True)
    last_login_at = models.DateTimeField(null=True, blank=True)
    last_active_at = models.DateTimeField(null=True, blank=True)
    max_concurrent_sessions = models.PositiveSmallIntegerField(default=3)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = StaffManager()
    all_objects = models.Manager()

    USERNAME_FIELD = "email"
    EMAIL_FIELD = "email"
    REQUIRED_FIELDS = ["name"]

    class Meta:
        db_table = "staff"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["restaurant", "role"]),
            models.Index(fields=["restaurant", "is_active"]),
        ]

    def __str__(self):
        return f"{self.name} <{self.email}>"

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()
        super().save(*args, **kwargs)

    @property
    def is_super_admin(self):
        return self.role == self.Role.SUPER_ADMIN

    @property
    def is_admin_or_higher(self):
        return self.role in self.ADMIN_OR_HIGHER

    @property
    def is_manager_or_higher(self):
        return self.role in self.MANAGER_OR_HIGHER

    @property
    def is_kitchen_staff(self):
        return self.role in self.KITCHEN_ROLES

    @property
    def is_locked(self):
        return bool(self.locked_until and self.locked_until > timezone.now())


class StaffSessionQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def valid(self):
        return self.filter(is_active=True, expires_at__gt=timezone.now())

    def expired(self):
        return self.filter(is_active=True, expires_at__lte=timezone.now())


class StaffSession(models.Model):
    """
    One logged-in device of a staff member. Access and refresh tokens carry
    the ``session_id`` so a revoked session invalidates both.
    """

    SYSTEM = "system"

    session_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    staff = models.ForeignKey(Staff, on_delete=models.CASCADE, related_name="sessions")

    device_info = models.CharField(max_length=100, blank=True, default="")
    user_agent = models.CharField(max_length=500, blank=True, default="")
    device_name = models.CharField(max_length=100, blank=True, default="")
    ip_address = models.GenericIPAddressField(null=True, blank=True)

    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    last_active_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField()

    revoked_at = models.DateTimeField(null=True, blank=True)
    revoked_by = models.CharField(
        max_length=64, blank=True, default="", help_text=_("Staff id or 'system'")
    )
    revoke_reason = models.CharField(max_length=50, blank=True, default="")
    refresh_token_hash = models.CharField(max_length=64, blank=True, default="")

    objects = StaffSessionQuerySet.as_manager()

    class Meta:
        db_table = "staff_sessions"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["staff", "is_active"]),
            models.Index(fields=["is_active", "expires_at"]),
        ]

    def __str__(self):
        return f"Session {self.session_id} ({self.staff_id})"

    @property
    def is_expired(self):
        return self.expires_at <= timezone.now()
