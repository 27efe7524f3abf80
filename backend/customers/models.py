import secrets

from django.db import models
from django.utils import timezone


def generate_session_id():
    return secrets.token_hex(16)


class CustomerSessionQuerySet(models.QuerySet):
    def valid(self):
        return self.filter(is_active=True, expires_at__gt=timezone.now())

    def expired(self):
        return self.filter(is_active=True, expires_at__lte=timezone.now())


class CustomerSession(models.Model):
    """
    An anonymous ordering session opened by scanning a table's QR code.

    The client holds the token ``sess_<session_id>``; no customer account
    is involved.
    """

    TOKEN_PREFIX = "sess_"

    session_id = models.CharField(
        max_length=64, primary_key=True, default=generate_session_id, editable=False
    )
    table = models.ForeignKey(
        "tables.Table", on_delete=models.CASCADE, related_name="customer_sessions"
    )
    customer_name = models.CharField(max_length=100, blank=True, default="")
    customer_email = models.EmailField(blank=True, default="")
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField(db_index=True)
    last_active_at = models.DateTimeField(default=timezone.now)
    is_active = models.BooleanField(default=True)

    objects = CustomerSessionQuerySet.as_manager()

    class Meta:
        db_table = "customer_sessions"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["table", "is_active"]),
        ]

    def __str__(self):
        return f"Customer session {self.session_id} at table {self.table_id}"

    @property
    def token(self):
        return f"{self.TOKEN_PREFIX}{self.session_id}"

    @property
    def is_expired(self):
        return self.expires_at <= timezone.now()

    @classmethod
    def session_id_from_token(cls, token):
        token = (token or "").strip()
        if not token.startswith(cls.TOKEN_PREFIX):
            return None
        return token[len(cls.TOKEN_PREFIX):] or None
