"""
Soft delete (archiving) infrastructure for TableTech.

Restaurant-owned records are never hard-deleted through the API: archiving
flips ``is_active`` off and stamps ``archived_at``/``archived_by`` so that
historical orders keep pointing at the menu items and tables they used.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone


class SoftDeleteQuerySet(models.QuerySet):
    """
    QuerySet with bulk archive/unarchive helpers.
    """

    def active(self):
        return self.filter(is_active=True)

    def archived(self):
        return self.filter(is_active=False)

    def archive(self, archived_by=None):
        """
        Archive every record in this queryset and return the number updated.
        """
        update_fields = {"is_active": False, "archived_at": timezone.now()}
        if archived_by is not None:
            update_fields["archived_by"] = archived_by
        return self.update(**update_fields)

    def unarchive(self):
        return self.update(is_active=True, archived_at=None, archived_by=None)


class SoftDeleteManager(models.Manager):
    """
    Manager that hides archived records by default.
    """

    def get_queryset(self):
        return SoftDeleteQuerySet(self.model, using=self._db).active()

    def with_archived(self):
        return SoftDeleteQuerySet(self.model, using=self._db)

    def archived_only(self):
        return SoftDeleteQuerySet(self.model, using=self._db).archived()


class SoftDeleteMixin(models.Model):
    """
    Abstract base providing ``is_active``/``archived_at``/``archived_by`` and
    the ``archive()``/``unarchive()`` operations.

    Concrete models pick their own default manager (usually
    ``RestaurantSoftDeleteManager``) and keep ``all_objects`` unfiltered.
    """

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Inactive records are considered archived/soft-deleted.",
    )
    archived_at = models.DateTimeField(null=True, blank=True)
    archived_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="%(app_label)s_%(class)s_archived",
    )

    class Meta:
        abstract = True

    def archive(self, archived_by=None):
        self.is_active = False
        self.archived_at = timezone.now()
        if archived_by is not None and getattr(archived_by, "pk", None):
            self.archived_by = archived_by
        self.save(update_fields=["is_active", "archived_at", "archived_by"])

    def unarchive(self):
        self.is_active = True
        self.archived_at = None
        self.archived_by = None
        self.save(update_fields=["is_active", "archived_at", "archived_by"])

    @property
    def is_archived(self):
        return not self.is_active

    def delete(self, using=None, keep_parents=False):
        """Soft delete. Use ``force_delete()`` to remove the row."""
        self.archive()

    def force_delete(self, using=None, keep_parents=False):
        return super().delete(using=using, keep_parents=keep_parents)
