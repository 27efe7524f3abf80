from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Prefetch
from rest_framework.decorators import action
from rest_framework.viewsets import ViewSetMixin

from core_backend.exceptions import ApiError, ResourceNotFoundError
from core_backend.responses import success_response
from .permissions import CanArchiveRecords, CanUnarchiveRecords


class OptimizedQuerysetMixin(ViewSetMixin):
    """
    Applies ``select_related_fields``/``prefetch_related_fields`` declared on
    the Meta of the current action's serializer.
    """

    def _get_optimizations(self, serializer_class):
        select_related = set()
        prefetch_related = []

        meta = getattr(serializer_class, "Meta", None)
        if meta is None:
            return select_related, prefetch_related

        select_related.update(getattr(meta, "select_related_fields", []))
        for field in getattr(meta, "prefetch_related_fields", []):
            if isinstance(field, Prefetch) or field not in prefetch_related:
                prefetch_related.append(field)

        return select_related, prefetch_related

    def get_queryset(self):
        queryset = super().get_queryset()

        try:
            serializer_class = self.get_serializer_class()
        except (AttributeError, AssertionError):
            return queryset

        select_related, prefetch_related = self._get_optimizations(serializer_class)

        if select_related:
            queryset = queryset.select_related(*select_related)
        if prefetch_related:
            queryset = queryset.prefetch_related(*prefetch_related)

        return queryset


class ArchivingViewSetMixin(ViewSetMixin):
    """
    Soft delete support for models built on SoftDeleteMixin.

    - ``destroy`` archives instead of deleting
    - ``?include_archived=true`` includes archived rows, ``?include_archived=only`` shows only them
    - ``archive``/``unarchive`` detail actions
    """

    def get_queryset(self):
        queryset = super().get_queryset()

        if not hasattr(queryset.model, "is_active"):
            return queryset

        include_archived = self.request.query_params.get("include_archived", "").lower()
        manager = queryset.model.objects

        if include_archived in ("true", "1", "yes") and hasattr(manager, "with_archived"):
            queryset = manager.with_archived()
        elif include_archived == "only" and hasattr(manager, "archived_only"):
            queryset = manager.archived_only()

        return queryset

    def perform_destroy(self, instance):
        if hasattr(instance, "archive"):
            user = self.request.user if self.request.user.is_authenticated else None
            instance.archive(archived_by=user)
        else:
            instance.delete()

    @action(detail=True, methods=["post"], permission_classes=[CanArchiveRecords])
    def archive(self, request, pk=None):
        obj = self.get_object()

        if not hasattr(obj, "archive"):
            raise ApiError(400, "ARCHIVE_NOT_SUPPORTED", "This resource does not support archiving")
        if not obj.is_active:
            raise ApiError(400, "ALREADY_ARCHIVED", "Record is already archived")

        self.perform_destroy(obj)
        return success_response(
            {"id": str(obj.pk)}, message=f"{obj._meta.verbose_name} archived successfully"
        )

    @action(detail=True, methods=["post"], permission_classes=[CanUnarchiveRecords])
    def unarchive(self, request, pk=None):
        model = self.get_queryset().model
        manager = model.objects
        queryset = manager.with_archived() if hasattr(manager, "with_archived") else manager.all()

        try:
            obj = queryset.get(pk=pk)
        except (model.DoesNotExist, ValueError, DjangoValidationError):
            raise ResourceNotFoundError(model._meta.verbose_name.title())

        if obj.is_active:
            raise ApiError(400, "NOT_ARCHIVED", "Record is not archived")

        obj.unarchive()
        return success_response(
            {"id": str(obj.pk)}, message=f"{obj._meta.verbose_name} unarchived successfully"
        )
