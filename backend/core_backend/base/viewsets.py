from rest_framework import viewsets, filters
from django_filters.rest_framework import DjangoFilterBackend
from .mixins import OptimizedQuerysetMixin, ArchivingViewSetMixin
from ..pagination import StandardPagination


class BaseViewSet(OptimizedQuerysetMixin, ArchivingViewSetMixin, viewsets.ModelViewSet):
    """
    Base ViewSet that provides standard configuration for all ModelViewSets.

    Features:
    - Automatic query optimization via OptimizedQuerysetMixin
    - Soft delete on destroy plus archive/unarchive actions via ArchivingViewSetMixin
    - Standard pagination, filtering, and search

    Usage:
        class TableViewSet(BaseViewSet):
            queryset = Table.objects.all()
            serializer_class = TableSerializer
    """

    pagination_class = StandardPagination

    filter_backends = [
        DjangoFilterBackend,
        filters.SearchFilter,
        filters.OrderingFilter,
    ]

    ordering = ['-created_at']

    def get_queryset(self):
        """
        Re-evaluate the queryset at request time.

        The class-level queryset is built at import time, before any restaurant
        context exists, so ``model.objects.all()`` is called again here to pick
        up the restaurant filter before the mixin chain runs.
        """
        if getattr(self, 'queryset', None) is not None:
            model = self.queryset.model
            original_queryset = self.queryset
            self.queryset = model.objects.all()

            # MRO: OptimizedQuerysetMixin → ArchivingViewSetMixin → ModelViewSet
            result = super().get_queryset()

            self.queryset = original_queryset
            return result
        return super().get_queryset()


class ReadOnlyBaseViewSet(OptimizedQuerysetMixin, viewsets.ReadOnlyModelViewSet):
    """
    Base ViewSet for read-only endpoints (no archiving).
    """

    pagination_class = StandardPagination
    filter_backends = [
        DjangoFilterBackend,
        filters.SearchFilter,
        filters.OrderingFilter,
    ]
    ordering = ['-created_at']

    def get_queryset(self):
        """Re-evaluate queryset at request time for restaurant context"""
        if getattr(self, 'queryset', None) is not None:
            model = self.queryset.model
            original_queryset = self.queryset
            self.queryset = model.objects.all()
            result = super().get_queryset()
            self.queryset = original_queryset
            return result
        return super().get_queryset()
