import django_filters

from core_backend.base import BaseFilterSet
from .models import Table


class TableFilter(BaseFilterSet):
    available = django_filters.BooleanFilter(method="filter_available")

    class Meta:
        model = Table
        fields = ["status", "available"]

    def filter_available(self, queryset, name, value):
        if value:
            return queryset.filter(status=Table.Status.AVAILABLE)
        return queryset.exclude(status=Table.Status.AVAILABLE)
