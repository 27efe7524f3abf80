"""
Core backend base components.

Shared viewset, serializer and filter building blocks used by every
TableTech app so that pagination, filtering, restaurant scoping and
archiving behave the same way across the API.
"""

from .viewsets import BaseViewSet, ReadOnlyBaseViewSet
from .serializers import BaseModelSerializer, TimestampedSerializer
from .mixins import OptimizedQuerysetMixin, ArchivingViewSetMixin
from .filters import BaseFilterSet, normalize_datetime_value

__all__ = [
    # ViewSets
    'BaseViewSet',
    'ReadOnlyBaseViewSet',

    # Serializers
    'BaseModelSerializer',
    'TimestampedSerializer',

    # Mixins
    'OptimizedQuerysetMixin',
    'ArchivingViewSetMixin',

    # Filters
    'BaseFilterSet',
    'normalize_datetime_value',
]
