import django_filters
from django.db import models
from django.utils import timezone
from django.utils.dateparse import parse_datetime, parse_date
from datetime import datetime, time
import logging

logger = logging.getLogger(__name__)


def normalize_datetime_value(value, *, is_end=False):
    """
    Normalize a date or datetime string to a timezone-aware datetime.

    Args:
        value: A string (date or datetime), date object, or datetime object
        is_end: If True and value is date-only, returns end of day (23:59:59.999999)
                If False, returns start of day (00:00:00)

    Returns:
        Timezone-aware datetime, or None when the value cannot be parsed

    Examples:
        normalize_datetime_value("2025-11-11", is_end=False)  # 2025-11-11 00:00:00
        normalize_datetime_value("2025-11-11", is_end=True)   # 2025-11-11 23:59:59.999999
        normalize_datetime_value("2025-11-11T10:30:00Z")      # 2025-11-11 10:30:00 (unchanged)
    """
    if not value:
        return None

    if isinstance(value, datetime):
        return timezone.make_aware(value) if timezone.is_naive(value) else value

    if hasattr(value, 'year'):
        dt = datetime.combine(value, time.max if is_end else time.min)
        return timezone.make_aware(dt)

    if isinstance(value, str):
        dt = parse_datetime(value.strip().replace(' ', '+'))
        if dt:
            return timezone.make_aware(dt) if timezone.is_naive(dt) else dt

        date_obj = parse_date(value.strip())
        if date_obj:
            dt = datetime.combine(date_obj, time.max if is_end else time.min)
            return timezone.make_aware(dt)

    logger.debug(f"normalize_datetime_value: could not parse {value!r}")
    return None


class FlexibleDateTimeFilter(django_filters.DateTimeFilter):
    """
    A DateTimeFilter that treats date-only inputs as whole days.

    For 'lte'/'lt' lookups a date-only value becomes the end of that day.
    """

    def filter(self, qs, value):
        if isinstance(value, datetime) and value.time() == time(0, 0, 0) and self.lookup_expr in ['lte', 'lt']:
            value = datetime.combine(value.date(), time.max)
            if timezone.is_naive(value):
                value = timezone.make_aware(value)
        return super().filter(qs, value)


class BaseFilterSet(django_filters.FilterSet):
    """
    Base filter set with common filtering patterns.

    Uses FlexibleDateTimeFilter for DateTimeField filters so that date-only
    inputs like "2025-11-11" work as full-day ranges.
    """

    created_after = FlexibleDateTimeFilter(field_name='created_at', lookup_expr='gte')
    created_before = FlexibleDateTimeFilter(field_name='created_at', lookup_expr='lte')

    @classmethod
    def filter_for_field(cls, field, field_name, lookup_expr='exact'):
        if isinstance(field, models.DateTimeField):
            return FlexibleDateTimeFilter(field_name=field_name, lookup_expr=lookup_expr)
        return super().filter_for_field(field, field_name, lookup_expr)
