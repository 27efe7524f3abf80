from core_backend.base import BaseFilterSet, normalize_datetime_value
from core_backend.exceptions import ValidationError
from .models import Order


class OrderFilter(BaseFilterSet):
    """
    Order list filters. ``from``/``to`` accept ISO datetimes or dates;
    a date-only ``to`` covers the whole day.
    """

    class Meta:
        model = Order
        fields = ["status", "payment_status", "table"]

    def _parse_bound(self, name, is_end=False):
        raw = self.data.get(name)
        if not raw:
            return None
        value = normalize_datetime_value(raw, is_end=is_end)
        if value is None:
            raise ValidationError(
                f"'{name}' must be an ISO 8601 date or datetime",
                details={"fields": {name: ["Invalid datetime"]}},
                code="INVALID_DATE",
            )
        return value

    def filter_queryset(self, queryset):
        queryset = super().filter_queryset(queryset)
        start = self._parse_bound("from")
        end = self._parse_bound("to", is_end=True)

        if start and end and start > end:
            raise ValidationError(
                "'from' must not be after 'to'",
                details={"from": self.data.get("from"), "to": self.data.get("to")},
                code="INVALID_DATE_RANGE",
            )
        if start:
            queryset = queryset.filter(created_at__gte=start)
        if end:
            queryset = queryset.filter(created_at__lte=end)
        return queryset
