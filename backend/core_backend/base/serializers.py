from rest_framework import serializers


class BaseModelSerializer(serializers.ModelSerializer):
    """
    Base serializer for TableTech models.

    Subclasses may declare ``select_related_fields`` and
    ``prefetch_related_fields`` on their Meta; OptimizedQuerysetMixin reads
    them to build the viewset queryset.
    """

    class Meta:
        select_related_fields = []
        prefetch_related_fields = []


class TimestampedSerializer(BaseModelSerializer):
    """
    Base serializer for models with created_at/updated_at fields.
    """

    created_at = serializers.DateTimeField(read_only=True)
    updated_at = serializers.DateTimeField(read_only=True)

    class Meta:
        abstract = True


class IdListSerializer(serializers.Serializer):
    """Payload of ``{"ids": [...]}`` used by the bulk endpoints."""

    ids = serializers.ListField(child=serializers.UUIDField(), min_length=1)
