from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, permissions, viewsets

from core_backend.pagination import StandardPagination
from staff.permissions import IsAdminOrHigher
from .models import AuditLog
from .serializers import AuditLogSerializer


class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Audit trail for the caller's restaurant (ADMIN and above).
    SUPER_ADMIN sees every restaurant and may narrow with ``?restaurant_id=``.
    """

    serializer_class = AuditLogSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdminOrHigher]
    pagination_class = StandardPagination
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ["action", "entity_type", "severity", "success"]
    ordering_fields = ["timestamp"]
    ordering = ["-timestamp"]

    def get_queryset(self):
        queryset = AuditLog.objects.all()
        user = self.request.user
        if user.is_super_admin:
            restaurant_id = self.request.query_params.get("restaurant_id")
            if restaurant_id:
                queryset = queryset.filter(restaurant_id=restaurant_id)
            return queryset
        return queryset.filter(restaurant_id=user.restaurant_id)
