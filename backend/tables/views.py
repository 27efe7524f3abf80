import logging

from rest_framework import permissions, status
from rest_framework.decorators import action
from rest_framework.views import APIView

from core_backend.base import BaseViewSet
from core_backend.responses import success_response
from restaurants.services import RestaurantService
from staff.permissions import IsAdminOrHigher, IsManagerOrHigher
from .filters import TableFilter
from .models import Table
from .serializers import (
    BulkTableCreateSerializer,
    TableAssistanceSerializer,
    TableCreateSerializer,
    TableSerializer,
    TableStatusSerializer,
    TableUpdateSerializer,
)
from .services import AssistanceService, TableService

logger = logging.getLogger(__name__)


class TableViewSet(BaseViewSet):
    """
    Tables of the current restaurant.

    Any staff member may read tables and change their status; structural
    changes need MANAGER+ and code regeneration needs ADMIN+.
    """

    queryset = Table.objects.all()
    serializer_class = TableSerializer
    filterset_class = TableFilter
    ordering_fields = ["number", "capacity", "status"]
    ordering = ["number"]

    def get_permissions(self):
        if self.action in (
            "create",
            "bulk_create",
            "update",
            "partial_update",
            "destroy",
            "archive",
            "unarchive",
        ):
            permission_classes = [permissions.IsAuthenticated, IsManagerOrHigher]
        elif self.action == "regenerate_code":
            permission_classes = [permissions.IsAuthenticated, IsAdminOrHigher]
        else:
            permission_classes = [permissions.IsAuthenticated]
        return [permission() for permission in permission_classes]

    def create(self, request, *args, **kwargs):
        serializer = TableCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        table = TableService.create_table(
            RestaurantService.require_current_restaurant(), serializer.validated_data
        )
        return success_response(
            TableSerializer(table).data,
            message="Table created successfully",
            status=status.HTTP_201_CREATED,
        )

    @action(detail=False, methods=["post"], url_path="bulk")
    def bulk_create(self, request):
        serializer = BulkTableCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        tables = TableService.bulk_create_tables(
            RestaurantService.require_current_restaurant(), serializer.validated_data["tables"]
        )
        return success_response(
            TableSerializer(tables, many=True).data,
            message=f"{len(tables)} tables created successfully",
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        table = self.get_object()
        serializer = TableUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        table = TableService.update_table(table, serializer.validated_data)
        return success_response(TableSerializer(table).data, message="Table updated successfully")

    def partial_update(self, request, *args, **kwargs):
        return self.update(request, *args, **kwargs)

    def destroy(self, request, *args, **kwargs):
        table = self.get_object()
        TableService.delete_table(table, staff=request.user)
        return success_response(None, message="Table deleted successfully")

    @action(detail=True, methods=["patch"], url_path="status")
    def update_status(self, request, pk=None):
        table = self.get_object()
        serializer = TableStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        table = TableService.update_status(table, serializer.validated_data["status"])
        return success_response(TableSerializer(table).data, message="Table status updated")

    @action(detail=True, methods=["get"], url_path="qr-url")
    def qr_url(self, request, pk=None):
        return success_response(TableService.get_qr_info(self.get_object()))

    @action(detail=True, methods=["post"], url_path="regenerate-code")
    def regenerate_code(self, request, pk=None):
        table = TableService.regenerate_code(self.get_object(), request=request)
        return success_response(
            TableSerializer(table).data,
            message="Table code regenerated. Previously printed QR codes no longer work.",
        )


class AssistanceListView(APIView):
    """Open assistance requests of the current restaurant, oldest first."""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        include_resolved = request.query_params.get("include_resolved") in ("1", "true")
        requests = AssistanceService.list_requests(include_resolved=include_resolved)
        return success_response(TableAssistanceSerializer(requests, many=True).data)


class AssistanceResolveView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, assistance_id):
        assistance = AssistanceService.resolve(assistance_id, request.user)
        return success_response(
            TableAssistanceSerializer(assistance).data, message="Assistance request resolved"
        )
