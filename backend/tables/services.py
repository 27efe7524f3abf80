import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone
from rest_framework import status

from audit.models import AuditLog
from audit.services import AuditService
from core_backend.exceptions import ApiError, ResourceNotFoundError, ValidationError
from orders.models import Order
from orders.services.notification_service import KitchenNotificationService
from .models import Table, TableAssistance
from .qr import (
    generate_qr_code_url,
    generate_unique_table_code,
    get_table_url,
    is_valid_table_code,
    regenerate_table_code_and_qr,
    should_regenerate_qr_code,
)

logger = logging.getLogger(__name__)

MIN_CAPACITY = 1
MAX_CAPACITY = 20
MAX_BULK_TABLES = 50


def _has_active_orders(table):
    return Order.all_objects.filter(table=table, status__in=Order.ACTIVE_STATUSES).exists()


class TableService:
    """
    Table management for the current restaurant.
    """

    @staticmethod
    def list_tables(status_filter=None, available=None):
        queryset = Table.objects.order_by("number")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        if available is True:
            queryset = queryset.filter(status=Table.Status.AVAILABLE)
        elif available is False:
            queryset = queryset.exclude(status=Table.Status.AVAILABLE)
        return queryset

    @staticmethod
    def get_table(table_id):
        try:
            return Table.objects.select_related("restaurant").get(pk=table_id)
        except (Table.DoesNotExist, ValueError, DjangoValidationError):
            raise ResourceNotFoundError("Table", table_id)

    @staticmethod
    def _validate_capacity(capacity):
        if capacity is not None and not MIN_CAPACITY <= capacity <= MAX_CAPACITY:
            raise ValidationError(
                f"Capacity must be between {MIN_CAPACITY} and {MAX_CAPACITY}",
                code="INVALID_CAPACITY",
            )

    @staticmethod
    def _ensure_number_available(restaurant, number, exclude_id=None):
        queryset = Table.all_objects.filter(restaurant=restaurant, number=number, is_active=True)
        if exclude_id is not None:
            queryset = queryset.exclude(pk=exclude_id)
        if queryset.exists():
            raise ApiError(
                status.HTTP_409_CONFLICT,
                "TABLE_NUMBER_EXISTS",
                f"Table number {number} already exists",
            )

    @staticmethod
    def create_table(restaurant, data):
        TableService._ensure_number_available(restaurant, data["number"])
        capacity = data.get("capacity", 4)
        TableService._validate_capacity(capacity)

        code = generate_unique_table_code()
        table = Table.objects.create(
            restaurant=restaurant,
            number=data["number"],
            capacity=capacity,
            code=code,
            qr_code_url=generate_qr_code_url(code),
        )
        logger.info(f"Table {table.number} ({table.code}) created for restaurant {restaurant.pk}")
        return table

    @staticmethod
    @transaction.atomic
    def bulk_create_tables(restaurant, tables):
        """
        Create a batch of tables. Either every table is created or none is.
        """
        if not tables:
            raise ValidationError("At least one table is required", code="EMPTY_BATCH")
        if len(tables) > MAX_BULK_TABLES:
            raise ValidationError(
                f"Cannot create more than {MAX_BULK_TABLES} tables at once",
                code="TOO_MANY_TABLES",
            )

        numbers = [entry["number"] for entry in tables]
        duplicates = sorted({n for n in numbers if numbers.count(n) > 1})
        if duplicates:
            raise ValidationError(
                "Duplicate table numbers in request",
                details={"numbers": duplicates},
                code="DUPLICATE_TABLE_NUMBERS",
            )

        existing = sorted(
            Table.all_objects.filter(
                restaurant=restaurant, number__in=numbers, is_active=True
            ).values_list("number", flat=True)
        )
        if existing:
            raise ApiError(
                status.HTTP_409_CONFLICT,
                "TABLE_NUMBER_EXISTS",
                f"Table numbers already exist: {', '.join(str(n) for n in existing)}",
                details={"numbers": existing},
            )

        for entry in tables:
            TableService._validate_capacity(entry.get("capacity", 4))

        created = []
        issued_codes = set()
        for entry in tables:
            code = generate_unique_table_code()
            while code in issued_codes:
                code = generate_unique_table_code()
            issued_codes.add(code)
            created.append(
                Table.objects.create(
                    restaurant=restaurant,
                    number=entry["number"],
                    capacity=entry.get("capacity", 4),
                    code=code,
                    qr_code_url=generate_qr_code_url(code),
                )
            )

        logger.info(f"Bulk created {len(created)} tables for restaurant {restaurant.pk}")
        return created

    @staticmethod
    def update_table(table, data):
        if not data:
            raise ValidationError("At least one field must be provided for update")
        if table.status == Table.Status.OCCUPIED:
            raise ApiError(
                status.HTTP_409_CONFLICT, "TABLE_OCCUPIED", "Cannot modify an occupied table"
            )

        if "number" in data and data["number"] != table.number:
            TableService._ensure_number_available(table.restaurant_id, data["number"], exclude_id=table.pk)
        if "capacity" in data:
            TableService._validate_capacity(data["capacity"])

        for field in ("number", "capacity"):
            if field in data:
                setattr(table, field, data[field])
        table.save()
        return table

    @staticmethod
    def update_status(table, new_status):
        if not table.can_transition_to(new_status):
            raise ValidationError(
                f"Cannot change table status from {table.status} to {new_status}",
                details={
                    "current_status": table.status,
                    "allowed": list(Table.STATUS_TRANSITIONS.get(Table.Status(table.status), ())),
                },
                code="INVALID_STATUS_TRANSITION",
            )

        old_status = table.status
        table.status = new_status
        table.save(update_fields=["status", "updated_at"])
        logger.info(f"Table {table.pk} status {old_status} -> {new_status}")
        return table

    @staticmethod
    def delete_table(table, staff=None):
        if table.status == Table.Status.OCCUPIED:
            raise ApiError(
                status.HTTP_409_CONFLICT, "TABLE_OCCUPIED", "Cannot delete an occupied table"
            )
        if _has_active_orders(table):
            raise ApiError(
                status.HTTP_409_CONFLICT,
                "HAS_ACTIVE_ORDERS",
                "Cannot delete a table with active orders",
            )
        table.archive(archived_by=staff)
        logger.info(f"Table {table.pk} archived")
        return table

    @staticmethod
    def get_qr_info(table):
        if should_regenerate_qr_code(table.qr_code_url, table.code):
            table.qr_code_url = generate_qr_code_url(table.code)
            table.save(update_fields=["qr_code_url", "updated_at"])
            logger.info(f"Rebuilt stale QR URL for table {table.pk}")
        return {
            "code": table.code,
            "table_url": get_table_url(table.code),
            "qr_code_url": table.qr_code_url,
        }

    @staticmethod
    def regenerate_code(table, request=None):
        old_code = table.code
        table.code, table.qr_code_url = regenerate_table_code_and_qr()
        table.save(update_fields=["code", "qr_code_url", "updated_at"])

        logger.warning(f"Table {table.pk} code changed from {old_code} to {table.code}")
        if request is not None:
            AuditService.log_from_request(
                request,
                AuditLog.Action.TABLE_CODE_REGENERATED,
                "Table",
                table.pk,
                old_values={"code": old_code},
                new_values={"code": table.code},
                severity=AuditLog.Severity.WARNING,
            )
        return table

    @staticmethod
    def get_table_by_code(code):
        """
        Resolve an active table from a customer-supplied code, across all
        restaurants. Raises 400 on a malformed code and 404 when unknown.
        """
        code = (code or "").strip().upper()
        if not is_valid_table_code(code):
            raise ValidationError("Invalid table code format", code="INVALID_TABLE_CODE")

        table = (
            Table.all_objects.select_related("restaurant")
            .filter(code=code, is_active=True, restaurant__is_active=True)
            .first()
        )
        if table is None:
            raise ApiError(status.HTTP_404_NOT_FOUND, "TABLE_NOT_FOUND", "Table not found")
        return table


class AssistanceService:
    @staticmethod
    def create_request(session, request_type, message=""):
        """
        Record an assistance request for the session's table. An identical
        open request is returned instead of creating a duplicate.
        """
        table = session.table
        existing = TableAssistance.all_objects.filter(
            table=table, type=request_type, resolved_at__isnull=True
        ).first()
        if existing:
            return existing, False

        assistance = TableAssistance.all_objects.create(
            restaurant_id=table.restaurant_id,
            table=table,
            session=session,
            type=request_type,
            message=message or "",
        )
        logger.info(f"Assistance {assistance.type} requested at table {table.number} ({table.restaurant_id})")

        KitchenNotificationService.assistance_requested(assistance)
        return assistance, True

    @staticmethod
    def list_requests(include_resolved=False):
        queryset = TableAssistance.objects.select_related("table", "resolved_by")
        if not include_resolved:
            queryset = queryset.filter(resolved_at__isnull=True)
        return queryset.order_by("created_at")

    @staticmethod
    def resolve(assistance_id, staff):
        try:
            assistance = TableAssistance.objects.select_related("table").get(pk=assistance_id)
        except (TableAssistance.DoesNotExist, ValueError, DjangoValidationError):
            raise ResourceNotFoundError("Assistance request", assistance_id)

        if assistance.is_resolved:
            raise ApiError(
                status.HTTP_409_CONFLICT, "ALREADY_RESOLVED", "Assistance request is already resolved"
            )

        assistance.resolved_at = timezone.now()
        assistance.resolved_by = staff
        assistance.save(update_fields=["resolved_at", "resolved_by"])
        return assistance
