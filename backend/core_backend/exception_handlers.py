"""
Project-wide DRF exception handler.

Kept apart from ``core_backend.exceptions`` because it needs
``rest_framework.views``, and loading that module resolves the default
authentication classes, which themselves raise the error types defined there.
"""

import logging

from django.conf import settings
from django.db import IntegrityError
from django.utils import timezone
from django_ratelimit.exceptions import Ratelimited
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from .exceptions import ApiError, RateLimitError

logger = logging.getLogger(__name__)


def build_error_payload(request, error_type, code, message, details=None):
    return {
        "success": False,
        "error": {
            "type": error_type,
            "code": code,
            "message": message,
            "details": details,
            "timestamp": timezone.now().isoformat(),
            "path": getattr(request, "path", None),
            "request_id": getattr(request, "request_id", None),
        },
    }


def _detail_message(data, fallback):
    if isinstance(data, dict) and "detail" in data:
        return str(data["detail"])
    if isinstance(data, (list, tuple)) and data:
        return str(data[0])
    if isinstance(data, str):
        return data
    return fallback


def api_exception_handler(exc, context):
    """
    DRF EXCEPTION_HANDLER that converts every error into the standard envelope.
    """
    request = context.get("request")

    if isinstance(exc, Ratelimited):
        exc = RateLimitError()
    elif isinstance(exc, IntegrityError):
        logger.warning(f"Integrity error on {getattr(request, 'path', '?')}: {exc}")
        exc = ApiError(status.HTTP_409_CONFLICT, "DUPLICATE_RESOURCE", "Resource already exists")

    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"Unhandled error on {getattr(request, 'method', '?')} {getattr(request, 'path', '?')}: {exc}",
            exc_info=exc,
        )
        message = str(exc) if settings.DEBUG else "An unexpected error occurred"
        payload = build_error_payload(
            request, "INTERNAL_SERVER_ERROR", "INTERNAL_SERVER_ERROR", message
        )
        return Response(payload, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if isinstance(exc, ApiError):
        payload = build_error_payload(request, exc.error_type, exc.code, exc.message, exc.details)
        if isinstance(exc, RateLimitError) and exc.retry_after is not None:
            response["Retry-After"] = str(int(exc.retry_after))
    elif isinstance(exc, exceptions.ValidationError):
        fields = response.data if isinstance(response.data, dict) else {"non_field_errors": response.data}
        payload = build_error_payload(
            request, "VALIDATION_ERROR", "VALIDATION_ERROR", "Validation failed", {"fields": fields}
        )
    elif isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        payload = build_error_payload(
            request,
            "AUTHENTICATION_ERROR",
            "UNAUTHORIZED",
            _detail_message(response.data, "Authentication required."),
        )
    elif isinstance(exc, exceptions.PermissionDenied) or response.status_code == status.HTTP_403_FORBIDDEN:
        payload = build_error_payload(
            request,
            "AUTHORIZATION_ERROR",
            "FORBIDDEN",
            _detail_message(response.data, "You do not have permission to perform this action."),
        )
    elif response.status_code == status.HTTP_404_NOT_FOUND:
        payload = build_error_payload(
            request, "NOT_FOUND", "NOT_FOUND", _detail_message(response.data, "Not found.")
        )
    elif isinstance(exc, exceptions.Throttled):
        payload = build_error_payload(
            request, "RATE_LIMIT_ERROR", "RATE_LIMIT_EXCEEDED", _detail_message(response.data, "Too many requests.")
        )
    else:
        payload = build_error_payload(
            request,
            "HTTP_ERROR",
            getattr(exc, "default_code", "HTTP_ERROR").upper(),
            _detail_message(response.data, "Request failed."),
        )

    if response.status_code >= 500:
        logger.error(f"Server error on {getattr(request, 'path', '?')}: {exc}")
    elif response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN):
        logger.warning(
            f"Access denied ({response.status_code}) on {getattr(request, 'method', '?')} "
            f"{getattr(request, 'path', '?')}: {payload['error']['message']}"
        )

    response.data = payload
    return response
