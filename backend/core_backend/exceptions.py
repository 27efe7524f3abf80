"""
API error types.

Every error leaves the API in the same envelope, built by
``core_backend.exception_handlers.api_exception_handler``:

    {"success": false,
     "error": {"type", "code", "message", "details", "timestamp", "path", "request_id"}}
"""

from rest_framework import exceptions, status


class ApiError(exceptions.APIException):
    """Base error carrying an HTTP status, a machine-readable code and a message."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "The request could not be processed."
    default_code = "API_ERROR"
    error_type = "API_ERROR"

    def __init__(self, status_code=None, code=None, message=None, details=None):
        if status_code is not None:
            self.status_code = status_code
        self.code = code or self.default_code
        self.message = message or str(self.default_detail)
        self.details = details
        super().__init__(detail=self.message, code=self.code)

    def __str__(self):
        return self.message


class ValidationError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Validation failed."
    default_code = "VALIDATION_ERROR"
    error_type = "VALIDATION_ERROR"

    def __init__(self, message=None, details=None, code=None):
        super().__init__(code=code, message=message, details=details)


class BusinessLogicError(ApiError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Business rule violated."
    default_code = "BUSINESS_LOGIC_ERROR"
    error_type = "BUSINESS_LOGIC_ERROR"

    def __init__(self, message=None, code=None, details=None):
        super().__init__(code=code, message=message, details=details)


class AuthenticationError(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Authentication required."
    default_code = "UNAUTHORIZED"
    error_type = "AUTHENTICATION_ERROR"

    def __init__(self, message=None, code=None, details=None):
        super().__init__(code=code, message=message, details=details)


class AuthorizationError(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You do not have permission to perform this action."
    default_code = "FORBIDDEN"
    error_type = "AUTHORIZATION_ERROR"

    def __init__(self, message=None, code=None, details=None):
        super().__init__(code=code, message=message, details=details)


class ResourceNotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"
    error_type = "NOT_FOUND"

    def __init__(self, resource="Resource", identifier=None, code=None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with id {identifier} not found"
        super().__init__(code=code, message=message)


class RateLimitError(ApiError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = "Too many requests, please try again later."
    default_code = "RATE_LIMIT_EXCEEDED"
    error_type = "RATE_LIMIT_ERROR"

    def __init__(self, message=None, retry_after=None, code=None):
        self.retry_after = retry_after
        details = {"retry_after": retry_after} if retry_after is not None else None
        super().__init__(code=code, message=message, details=details)
