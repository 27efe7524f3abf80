"""
Request correlation middleware.

Every request gets an id (the incoming ``X-Request-ID`` header when present,
a fresh uuid4 otherwise). It is exposed as ``request.request_id``, echoed on
the response and injected into log records through ``RequestIDLogFilter``.

This module is loaded by the LOGGING config, so it must not import models.
"""

import logging
import re
import uuid
from threading import local

_thread_locals = local()

REQUEST_ID_HEADER = "X-Request-ID"
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9\-_.]{1,128}$")


def get_current_request_id():
    return getattr(_thread_locals, "request_id", None)


def set_current_request_id(request_id):
    _thread_locals.request_id = request_id


class RequestIDMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        incoming = request.headers.get(REQUEST_ID_HEADER, "")
        request_id = incoming if _VALID_REQUEST_ID.match(incoming) else uuid.uuid4().hex

        request.request_id = request_id
        set_current_request_id(request_id)
        try:
            response = self.get_response(request)
            response[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            set_current_request_id(None)


class RequestIDLogFilter(logging.Filter):
    """Adds ``request_id`` to every record ("-" outside a request)."""

    def filter(self, record):
        record.request_id = get_current_request_id() or "-"
        return True
