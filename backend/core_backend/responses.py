from rest_framework import status as http_status
from rest_framework.response import Response


def success_response(data=None, message=None, status=http_status.HTTP_200_OK, headers=None, **extra):
    """Build the standard success envelope with an optional human-readable message."""
    payload = {"success": True, "data": data}
    if message:
        payload["message"] = message
    payload.update(extra)
    return Response(payload, status=status, headers=headers)
