"""
Utility functions for core_backend.
"""


def get_client_ip(group, request):
    """
    Extract the client IP from the request.

    Signature matches django-ratelimit's callable ``key`` so it can be used as
    ``@ratelimit(key=get_client_ip, ...)`` as well as called directly with
    ``get_client_ip(None, request)``.

    The last X-Forwarded-For entry is used because the load balancer appends
    the address it actually saw; earlier entries are client supplied.
    """
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[-1].strip()
    return request.META.get("REMOTE_ADDR")


def get_user_agent(request):
    return request.META.get("HTTP_USER_AGENT", "")[:500]
