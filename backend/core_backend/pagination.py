from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response


class StandardPagination(LimitOffsetPagination):
    """
    Limit/offset pagination that renders the standard list envelope:

        {"success": true, "data": [...],
         "pagination": {"limit", "offset", "total", "has_more"}}
    """

    default_limit = 20
    max_limit = 100

    def get_paginated_response(self, data):
        return Response(
            {
                "success": True,
                "data": data,
                "pagination": {
                    "limit": self.limit,
                    "offset": self.offset,
                    "total": self.count,
                    "has_more": self.offset + self.limit < self.count,
                },
            }
        )
