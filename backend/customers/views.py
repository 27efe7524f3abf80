"""
Public customer API.

Nothing here uses staff authentication. Routes are keyed by a table code
or by a customer session token, sent as ``X-Session-Token`` (or as
``session_token`` in the body). Every route is IP-ratelimited.
"""
import logging

from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from rest_framework import permissions, status
from rest_framework.views import APIView

from core_backend.exceptions import AuthenticationError, AuthorizationError
from core_backend.responses import success_response
from core_backend.utils import get_client_ip, get_user_agent
from menu.services import MenuService
from orders.serializers import (
    CustomerOrderCreateSerializer,
    CustomerOrderSerializer,
    OrderTrackingSerializer,
)
from orders.services import CustomerOrderService, OrderService
from restaurants.managers import set_current_restaurant
from tables.serializers import AssistanceRequestSerializer, TableAssistanceSerializer
from tables.services import AssistanceService, TableService
from .serializers import CustomerSessionSerializer, SessionCreateSerializer, TableValidationSerializer
from .services import CustomerSessionService

logger = logging.getLogger(__name__)

customer_ratelimit = ratelimit(key=get_client_ip, rate="20/m", block=True)
customer_order_ratelimit = ratelimit(key=get_client_ip, rate="5/5m", method="POST", block=True)


def get_session_token(request):
    token = request.headers.get("X-Session-Token")
    if not token and hasattr(request, "data"):
        token = request.data.get("session_token")
    return token


class CustomerAPIView(APIView):
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def get_session(self, request):
        """Validate the request's session token and scope the request to its restaurant."""
        token = get_session_token(request)
        if not token:
            raise AuthenticationError("Session token required", code="INVALID_SESSION")
        session = CustomerSessionService.validate_session(token)
        set_current_restaurant(CustomerSessionService.resolve_table(session).restaurant)
        return session

    def get_table(self, code):
        table = TableService.get_table_by_code(code)
        set_current_restaurant(table.restaurant)
        return table


# Sessions


@method_decorator(customer_ratelimit, name="post")
class SessionCreateView(CustomerAPIView):
    def post(self, request):
        serializer = SessionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        session = CustomerSessionService.create_session(
            serializer.validated_data["table_code"],
            customer_name=serializer.validated_data.get("customer_name", ""),
            customer_email=serializer.validated_data.get("customer_email", ""),
            ip_address=get_client_ip(None, request),
            user_agent=get_user_agent(request),
        )
        return success_response(
            CustomerSessionSerializer(session).data,
            message="Session started",
            status=status.HTTP_201_CREATED,
        )


@method_decorator(customer_ratelimit, name="get")
@method_decorator(customer_ratelimit, name="delete")
class CurrentSessionView(CustomerAPIView):
    def get(self, request):
        return success_response(CustomerSessionSerializer(self.get_session(request)).data)

    def delete(self, request):
        CustomerSessionService.end_session(self.get_session(request))
        return success_response(None, message="Session ended")


@method_decorator(customer_ratelimit, name="post")
class SessionExtendView(CustomerAPIView):
    def post(self, request):
        session = CustomerSessionService.extend_session(self.get_session(request))
        return success_response(CustomerSessionSerializer(session).data, message="Session extended")


@method_decorator(customer_ratelimit, name="get")
class SessionOrdersView(CustomerAPIView):
    def get(self, request):
        orders = CustomerSessionService.get_session_orders(self.get_session(request))
        return success_response(CustomerOrderSerializer(orders, many=True).data)


# Tables and menu


@method_decorator(customer_ratelimit, name="get")
class TableValidateView(CustomerAPIView):
    def get(self, request, code):
        return success_response(TableValidationSerializer(self.get_table(code)).data)


@method_decorator(customer_ratelimit, name="get")
class CustomerMenuView(CustomerAPIView):
    def get(self, request, code):
        table = self.get_table(code)
        restaurant = table.restaurant
        return success_response(
            {
                "restaurant": {
                    "id": str(restaurant.id),
                    "name": restaurant.name,
                    "currency": restaurant.currency,
                    "logo_url": restaurant.logo_url,
                },
                "table": {"number": table.number, "code": table.code},
                "categories": MenuService.get_customer_menu(restaurant),
            }
        )


@method_decorator(customer_ratelimit, name="get")
class TableOrdersView(CustomerAPIView):
    def get(self, request, code):
        orders = CustomerOrderService.table_orders(self.get_table(code))
        return success_response(CustomerOrderSerializer(orders, many=True).data)


# Orders


@method_decorator(customer_ratelimit, name="post")
@method_decorator(customer_order_ratelimit, name="post")
class CustomerOrderCreateView(CustomerAPIView):
    def post(self, request):
        session = self.get_session(request)
        serializer = CustomerOrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        table_code = (request.data.get("table_code") or "").strip().upper()
        if table_code and table_code != session.table.code:
            logger.warning(
                f"Customer session {session.session_id} tried to order for table {table_code}"
            )
            raise AuthorizationError(
                "Session does not belong to this table", code="SESSION_TABLE_MISMATCH"
            )

        order = OrderService.create_customer_order(
            session,
            serializer.validated_data,
            ip_address=get_client_ip(None, request),
            request=request,
        )
        return success_response(
            CustomerOrderSerializer(order).data,
            message=f"Order {order.order_number} placed",
            status=status.HTTP_201_CREATED,
        )


@method_decorator(customer_ratelimit, name="get")
class OrderTrackView(CustomerAPIView):
    def get(self, request, order_number):
        return success_response(
            OrderTrackingSerializer(CustomerOrderService.track_order(order_number)).data
        )


@method_decorator(customer_ratelimit, name="get")
class CustomerOrderDetailView(CustomerAPIView):
    def get(self, request, order_id):
        return success_response(
            CustomerOrderSerializer(CustomerOrderService.get_order_detail(order_id)).data
        )


# Assistance


@method_decorator(customer_ratelimit, name="post")
class AssistanceRequestView(CustomerAPIView):
    def post(self, request):
        session = self.get_session(request)
        serializer = AssistanceRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        assistance, created = AssistanceService.create_request(
            session,
            serializer.validated_data["type"],
            serializer.validated_data.get("message", ""),
        )
        return success_response(
            TableAssistanceSerializer(assistance).data,
            message="Staff have been notified" if created else "Request already pending",
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )
