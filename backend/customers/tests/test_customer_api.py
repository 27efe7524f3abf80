"""
Customer API tests: table sessions, the public menu, customer order
placement, order tracking and assistance requests.
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework import status

from core_backend.exceptions import AuthenticationError
from customers.models import CustomerSession
from customers.services import CustomerSessionService, session_cache_key
from menu.models import MenuItem
from orders.models import Order, OrderItem
from tables.models import Table, TableAssistance

BASE_URL = "/api/customer/"
SESSIONS_URL = f"{BASE_URL}sessions/"
CURRENT_SESSION_URL = f"{SESSIONS_URL}current/"
ORDERS_URL = f"{BASE_URL}orders/"


def error_code(response):
    return response.json()["error"]["code"]


@pytest.fixture
def customer_session(table_a):
    return CustomerSessionService.create_session(table_a.code, customer_name="Alice")


@pytest.fixture
def session_client(api_client, customer_session):
    api_client.credentials(HTTP_X_SESSION_TOKEN=customer_session.token)
    return api_client


def customer_order_payload(menu_item, quantity=1, **extra):
    return {"items": [{"menu_item": str(menu_item.id), "quantity": quantity}], **extra}


# ============================================================================
# SESSIONS
# ============================================================================

@pytest.mark.django_db
class TestCustomerSessions:
    def test_scan_opens_session(self, api_client, table_a, restaurant_a):
        response = api_client.post(
            SESSIONS_URL, {"table_code": "abc123", "customer_name": "Alice"}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert data["token"].startswith("sess_")
        assert data["customer_name"] == "Alice"
        assert data["table"]["number"] == 1
        assert data["restaurant"]["id"] == str(restaurant_a.id)

        session = CustomerSession.objects.get(session_id=data["session_id"])
        assert session.table == table_a
        assert session.expires_at > timezone.now() + timedelta(hours=1, minutes=59)

    def test_session_is_cached(self, customer_session):
        cached = cache.get(session_cache_key(customer_session.token))

        assert cached["session_id"] == customer_session.session_id
        assert cached["table_id"] == str(customer_session.table_id)

    def test_unknown_table_code(self, api_client, table_a):
        response = api_client.post(SESSIONS_URL, {"table_code": "ZZZ999"}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert error_code(response) == "TABLE_NOT_FOUND"

    def test_inactive_table_is_not_found(self, api_client, table_a):
        Table.all_objects.filter(pk=table_a.pk).update(is_active=False)

        response = api_client.post(SESSIONS_URL, {"table_code": table_a.code}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_table_under_maintenance(self, api_client, table_a):
        Table.all_objects.filter(pk=table_a.pk).update(status=Table.Status.MAINTENANCE)

        response = api_client.post(SESSIONS_URL, {"table_code": table_a.code}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert error_code(response) == "TABLE_UNAVAILABLE"

    def test_current_session(self, session_client, customer_session):
        response = session_client.get(CURRENT_SESSION_URL)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["session_id"] == customer_session.session_id

    def test_missing_token(self, api_client):
        response = api_client.get(CURRENT_SESSION_URL)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert error_code(response) == "INVALID_SESSION"

    def test_malformed_token(self, api_client):
        api_client.credentials(HTTP_X_SESSION_TOKEN="not-a-session")

        response = api_client.get(CURRENT_SESSION_URL)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert error_code(response) == "INVALID_SESSION"

    def test_expired_session_is_deactivated(self, session_client, customer_session):
        CustomerSession.objects.filter(pk=customer_session.pk).update(
            expires_at=timezone.now() - timedelta(minutes=1)
        )
        cache.delete(session_cache_key(customer_session.token))

        response = session_client.get(CURRENT_SESSION_URL)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert error_code(response) == "SESSION_EXPIRED"
        customer_session.refresh_from_db()
        assert customer_session.is_active is False
        assert cache.get(session_cache_key(customer_session.token)) is None

    def test_expiry_is_enforced_from_cache(self, customer_session):
        key = session_cache_key(customer_session.token)
        cached = cache.get(key)
        cached["expires_at"] = (timezone.now() - timedelta(seconds=1)).isoformat()
        cache.set(key, cached, timeout=60)

        with pytest.raises(AuthenticationError) as exc_info:
            CustomerSessionService.validate_session(customer_session.token)

        assert exc_info.value.code == "SESSION_EXPIRED"
        customer_session.refresh_from_db()
        assert customer_session.is_active is False
        assert cache.get(key) is None

    def test_cached_session_validates_without_queries(self, customer_session, django_assert_num_queries):
        with django_assert_num_queries(0):
            session = CustomerSessionService.validate_session(customer_session.token)

        assert session.session_id == customer_session.session_id
        assert session.customer_name == "Alice"
        assert session.table_id == customer_session.table_id

    def test_cached_session_loads_table_in_one_query(
        self, customer_session, restaurant_a, django_assert_num_queries
    ):
        session = CustomerSessionService.validate_session(customer_session.token)

        with django_assert_num_queries(1):
            table = CustomerSessionService.resolve_table(session)
            assert table.restaurant == restaurant_a

    def test_stale_activity_is_written_through(self, customer_session):
        key = session_cache_key(customer_session.token)
        cached = cache.get(key)
        cached["last_active_at"] = (timezone.now() - timedelta(minutes=10)).isoformat()
        cache.set(key, cached, timeout=60)

        CustomerSessionService.validate_session(customer_session.token)

        customer_session.refresh_from_db()
        assert timezone.now() - customer_session.last_active_at < timedelta(minutes=1)
        assert cache.get(key)["last_active_at"] == customer_session.last_active_at.isoformat()

    def test_validation_falls_back_to_database(self, session_client, customer_session):
        cache.delete(session_cache_key(customer_session.token))

        response = session_client.get(CURRENT_SESSION_URL)

        assert response.status_code == status.HTTP_200_OK
        assert cache.get(session_cache_key(customer_session.token)) is not None

    def test_extend_session(self, session_client, customer_session):
        CustomerSession.objects.filter(pk=customer_session.pk).update(
            expires_at=timezone.now() + timedelta(minutes=10)
        )

        response = session_client.post(f"{CURRENT_SESSION_URL}extend/")

        assert response.status_code == status.HTTP_200_OK
        customer_session.refresh_from_db()
        assert customer_session.expires_at > timezone.now() + timedelta(hours=1)

    def test_end_session(self, session_client, customer_session):
        response = session_client.delete(CURRENT_SESSION_URL)

        assert response.status_code == status.HTTP_200_OK
        customer_session.refresh_from_db()
        assert customer_session.is_active is False

        response = session_client.get(CURRENT_SESSION_URL)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_touch_is_throttled(self, customer_session):
        assert CustomerSessionService.touch(customer_session) is False

        customer_session.last_active_at = timezone.now() - timedelta(minutes=10)
        assert CustomerSessionService.touch(customer_session) is True

    def test_cleanup_expired_sessions(self, customer_session, table_a):
        stale = CustomerSessionService.create_session(table_a.code)
        CustomerSession.objects.filter(pk=stale.pk).update(
            expires_at=timezone.now() - timedelta(hours=1)
        )

        assert CustomerSessionService.cleanup_expired_sessions() == 1

        stale.refresh_from_db()
        customer_session.refresh_from_db()
        assert stale.is_active is False
        assert customer_session.is_active is True


# ============================================================================
# TABLES AND MENU
# ============================================================================

@pytest.mark.django_db
class TestTablesAndMenu:
    def test_validate_table(self, api_client, table_a, restaurant_a):
        response = api_client.get(f"{BASE_URL}tables/{table_a.code}/validate/")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["number"] == 1
        assert data["restaurant_name"] == restaurant_a.name

    def test_malformed_code(self, api_client):
        response = api_client.get(f"{BASE_URL}tables/AB-1/validate/")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert error_code(response) == "INVALID_TABLE_CODE"

    def test_menu_lists_available_items(self, api_client, table_a, menu_item_a, category_a, restaurant_a):
        MenuItem.objects.create(
            restaurant=restaurant_a,
            category=category_a,
            name="Sold out soup",
            price=Decimal("6.00"),
            is_available=False,
        )

        response = api_client.get(f"{BASE_URL}menu/{table_a.code}/")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["restaurant"]["name"] == restaurant_a.name
        [category] = data["categories"]
        assert category["name"] == "Mains"
        assert [item["name"] for item in category["items"]] == ["Burger"]
        assert category["items"][0]["price"] == "12.50"

    def test_menu_hides_other_restaurants(self, api_client, table_a, menu_item_a, restaurant_b):
        from menu.models import MenuCategory

        other = MenuCategory.objects.create(restaurant=restaurant_b, name="Elsewhere")
        MenuItem.objects.create(
            restaurant=restaurant_b, category=other, name="Foreign dish", price=Decimal("5.00")
        )

        response = api_client.get(f"{BASE_URL}menu/{table_a.code}/")

        names = [category["name"] for category in response.json()["data"]["categories"]]
        assert names == ["Mains"]


# ============================================================================
# ORDERS
# ============================================================================

@pytest.mark.django_db
class TestCustomerOrders:
    def test_place_order(self, session_client, customer_session, menu_item_a):
        response = session_client.post(
            ORDERS_URL, customer_order_payload(menu_item_a, quantity=2), format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert data["status"] == "PENDING"
        assert Decimal(data["total_amount"]) == Decimal("25.00")
        assert Decimal(data["tax_amount"]) == Decimal("2.06")
        assert data["items"][0]["name"] == "Burger"

        order = Order.all_objects.get(pk=data["id"])
        assert order.session_id == customer_session.session_id
        assert order.customer_name == "Alice"
        assert order.created_by is None

    def test_token_in_body(self, api_client, customer_session, menu_item_a):
        payload = customer_order_payload(menu_item_a, session_token=customer_session.token)

        response = api_client.post(ORDERS_URL, payload, format="json")

        assert response.status_code == status.HTTP_201_CREATED

    def test_requires_session(self, api_client, menu_item_a):
        response = api_client.post(ORDERS_URL, customer_order_payload(menu_item_a), format="json")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_table_code_must_match_session(self, session_client, menu_item_a):
        payload = customer_order_payload(menu_item_a, table_code="XYZ789")

        response = session_client.post(ORDERS_URL, payload, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert error_code(response) == "SESSION_TABLE_MISMATCH"

    def test_customer_line_limit(self, session_client, restaurant_a, category_a):
        items = [
            MenuItem.objects.create(
                restaurant=restaurant_a, category=category_a, name=f"Dish {i}", price=Decimal("1.00")
            )
            for i in range(21)
        ]
        payload = {"items": [{"menu_item": str(item.id), "quantity": 1} for item in items]}

        response = session_client.post(ORDERS_URL, payload, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert error_code(response) == "TOO_MANY_ITEMS"

    def test_duplicate_order_is_rejected(self, session_client, menu_item_a):
        first = session_client.post(ORDERS_URL, customer_order_payload(menu_item_a), format="json")
        second = session_client.post(ORDERS_URL, customer_order_payload(menu_item_a), format="json")

        assert first.status_code == status.HTTP_201_CREATED
        assert second.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert error_code(second) == "DUPLICATE_ORDER"
        assert Order.all_objects.count() == 1

    def test_track_order(self, api_client, session_client, menu_item_a, restaurant_a):
        created = session_client.post(ORDERS_URL, customer_order_payload(menu_item_a), format="json")
        order_number = created.json()["data"]["order_number"]

        response = api_client.get(f"{ORDERS_URL}track/{order_number.lower()}/")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["order_number"] == order_number
        assert data["status"] == "PENDING"
        assert data["restaurant_name"] == restaurant_a.name
        assert "total_amount" not in data

    def test_track_unknown_order(self, api_client):
        response = api_client.get(f"{ORDERS_URL}track/ORD-00000000/")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert error_code(response) == "ORDER_NOT_FOUND"

    def test_order_detail(self, api_client, session_client, menu_item_a):
        created = session_client.post(ORDERS_URL, customer_order_payload(menu_item_a), format="json")
        order_id = created.json()["data"]["id"]

        response = api_client.get(f"{ORDERS_URL}{order_id}/")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["items"][0]["quantity"] == 1

    def test_session_and_table_orders(self, session_client, restaurant_a, table_a, menu_item_a):
        session_client.post(ORDERS_URL, customer_order_payload(menu_item_a), format="json")
        staff_order = Order.objects.create(restaurant=restaurant_a, table=table_a)
        OrderItem.objects.create(
            order=staff_order, menu_item=menu_item_a, quantity=1, price=Decimal("12.50")
        )

        session_orders = session_client.get(f"{CURRENT_SESSION_URL}orders/")
        table_orders = session_client.get(f"{BASE_URL}tables/{table_a.code}/orders/")

        assert len(session_orders.json()["data"]) == 1
        assert len(table_orders.json()["data"]) == 2


# ============================================================================
# ASSISTANCE
# ============================================================================

@pytest.mark.django_db
class TestAssistance:
    def test_request_assistance(self, session_client, table_a):
        response = session_client.post(
            f"{BASE_URL}assistance/", {"type": "BILL", "message": "Card please"}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert data["type"] == "BILL"
        assert data["table_number"] == table_a.number

    def test_open_request_is_not_duplicated(self, session_client):
        session_client.post(f"{BASE_URL}assistance/", {"type": "WAITER"}, format="json")

        response = session_client.post(f"{BASE_URL}assistance/", {"type": "WAITER"}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert TableAssistance.all_objects.count() == 1


# ============================================================================
# RATE LIMITING
# ============================================================================

@pytest.mark.django_db
class TestCustomerRateLimit:
    def test_ip_ratelimit(self, settings, api_client, table_a):
        settings.RATELIMIT_ENABLE = True
        url = f"{BASE_URL}tables/{table_a.code}/validate/"

        responses = [api_client.get(url) for _ in range(21)]

        assert responses[19].status_code == status.HTTP_200_OK
        assert responses[20].status_code == status.HTTP_429_TOO_MANY_REQUESTS
