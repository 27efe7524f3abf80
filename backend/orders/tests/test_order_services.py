"""
Service-level order tests: tax maths, item limits, modification window,
order guards and best-effort kitchen broadcasts.
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from core_backend.exceptions import ApiError
from orders.models import Order
from orders.security import (
    claim_order_slot,
    customer_actor_key,
    enforce_staff_order_guards,
    release_order_slot,
    staff_actor_key,
)
from orders.services import OrderCalculationService, OrderService
from orders.services import notification_service
from restaurants.managers import set_current_restaurant
from tables.models import Table


class TestTaxCalculation:
    @pytest.mark.parametrize(
        "subtotal,rate,expected",
        [
            ("10.90", "9", "0.90"),
            ("25.00", "9", "2.06"),
            ("121.00", "21", "21.00"),
            ("10.00", "0", "0.00"),
        ],
    )
    def test_tax_is_extracted_from_inclusive_price(self, subtotal, rate, expected):
        assert OrderCalculationService.calculate_tax(Decimal(subtotal), Decimal(rate)) == Decimal(expected)


class TestItemLimits:
    def _items(self, count):
        return [
            {"menu_item": f"00000000-0000-0000-0000-{index:012d}", "quantity": 1, "modifiers": []}
            for index in range(count)
        ]

    def test_customer_line_limit(self):
        OrderCalculationService.validate_item_limits(self._items(20), OrderCalculationService.CUSTOMER_MAX_LINES)

        with pytest.raises(ApiError) as exc_info:
            OrderCalculationService.validate_item_limits(
                self._items(21), OrderCalculationService.CUSTOMER_MAX_LINES
            )
        assert exc_info.value.code == "TOO_MANY_ITEMS"

    def test_staff_line_limit(self):
        OrderCalculationService.validate_item_limits(self._items(50), OrderCalculationService.STAFF_MAX_LINES)

        with pytest.raises(ApiError) as exc_info:
            OrderCalculationService.validate_item_limits(self._items(51), OrderCalculationService.STAFF_MAX_LINES)
        assert exc_info.value.code == "TOO_MANY_ITEMS"

    def test_duplicate_lines_ignore_modifier_order(self):
        items = [
            {"menu_item": "m1", "quantity": 1, "modifiers": ["a", "b"]},
            {"menu_item": "m1", "quantity": 1, "modifiers": ["b", "a"]},
        ]

        with pytest.raises(ApiError) as exc_info:
            OrderCalculationService.validate_item_limits(items, 50)
        assert exc_info.value.code == "DUPLICATE_ITEMS"

    def test_too_many_modifiers(self):
        items = [{"menu_item": "m1", "quantity": 1, "modifiers": [str(i) for i in range(21)]}]

        with pytest.raises(ApiError) as exc_info:
            OrderCalculationService.validate_item_limits(items, 50)
        assert exc_info.value.code == "TOO_MANY_MODIFIERS"


@pytest.mark.django_db
class TestOrderValue:
    def test_total_above_maximum(self, restaurant_a):
        lines = [{"line_total": Decimal("10000.01")}]

        with pytest.raises(ApiError) as exc_info:
            OrderCalculationService.calculate_totals(restaurant_a, lines)
        assert exc_info.value.code == "INVALID_ORDER_VALUE"
        assert exc_info.value.status_code == 422


@pytest.mark.django_db
class TestCanModifyOrder:
    def test_fresh_pending_order(self, restaurant_a, table_a):
        order = Order.objects.create(restaurant=restaurant_a, table=table_a)

        assert OrderService.can_modify_order(order) is True

    def test_older_than_window(self, restaurant_a, table_a):
        order = Order.objects.create(restaurant=restaurant_a, table=table_a)
        order.created_at = timezone.now() - timedelta(minutes=6)

        assert OrderService.can_modify_order(order) is False

    @pytest.mark.parametrize("order_status", ["DELIVERED", "COMPLETED", "CANCELLED"])
    def test_locked_statuses(self, restaurant_a, table_a, order_status):
        order = Order.objects.create(restaurant=restaurant_a, table=table_a, status=order_status)

        assert OrderService.can_modify_order(order) is False


@pytest.mark.django_db
class TestDuplicateOrderGuard:
    def test_actor_keys(self, waiter_staff_a):
        assert staff_actor_key(waiter_staff_a) == f"staff:{waiter_staff_a.pk}"
        assert customer_actor_key("10.0.0.1", "abc123") == "customer:10.0.0.1:ABC123"

    def test_blocks_inside_window(self):
        assert claim_order_slot("staff:1") is True

        with pytest.raises(ApiError) as exc_info:
            claim_order_slot("staff:1")
        assert exc_info.value.code == "DUPLICATE_ORDER"
        assert exc_info.value.status_code == 429
        assert 1 <= exc_info.value.retry_after <= 5

    def test_second_request_blocked_before_first_order_is_written(self, waiter_staff_a):
        enforce_staff_order_guards(waiter_staff_a)

        with pytest.raises(ApiError) as exc_info:
            enforce_staff_order_guards(waiter_staff_a)
        assert exc_info.value.code == "DUPLICATE_ORDER"

    def test_other_actors_are_independent(self):
        claim_order_slot("customer:10.0.0.1:ABC123")

        assert claim_order_slot("customer:10.0.0.2:ABC123") is True
        assert claim_order_slot("customer:10.0.0.1:XYZ789") is True

    def test_release_frees_slot(self):
        claim_order_slot("staff:1")

        release_order_slot("staff:1")

        assert claim_order_slot("staff:1") is True

    def test_disabled_window_never_blocks(self, settings):
        settings.DUPLICATE_ORDER_WINDOW_SECONDS = 0

        assert claim_order_slot("staff:1") is False
        assert claim_order_slot("staff:1") is False

    def test_rate_limited_request_gives_slot_back(self, settings, waiter_staff_a):
        settings.STAFF_ORDER_RATE_LIMIT = (1, 60)
        enforce_staff_order_guards(waiter_staff_a)
        release_order_slot(staff_actor_key(waiter_staff_a))

        with pytest.raises(ApiError) as exc_info:
            enforce_staff_order_guards(waiter_staff_a)
        assert exc_info.value.code == "ORDER_RATE_LIMITED"
        assert claim_order_slot(staff_actor_key(waiter_staff_a)) is True

    def test_failed_order_does_not_block_retry(self, waiter_staff_a, restaurant_a, table_a, menu_item_a):
        set_current_restaurant(restaurant_a)
        data = {"table": table_a, "items": [{"menu_item": menu_item_a.id, "quantity": 1}]}
        table_a.status = Table.Status.MAINTENANCE

        with pytest.raises(ApiError):
            OrderService.create_staff_order(waiter_staff_a, restaurant_a, data)

        table_a.status = Table.Status.AVAILABLE
        order = OrderService.create_staff_order(waiter_staff_a, restaurant_a, data)
        assert Order.all_objects.filter(pk=order.pk).exists()

    def test_placed_order_holds_slot(self, waiter_staff_a, restaurant_a, table_a, menu_item_a):
        set_current_restaurant(restaurant_a)
        data = {"table": table_a, "items": [{"menu_item": menu_item_a.id, "quantity": 1}]}
        OrderService.create_staff_order(waiter_staff_a, restaurant_a, data)

        with pytest.raises(ApiError) as exc_info:
            OrderService.create_staff_order(waiter_staff_a, restaurant_a, data)
        assert exc_info.value.code == "DUPLICATE_ORDER"

    def test_cache_failure_fails_open(self, monkeypatch):
        class BrokenCache:
            def add(self, *args, **kwargs):
                raise ConnectionError("cache down")

        monkeypatch.setattr("orders.security.cache", BrokenCache())

        assert claim_order_slot("staff:1") is False


@pytest.mark.django_db
class TestRestaurantClosed:
    def test_inactive_restaurant(self, restaurant_a, table_a):
        restaurant_a.is_active = False

        with pytest.raises(ApiError) as exc_info:
            OrderService.ensure_can_order(restaurant_a, table_a)
        assert exc_info.value.code == "RESTAURANT_CLOSED"


@pytest.mark.django_db
class TestKitchenBroadcast:
    def test_broadcast_failure_does_not_fail_order(
        self, monkeypatch, waiter_staff_a, restaurant_a, table_a, menu_item_a
    ):
        def failing_async_to_sync(func):
            def _raise(*args, **kwargs):
                raise RuntimeError("channel layer down")
            return _raise

        monkeypatch.setattr(notification_service, "async_to_sync", failing_async_to_sync)
        set_current_restaurant(restaurant_a)

        order = OrderService.create_staff_order(
            waiter_staff_a,
            restaurant_a,
            {"table": table_a, "items": [{"menu_item": menu_item_a.id, "quantity": 1}]},
        )

        assert Order.all_objects.filter(pk=order.pk).exists()

    def test_order_created_event_reaches_kitchen_group(
        self, monkeypatch, waiter_staff_a, restaurant_a, table_a, menu_item_a
    ):
        sent = []

        def capture_async_to_sync(func):
            def _capture(group, message):
                sent.append((group, message))
            return _capture

        monkeypatch.setattr(notification_service, "async_to_sync", capture_async_to_sync)
        set_current_restaurant(restaurant_a)

        order = OrderService.create_staff_order(
            waiter_staff_a,
            restaurant_a,
            {"table": table_a, "items": [{"menu_item": menu_item_a.id, "quantity": 2}]},
        )

        group, message = sent[0]
        assert group == f"kitchen_{restaurant_a.id}"
        assert message["type"] == "order.created"
        assert message["order"]["order_number"] == order.order_number
        assert message["order"]["item_count"] == 2

    def test_status_change_is_broadcast_after_commit(
        self, monkeypatch, django_capture_on_commit_callbacks, manager_staff_a, restaurant_a, table_a
    ):
        sent = []

        def capture_async_to_sync(func):
            def _capture(group, message):
                sent.append((group, message))
            return _capture

        monkeypatch.setattr(notification_service, "async_to_sync", capture_async_to_sync)
        order = Order.objects.create(restaurant=restaurant_a, table=table_a)

        with django_capture_on_commit_callbacks() as callbacks:
            OrderService.update_status(order, Order.Status.CONFIRMED, manager_staff_a)
        assert sent == []

        for callback in callbacks:
            callback()
        group, message = sent[0]
        assert group == f"kitchen_{restaurant_a.id}"
        assert message["type"] == "order.status_changed"
        assert message["previous_status"] == "PENDING"
        assert message["status"] == "CONFIRMED"
