"""
Menu API tests: categories, menu items, availability and the full menu.
"""
from decimal import Decimal

import pytest
from rest_framework import status

from menu.models import MenuCategory, MenuItem
from orders.models import Order, OrderItem

CATEGORIES_URL = "/api/menu/categories/"
ITEMS_URL = "/api/menu/items/"


@pytest.fixture
def drinks_category(restaurant_a):
    return MenuCategory.objects.create(restaurant=restaurant_a, name="Drinks", display_order=2)


@pytest.fixture
def category_b(restaurant_b):
    return MenuCategory.objects.create(restaurant=restaurant_b, name="Mains")


@pytest.mark.django_db
class TestCategories:
    def test_list_includes_item_counts(self, authenticated_client, waiter_staff_a, menu_item_a, drinks_category):
        MenuItem.objects.create(
            restaurant=menu_item_a.restaurant,
            category=menu_item_a.category,
            name="Fries",
            price=Decimal("3.50"),
            is_available=False,
        )
        client = authenticated_client(waiter_staff_a)

        response = client.get(CATEGORIES_URL)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert [c["name"] for c in data] == ["Mains", "Drinks"]
        assert data[0]["item_count"] == 2
        assert data[0]["available_item_count"] == 1
        assert data[1]["item_count"] == 0

    def test_list_is_scoped_to_restaurant(self, authenticated_client, admin_staff_b, category_a, category_b):
        client = authenticated_client(admin_staff_b)

        response = client.get(CATEGORIES_URL)

        ids = [c["id"] for c in response.json()["data"]]
        assert ids == [str(category_b.id)]

    def test_retrieve_lists_available_items(self, authenticated_client, waiter_staff_a, menu_item_a):
        MenuItem.objects.create(
            restaurant=menu_item_a.restaurant,
            category=menu_item_a.category,
            name="Sold out special",
            price=Decimal("9.00"),
            is_available=False,
        )
        client = authenticated_client(waiter_staff_a)

        response = client.get(f"{CATEGORIES_URL}{menu_item_a.category_id}/")

        items = response.json()["data"]["items"]
        assert [i["name"] for i in items] == ["Burger"]

    def test_create(self, authenticated_client, manager_staff_a):
        client = authenticated_client(manager_staff_a)

        response = client.post(CATEGORIES_URL, {"name": "Desserts", "display_order": 3}, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        category = MenuCategory.all_objects.get(pk=response.json()["data"]["id"])
        assert category.restaurant_id == manager_staff_a.restaurant_id

    def test_duplicate_name_is_rejected(self, authenticated_client, manager_staff_a, category_a):
        client = authenticated_client(manager_staff_a)

        response = client.post(CATEGORIES_URL, {"name": "mains"}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"]["code"] == "DUPLICATE_NAME"

    def test_name_of_archived_category_can_be_reused(self, authenticated_client, manager_staff_a, category_a):
        category_a.archive()
        client = authenticated_client(manager_staff_a)

        response = client.post(CATEGORIES_URL, {"name": "Mains"}, format="json")

        assert response.status_code == status.HTTP_201_CREATED

    def test_waiter_cannot_create(self, authenticated_client, waiter_staff_a):
        client = authenticated_client(waiter_staff_a)

        response = client.post(CATEGORIES_URL, {"name": "Desserts"}, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_delete_is_soft(self, authenticated_client, manager_staff_a, category_a):
        client = authenticated_client(manager_staff_a)

        response = client.delete(f"{CATEGORIES_URL}{category_a.id}/")

        assert response.status_code == status.HTTP_200_OK
        category_a.refresh_from_db()
        assert category_a.is_active is False
        assert category_a.archived_at is not None

    def test_reorder(self, authenticated_client, manager_staff_a, category_a, drinks_category):
        client = authenticated_client(manager_staff_a)

        response = client.post(
            f"{CATEGORIES_URL}reorder/",
            {
                "items": [
                    {"id": str(category_a.id), "display_order": 5},
                    {"id": str(drinks_category.id), "display_order": 0},
                ]
            },
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert [c["name"] for c in response.json()["data"]] == ["Drinks", "Mains"]

    def test_reorder_rejects_foreign_category(self, authenticated_client, manager_staff_a, category_a, category_b):
        client = authenticated_client(manager_staff_a)

        response = client.post(
            f"{CATEGORIES_URL}reorder/",
            {"items": [{"id": str(category_b.id), "display_order": 0}]},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        category_b.refresh_from_db()
        assert category_b.display_order == 0

    def test_bulk_deactivate(self, authenticated_client, manager_staff_a, category_a, drinks_category):
        client = authenticated_client(manager_staff_a)

        response = client.patch(
            f"{CATEGORIES_URL}bulk-update/",
            {"ids": [str(category_a.id), str(drinks_category.id)], "is_active": False},
            format="json",
        )

        assert response.json()["data"]["updated_count"] == 2
        assert not MenuCategory.all_objects.filter(is_active=True).exists()


@pytest.mark.django_db
class TestMenuItems:
    def _payload(self, category, **overrides):
        payload = {
            "category": str(category.id),
            "name": "Pasta",
            "price": "14.00",
            "preparation_time": 20,
        }
        payload.update(overrides)
        return payload

    def test_create(self, authenticated_client, manager_staff_a, category_a):
        client = authenticated_client(manager_staff_a)

        response = client.post(ITEMS_URL, self._payload(category_a), format="json")

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert data["price"] == "14.00"
        assert data["category_name"] == "Mains"

    @pytest.mark.parametrize("price", ["0.00", "10000.00"])
    def test_price_bounds(self, authenticated_client, manager_staff_a, category_a, price):
        client = authenticated_client(manager_staff_a)

        response = client.post(ITEMS_URL, self._payload(category_a, price=price), format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "price" in response.json()["error"]["details"]["fields"]

    def test_duplicate_name_in_category_is_case_insensitive(
        self, authenticated_client, manager_staff_a, menu_item_a
    ):
        client = authenticated_client(manager_staff_a)

        response = client.post(
            ITEMS_URL, self._payload(menu_item_a.category, name="BURGER"), format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"]["code"] == "DUPLICATE_ITEM_NAME"

    def test_same_name_in_other_category_is_fine(
        self, authenticated_client, manager_staff_a, menu_item_a, drinks_category
    ):
        client = authenticated_client(manager_staff_a)

        response = client.post(ITEMS_URL, self._payload(drinks_category, name="Burger"), format="json")

        assert response.status_code == status.HTTP_201_CREATED

    def test_category_of_other_restaurant(self, authenticated_client, manager_staff_a, category_b):
        client = authenticated_client(manager_staff_a)

        response = client.post(ITEMS_URL, self._payload(category_b), format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "INVALID_CATEGORY"

    def test_category_full(self, authenticated_client, manager_staff_a, category_a):
        MenuItem.objects.bulk_create(
            [
                MenuItem(
                    restaurant=category_a.restaurant,
                    category=category_a,
                    name=f"Item {n}",
                    price=Decimal("1.00"),
                )
                for n in range(MenuItem.MAX_PER_CATEGORY)
            ]
        )
        client = authenticated_client(manager_staff_a)

        response = client.post(ITEMS_URL, self._payload(category_a), format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "CATEGORY_FULL"

    def test_filter_and_search(self, authenticated_client, waiter_staff_a, menu_item_a, drinks_category):
        MenuItem.objects.create(
            restaurant=menu_item_a.restaurant, category=drinks_category, name="Cola", price=Decimal("2.50")
        )
        client = authenticated_client(waiter_staff_a)

        by_category = client.get(ITEMS_URL, {"category": str(drinks_category.id)}).json()["data"]
        by_search = client.get(ITEMS_URL, {"search": "burg"}).json()["data"]

        assert [i["name"] for i in by_category] == ["Cola"]
        assert [i["name"] for i in by_search] == ["Burger"]

    def test_other_restaurant_item_is_not_found(self, authenticated_client, admin_staff_b, menu_item_a):
        client = authenticated_client(admin_staff_b)

        response = client.get(f"{ITEMS_URL}{menu_item_a.id}/")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_update_rechecks_name(self, authenticated_client, manager_staff_a, menu_item_a):
        MenuItem.objects.create(
            restaurant=menu_item_a.restaurant,
            category=menu_item_a.category,
            name="Fries",
            price=Decimal("3.50"),
        )
        client = authenticated_client(manager_staff_a)

        response = client.patch(f"{ITEMS_URL}{menu_item_a.id}/", {"name": "fries"}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_delete_blocked_by_active_order(self, authenticated_client, manager_staff_a, menu_item_a, table_a):
        order = Order.objects.create(restaurant=table_a.restaurant, table=table_a, status=Order.Status.PREPARING)
        OrderItem.objects.create(order=order, menu_item=menu_item_a, quantity=1, price=menu_item_a.price)
        client = authenticated_client(manager_staff_a)

        response = client.delete(f"{ITEMS_URL}{menu_item_a.id}/")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"]["code"] == "HAS_ACTIVE_ORDERS"

    def test_delete_allowed_after_order_completed(
        self, authenticated_client, manager_staff_a, menu_item_a, table_a
    ):
        order = Order.objects.create(restaurant=table_a.restaurant, table=table_a, status=Order.Status.COMPLETED)
        OrderItem.objects.create(order=order, menu_item=menu_item_a, quantity=1, price=menu_item_a.price)
        client = authenticated_client(manager_staff_a)

        response = client.delete(f"{ITEMS_URL}{menu_item_a.id}/")

        assert response.status_code == status.HTTP_200_OK
        menu_item_a.refresh_from_db()
        assert menu_item_a.is_active is False


@pytest.mark.django_db
class TestAvailability:
    def test_chef_marks_item_unavailable(self, authenticated_client, chef_staff_a, menu_item_a):
        client = authenticated_client(chef_staff_a)

        response = client.patch(
            f"{ITEMS_URL}{menu_item_a.id}/availability/",
            {"is_available": False, "note": "Out of buns"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        menu_item_a.refresh_from_db()
        assert menu_item_a.is_available is False
        assert menu_item_a.availability_note == "Out of buns"
        assert menu_item_a.unavailable_by_id == chef_staff_a.id
        assert menu_item_a.last_unavailable_at is not None

    def test_making_available_clears_note(self, authenticated_client, chef_staff_a, menu_item_a):
        menu_item_a.is_available = False
        menu_item_a.availability_note = "Out of buns"
        menu_item_a.save()
        client = authenticated_client(chef_staff_a)

        client.patch(f"{ITEMS_URL}{menu_item_a.id}/availability/", {"is_available": True}, format="json")

        menu_item_a.refresh_from_db()
        assert menu_item_a.is_available is True
        assert menu_item_a.availability_note == ""


@pytest.mark.django_db
class TestFullMenu:
    def test_full_menu_contains_unavailable_but_not_archived_items(
        self, authenticated_client, waiter_staff_a, menu_item_a
    ):
        MenuItem.objects.create(
            restaurant=menu_item_a.restaurant,
            category=menu_item_a.category,
            name="Sold out",
            price=Decimal("5.00"),
            is_available=False,
        )
        archived = MenuItem.objects.create(
            restaurant=menu_item_a.restaurant,
            category=menu_item_a.category,
            name="Old dish",
            price=Decimal("5.00"),
        )
        archived.archive()
        client = authenticated_client(waiter_staff_a)

        response = client.get("/api/menu/full/")

        assert response.status_code == status.HTTP_200_OK
        categories = response.json()["data"]
        assert len(categories) == 1
        assert sorted(i["name"] for i in categories[0]["items"]) == ["Burger", "Sold out"]
