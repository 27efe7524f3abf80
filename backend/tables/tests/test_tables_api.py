"""
Tables API tests: CRUD with number uniqueness, bulk creation, status
transitions, QR info, code regeneration and assistance requests.
"""
import pytest
from rest_framework import status

from audit.models import AuditLog
from tables.models import Table, TableAssistance

TABLES_URL = "/api/tables/"


def detail_url(table, suffix=""):
    return f"{TABLES_URL}{table.id}/{suffix}"


@pytest.mark.django_db
class TestTableCreate:
    def test_create_generates_code_and_qr(self, authenticated_client, manager_staff_a):
        client = authenticated_client(manager_staff_a)

        response = client.post(TABLES_URL, {"number": 7, "capacity": 6}, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert data["number"] == 7
        assert data["capacity"] == 6
        assert data["status"] == "AVAILABLE"
        assert len(data["code"]) == 6
        assert data["code"] in data["qr_code_url"]
        table = Table.all_objects.get(pk=data["id"])
        assert table.restaurant_id == manager_staff_a.restaurant_id

    def test_default_capacity(self, authenticated_client, manager_staff_a):
        client = authenticated_client(manager_staff_a)

        response = client.post(TABLES_URL, {"number": 3}, format="json")

        assert response.json()["data"]["capacity"] == 4

    def test_duplicate_number(self, authenticated_client, manager_staff_a, table_a):
        client = authenticated_client(manager_staff_a)

        response = client.post(TABLES_URL, {"number": table_a.number}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"]["code"] == "TABLE_NUMBER_EXISTS"

    def test_same_number_in_other_restaurant_is_fine(self, authenticated_client, admin_staff_b, table_a):
        client = authenticated_client(admin_staff_b)

        response = client.post(TABLES_URL, {"number": table_a.number}, format="json")

        assert response.status_code == status.HTTP_201_CREATED

    @pytest.mark.parametrize("capacity", [0, 21])
    def test_invalid_capacity(self, authenticated_client, manager_staff_a, capacity):
        client = authenticated_client(manager_staff_a)

        response = client.post(TABLES_URL, {"number": 5, "capacity": capacity}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "INVALID_CAPACITY"

    def test_waiter_cannot_create(self, authenticated_client, waiter_staff_a):
        client = authenticated_client(waiter_staff_a)

        response = client.post(TABLES_URL, {"number": 5}, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestBulkCreate:
    def test_bulk_create(self, authenticated_client, manager_staff_a):
        client = authenticated_client(manager_staff_a)

        response = client.post(
            f"{TABLES_URL}bulk/",
            {"tables": [{"number": n, "capacity": 2} for n in range(10, 15)]},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert [t["number"] for t in data] == [10, 11, 12, 13, 14]
        assert len({t["code"] for t in data}) == 5

    def test_too_many_tables(self, authenticated_client, manager_staff_a):
        client = authenticated_client(manager_staff_a)

        response = client.post(
            f"{TABLES_URL}bulk/",
            {"tables": [{"number": n} for n in range(1, 52)]},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "TOO_MANY_TABLES"

    def test_duplicates_in_batch(self, authenticated_client, manager_staff_a):
        client = authenticated_client(manager_staff_a)

        response = client.post(
            f"{TABLES_URL}bulk/", {"tables": [{"number": 4}, {"number": 4}]}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "DUPLICATE_TABLE_NUMBERS"

    def test_conflict_creates_nothing(self, authenticated_client, manager_staff_a, table_a):
        client = authenticated_client(manager_staff_a)

        response = client.post(
            f"{TABLES_URL}bulk/",
            {"tables": [{"number": 20}, {"number": table_a.number}]},
            format="json",
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert not Table.all_objects.filter(number=20).exists()


@pytest.mark.django_db
class TestTableReadUpdateDelete:
    def test_list_scoped_and_ordered(self, authenticated_client, waiter_staff_a, restaurant_a, restaurant_b, table_a):
        Table.objects.create(restaurant=restaurant_a, number=5, code="TBL005")
        Table.objects.create(restaurant=restaurant_b, number=2, code="TBL002")
        client = authenticated_client(waiter_staff_a)

        response = client.get(TABLES_URL)

        assert response.status_code == status.HTTP_200_OK
        assert [t["number"] for t in response.json()["data"]] == [1, 5]

    def test_list_available_filter(self, authenticated_client, waiter_staff_a, restaurant_a, table_a):
        Table.objects.create(restaurant=restaurant_a, number=5, code="TBL005", status="OCCUPIED")
        client = authenticated_client(waiter_staff_a)

        response = client.get(TABLES_URL, {"available": "true"})

        assert [t["number"] for t in response.json()["data"]] == [1]

    def test_retrieve_other_restaurant_404(self, authenticated_client, admin_staff_b, table_a):
        client = authenticated_client(admin_staff_b)

        assert client.get(detail_url(table_a)).status_code == status.HTTP_404_NOT_FOUND

    def test_update(self, authenticated_client, manager_staff_a, table_a):
        client = authenticated_client(manager_staff_a)

        response = client.patch(detail_url(table_a), {"number": 42, "capacity": 8}, format="json")

        assert response.status_code == status.HTTP_200_OK
        table_a.refresh_from_db()
        assert (table_a.number, table_a.capacity) == (42, 8)
        assert table_a.code == "ABC123"

    def test_update_occupied_table(self, authenticated_client, manager_staff_a, table_a):
        Table.all_objects.filter(pk=table_a.pk).update(status="OCCUPIED")
        client = authenticated_client(manager_staff_a)

        response = client.patch(detail_url(table_a), {"capacity": 2}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"]["code"] == "TABLE_OCCUPIED"

    def test_update_requires_a_field(self, authenticated_client, manager_staff_a, table_a):
        client = authenticated_client(manager_staff_a)

        response = client.patch(detail_url(table_a), {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_delete_soft_deletes(self, authenticated_client, manager_staff_a, table_a):
        client = authenticated_client(manager_staff_a)

        response = client.delete(detail_url(table_a))

        assert response.status_code == status.HTTP_200_OK
        table_a.refresh_from_db()
        assert table_a.is_active is False
        assert client.get(detail_url(table_a)).status_code == status.HTTP_404_NOT_FOUND

    def test_delete_occupied(self, authenticated_client, manager_staff_a, table_a):
        Table.all_objects.filter(pk=table_a.pk).update(status="OCCUPIED")
        client = authenticated_client(manager_staff_a)

        response = client.delete(detail_url(table_a))

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_delete_with_active_orders(self, authenticated_client, manager_staff_a, table_a):
        from orders.models import Order

        Order.objects.create(
            restaurant=table_a.restaurant, table=table_a, status=Order.Status.PREPARING
        )
        client = authenticated_client(manager_staff_a)

        response = client.delete(detail_url(table_a))

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"]["code"] == "HAS_ACTIVE_ORDERS"


@pytest.mark.django_db
class TestTableStatus:
    @pytest.mark.parametrize(
        "start,target",
        [
            ("AVAILABLE", "OCCUPIED"),
            ("AVAILABLE", "RESERVED"),
            ("OCCUPIED", "AVAILABLE"),
            ("RESERVED", "OCCUPIED"),
            ("MAINTENANCE", "AVAILABLE"),
        ],
    )
    def test_allowed_transitions(self, authenticated_client, waiter_staff_a, table_a, start, target):
        Table.all_objects.filter(pk=table_a.pk).update(status=start)
        client = authenticated_client(waiter_staff_a)

        response = client.patch(detail_url(table_a, "status/"), {"status": target}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["status"] == target

    @pytest.mark.parametrize(
        "start,target",
        [("OCCUPIED", "RESERVED"), ("MAINTENANCE", "OCCUPIED"), ("AVAILABLE", "AVAILABLE")],
    )
    def test_rejected_transitions(self, authenticated_client, waiter_staff_a, table_a, start, target):
        Table.all_objects.filter(pk=table_a.pk).update(status=start)
        client = authenticated_client(waiter_staff_a)

        response = client.patch(detail_url(table_a, "status/"), {"status": target}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"


@pytest.mark.django_db
class TestQrAndRegeneration:
    def test_qr_url_rebuilds_stale_link(self, authenticated_client, waiter_staff_a, table_a):
        Table.all_objects.filter(pk=table_a.pk).update(qr_code_url="")
        client = authenticated_client(waiter_staff_a)

        response = client.get(detail_url(table_a, "qr-url/"))

        data = response.json()["data"]
        assert data["code"] == "ABC123"
        assert data["table_url"].endswith("/table/ABC123")
        assert "ABC123" in data["qr_code_url"]
        table_a.refresh_from_db()
        assert table_a.qr_code_url == data["qr_code_url"]

    def test_regenerate_code_admin_only(self, authenticated_client, manager_staff_a, table_a):
        client = authenticated_client(manager_staff_a)

        response = client.post(detail_url(table_a, "regenerate-code/"))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_regenerate_code(self, authenticated_client, admin_staff_a, table_a):
        client = authenticated_client(admin_staff_a)

        response = client.post(detail_url(table_a, "regenerate-code/"))

        assert response.status_code == status.HTTP_200_OK
        table_a.refresh_from_db()
        assert table_a.code != "ABC123"
        assert table_a.code in table_a.qr_code_url
        log = AuditLog.objects.get(action=AuditLog.Action.TABLE_CODE_REGENERATED)
        assert log.changes["old"] == {"code": "ABC123"}
        assert log.severity == AuditLog.Severity.WARNING


@pytest.mark.django_db
class TestAssistance:
    def test_list_and_resolve(self, authenticated_client, waiter_staff_a, table_a, restaurant_b):
        open_request = TableAssistance.objects.create(
            restaurant=table_a.restaurant, table=table_a, type="BILL"
        )
        client = authenticated_client(waiter_staff_a)

        listed = client.get(f"{TABLES_URL}assistance/").json()["data"]
        assert [r["id"] for r in listed] == [str(open_request.id)]
        assert listed[0]["table_number"] == 1

        response = client.post(f"{TABLES_URL}assistance/{open_request.id}/resolve/")
        assert response.status_code == status.HTTP_200_OK
        open_request.refresh_from_db()
        assert open_request.resolved_by_id == waiter_staff_a.id
        assert client.get(f"{TABLES_URL}assistance/").json()["data"] == []

        again = client.post(f"{TABLES_URL}assistance/{open_request.id}/resolve/")
        assert again.status_code == status.HTTP_409_CONFLICT
