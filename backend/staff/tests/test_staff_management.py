"""
Staff management API tests: CRUD scoped to the caller's restaurant, role
restrictions, bulk updates and statistics.
"""
import pytest
from rest_framework import status

from audit.models import AuditLog
from staff.models import Staff, StaffSession

STAFF_URL = "/api/staff/"


def detail_url(staff):
    return f"{STAFF_URL}{staff.id}/"


def new_staff_payload(**overrides):
    payload = {
        "name": "New Waiter",
        "email": "new.waiter@a.test",
        "password": "Secure123!",
        "role": "WAITER",
    }
    payload.update(overrides)
    return payload


@pytest.mark.django_db
class TestStaffCreate:
    def test_manager_creates_staff_in_own_restaurant(self, authenticated_client, manager_staff_a):
        client = authenticated_client(manager_staff_a)

        response = client.post(STAFF_URL, new_staff_payload(), format="json")

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert data["role"] == "WAITER"
        assert "password" not in data
        created = Staff.all_objects.get(email="new.waiter@a.test")
        assert created.restaurant_id == manager_staff_a.restaurant_id
        assert created.check_password("Secure123!")
        assert AuditLog.objects.filter(
            action=AuditLog.Action.STAFF_CREATED, entity_id=str(created.id)
        ).exists()

    def test_duplicate_email_conflict(self, authenticated_client, manager_staff_a, admin_staff_b):
        client = authenticated_client(manager_staff_a)

        response = client.post(
            STAFF_URL, new_staff_payload(email=admin_staff_b.email.upper()), format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"]["code"] == "EMAIL_EXISTS"

    def test_weak_password(self, authenticated_client, manager_staff_a):
        client = authenticated_client(manager_staff_a)

        response = client.post(STAFF_URL, new_staff_payload(password="password"), format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "WEAK_PASSWORD"

    def test_manager_cannot_create_admin(self, authenticated_client, manager_staff_a):
        client = authenticated_client(manager_staff_a)

        response = client.post(STAFF_URL, new_staff_payload(role="ADMIN"), format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_can_create_admin(self, authenticated_client, admin_staff_a):
        client = authenticated_client(admin_staff_a)

        response = client.post(STAFF_URL, new_staff_payload(role="ADMIN"), format="json")

        assert response.status_code == status.HTTP_201_CREATED

    def test_nobody_creates_super_admin(self, authenticated_client, super_admin, restaurant_a):
        client = authenticated_client(super_admin)

        response = client.post(
            STAFF_URL,
            new_staff_payload(role="SUPER_ADMIN", restaurant_id=str(restaurant_a.id)),
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_super_admin_must_name_restaurant(self, authenticated_client, super_admin):
        client = authenticated_client(super_admin)

        response = client.post(STAFF_URL, new_staff_payload(), format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_waiter_cannot_manage_staff(self, authenticated_client, waiter_staff_a):
        client = authenticated_client(waiter_staff_a)

        response = client.post(STAFF_URL, new_staff_payload(), format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"]["type"] == "AUTHORIZATION_ERROR"


@pytest.mark.django_db
class TestStaffReadAndScope:
    def test_list_only_own_restaurant(
        self, authenticated_client, manager_staff_a, chef_staff_a, admin_staff_b
    ):
        client = authenticated_client(manager_staff_a)

        response = client.get(STAFF_URL)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        emails = {row["email"] for row in body["data"]}
        assert emails == {manager_staff_a.email, chef_staff_a.email}
        assert body["pagination"]["total"] == 2

    def test_list_filters(self, authenticated_client, manager_staff_a, chef_staff_a, waiter_staff_a):
        client = authenticated_client(manager_staff_a)

        assert [r["email"] for r in client.get(STAFF_URL, {"role": "CHEF"}).json()["data"]] == [
            chef_staff_a.email
        ]
        assert [r["email"] for r in client.get(STAFF_URL, {"search": "waiter"}).json()["data"]] == [
            waiter_staff_a.email
        ]

    def test_retrieve_other_restaurant_is_not_found(
        self, authenticated_client, manager_staff_a, admin_staff_b
    ):
        client = authenticated_client(manager_staff_a)

        response = client.get(detail_url(admin_staff_b))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_simple_list_active_only(self, authenticated_client, waiter_staff_a, chef_staff_a):
        Staff.all_objects.filter(pk=chef_staff_a.pk).update(is_active=False)
        client = authenticated_client(waiter_staff_a)

        response = client.get(f"{STAFF_URL}simple/")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"] == [
            {"id": str(waiter_staff_a.id), "name": waiter_staff_a.name, "role": "WAITER"}
        ]

    def test_statistics(
        self, authenticated_client, admin_staff_a, manager_staff_a, chef_staff_a, waiter_staff_a
    ):
        Staff.all_objects.filter(pk=waiter_staff_a.pk).update(is_active=False)
        client = authenticated_client(manager_staff_a)

        data = client.get(f"{STAFF_URL}statistics/").json()["data"]

        assert data["total"] == 4
        assert data["active"] == 3
        assert data["inactive"] == 1
        assert data["by_role"]["CHEF"] == 1
        assert data["by_role"]["CASHIER"] == 0


@pytest.mark.django_db
class TestStaffUpdate:
    def test_update_name(self, authenticated_client, manager_staff_a, waiter_staff_a):
        client = authenticated_client(manager_staff_a)

        response = client.patch(detail_url(waiter_staff_a), {"name": "Renamed"}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["name"] == "Renamed"
        log = AuditLog.objects.get(action=AuditLog.Action.STAFF_UPDATED)
        assert log.changes == {"old": {"name": "Waiter A"}, "new": {"name": "Renamed"}}

    def test_empty_update_rejected(self, authenticated_client, manager_staff_a, waiter_staff_a):
        client = authenticated_client(manager_staff_a)

        response = client.patch(detail_url(waiter_staff_a), {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_cannot_change_own_role(self, authenticated_client, admin_staff_a):
        client = authenticated_client(admin_staff_a)

        response = client.patch(detail_url(admin_staff_a), {"role": "MANAGER"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "CANNOT_CHANGE_OWN_ROLE"

    def test_email_taken(self, authenticated_client, manager_staff_a, waiter_staff_a, chef_staff_a):
        client = authenticated_client(manager_staff_a)

        response = client.patch(
            detail_url(waiter_staff_a), {"email": chef_staff_a.email}, format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"]["code"] == "EMAIL_EXISTS"

    def test_password_update_revokes_sessions(
        self, authenticated_client, manager_staff_a, waiter_staff_a
    ):
        authenticated_client(waiter_staff_a)
        client = authenticated_client(manager_staff_a)

        response = client.patch(
            detail_url(waiter_staff_a), {"password": "Another123!"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert not StaffSession.objects.filter(staff=waiter_staff_a, is_active=True).exists()
        waiter_staff_a.refresh_from_db()
        assert waiter_staff_a.check_password("Another123!")

    def test_manager_cannot_edit_admin(self, authenticated_client, manager_staff_a, admin_staff_a):
        client = authenticated_client(manager_staff_a)

        response = client.patch(detail_url(admin_staff_a), {"name": "Nope"}, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestStaffDelete:
    def test_admin_deactivates_staff(self, authenticated_client, admin_staff_a, waiter_staff_a):
        authenticated_client(waiter_staff_a)
        client = authenticated_client(admin_staff_a)

        response = client.delete(detail_url(waiter_staff_a))

        assert response.status_code == status.HTTP_200_OK
        waiter_staff_a.refresh_from_db()
        assert waiter_staff_a.is_active is False
        assert not StaffSession.objects.filter(staff=waiter_staff_a, is_active=True).exists()
        assert AuditLog.objects.filter(action=AuditLog.Action.STAFF_DEACTIVATED).exists()

    def test_cannot_delete_self(self, authenticated_client, admin_staff_a):
        client = authenticated_client(admin_staff_a)

        response = client.delete(detail_url(admin_staff_a))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "CANNOT_DELETE_SELF"

    def test_manager_cannot_delete(self, authenticated_client, manager_staff_a, waiter_staff_a):
        client = authenticated_client(manager_staff_a)

        response = client.delete(detail_url(waiter_staff_a))

        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestStaffBulkUpdate:
    def test_bulk_deactivate(self, authenticated_client, manager_staff_a, chef_staff_a, waiter_staff_a):
        client = authenticated_client(manager_staff_a)

        response = client.post(
            f"{STAFF_URL}bulk-update/",
            {"staff_ids": [str(chef_staff_a.id), str(waiter_staff_a.id)], "is_active": False},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["updated"] == 2
        assert not Staff.all_objects.filter(
            pk__in=[chef_staff_a.pk, waiter_staff_a.pk], is_active=True
        ).exists()

    def test_bulk_ignores_other_restaurants(self, authenticated_client, manager_staff_a, admin_staff_b):
        client = authenticated_client(manager_staff_a)

        response = client.post(
            f"{STAFF_URL}bulk-update/",
            {"staff_ids": [str(admin_staff_b.id)], "role": "CHEF"},
            format="json",
        )

        assert response.json()["data"]["updated"] == 0
        admin_staff_b.refresh_from_db()
        assert admin_staff_b.role == "ADMIN"

    def test_bulk_limit(self, authenticated_client, manager_staff_a):
        import uuid

        client = authenticated_client(manager_staff_a)

        response = client.post(
            f"{STAFF_URL}bulk-update/",
            {"staff_ids": [str(uuid.uuid4()) for _ in range(21)], "is_active": True},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
