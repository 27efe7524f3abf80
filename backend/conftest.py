"""
Root conftest.py for all backend tests.

This file makes fixtures available to all test files across all apps.
"""
import pytest
from django.core.cache import cache

from restaurants.managers import set_current_restaurant

TEST_PASSWORD = "TestPass123!"


# ============================================================================
# AUTO-USE FIXTURES (Run automatically for every test)
# ============================================================================

@pytest.fixture(autouse=True)
def test_settings(settings):
    """
    Settings shared by every test: no CSRF header guard, no IP ratelimits
    and a fast password hasher. Tests that need a guard turn it back on.
    """
    settings.ENABLE_CSRF_HEADER_CHECK = False
    settings.RATELIMIT_ENABLE = False
    settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
    settings.CELERY_TASK_ALWAYS_EAGER = True
    return settings


@pytest.fixture(autouse=True)
def reset_restaurant_context():
    """
    Reset restaurant context after each test.

    Leaked context would let restaurant-scoped queries pass when they
    should fail closed.
    """
    yield
    set_current_restaurant(None)


@pytest.fixture(autouse=True)
def clear_cache_after_test():
    """Clear cache after each test so rate limits and customer sessions don't leak."""
    yield
    cache.clear()


# ============================================================================
# API CLIENT FIXTURES
# ============================================================================

@pytest.fixture
def api_client():
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def authenticated_client():
    """
    Factory returning an API client logged in as ``staff``.

    A real StaffSession is created so the token passes session validation.

    Usage:
        def test_protected_endpoint(authenticated_client, admin_staff_a):
            client = authenticated_client(admin_staff_a)
            response = client.get('/api/orders/')
    """
    from rest_framework.test import APIClient
    from staff.sessions import StaffSessionService
    from staff.tokens import issue_token_pair

    def _make(staff):
        session = StaffSessionService.create_session(staff, user_agent="pytest")
        tokens, refresh_hash = issue_token_pair(staff, session)
        StaffSessionService.set_refresh_hash(session, refresh_hash)

        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
        client.staff = staff
        client.session_id = session.session_id
        client.tokens = tokens
        return client

    return _make


# ============================================================================
# RESTAURANT FIXTURES
# ============================================================================

@pytest.fixture
def restaurant_a(db):
    from restaurants.models import Restaurant
    return Restaurant.objects.create(
        name="Restaurant A",
        slug="restaurant-a",
        email="a@restaurant.test",
        phone="+31 20 123 4567",
    )


@pytest.fixture
def restaurant_b(db):
    from restaurants.models import Restaurant
    return Restaurant.objects.create(
        name="Restaurant B",
        slug="restaurant-b",
        email="b@restaurant.test",
    )


# ============================================================================
# STAFF FIXTURES
# ============================================================================

def _create_staff(restaurant, role, email, name):
    from staff.models import Staff
    return Staff.objects.create_user(
        email=email,
        password=TEST_PASSWORD,
        name=name,
        role=role,
        restaurant=restaurant,
    )


@pytest.fixture
def admin_staff_a(restaurant_a):
    return _create_staff(restaurant_a, "ADMIN", "admin@a.test", "Admin A")


@pytest.fixture
def manager_staff_a(restaurant_a):
    return _create_staff(restaurant_a, "MANAGER", "manager@a.test", "Manager A")


@pytest.fixture
def chef_staff_a(restaurant_a):
    return _create_staff(restaurant_a, "CHEF", "chef@a.test", "Chef A")


@pytest.fixture
def waiter_staff_a(restaurant_a):
    return _create_staff(restaurant_a, "WAITER", "waiter@a.test", "Waiter A")


@pytest.fixture
def cashier_staff_a(restaurant_a):
    return _create_staff(restaurant_a, "CASHIER", "cashier@a.test", "Cashier A")


@pytest.fixture
def admin_staff_b(restaurant_b):
    return _create_staff(restaurant_b, "ADMIN", "admin@b.test", "Admin B")


@pytest.fixture
def super_admin(db):
    from staff.models import Staff
    return Staff.objects.create_superuser(email="root@tabletech.test", password=TEST_PASSWORD)


# ============================================================================
# TABLE / MENU FIXTURES
# ============================================================================

@pytest.fixture
def table_a(restaurant_a):
    from tables.models import Table
    from tables.qr import generate_qr_code_url
    return Table.objects.create(
        restaurant=restaurant_a,
        number=1,
        code="ABC123",
        capacity=4,
        qr_code_url=generate_qr_code_url("ABC123"),
    )


@pytest.fixture
def category_a(restaurant_a):
    from menu.models import MenuCategory
    return MenuCategory.objects.create(restaurant=restaurant_a, name="Mains", display_order=1)


@pytest.fixture
def menu_item_a(restaurant_a, category_a):
    from decimal import Decimal
    from menu.models import MenuItem
    return MenuItem.objects.create(
        restaurant=restaurant_a,
        category=category_a,
        name="Burger",
        price=Decimal("12.50"),
        preparation_time=15,
    )
