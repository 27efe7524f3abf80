import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils.text import slugify

from core_backend.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from .managers import get_current_restaurant
from .models import Restaurant

logger = logging.getLogger(__name__)


class RestaurantService:
    """
    Business logic for restaurant management.
    """

    @staticmethod
    def _validate_contact(email, phone):
        if not email and not phone:
            raise ValidationError(
                "Either email or phone must be provided",
                details={"fields": {"email": ["Either email or phone must be provided"]}},
                code="MISSING_CONTACT",
            )

    @staticmethod
    def generate_unique_slug(name, exclude_id=None):
        base = slugify(name)[:120] or "restaurant"
        slug = base
        counter = 2
        queryset = Restaurant.objects.all()
        if exclude_id is not None:
            queryset = queryset.exclude(pk=exclude_id)
        while queryset.filter(slug=slug).exists():
            slug = f"{base}-{counter}"
            counter += 1
        return slug

    @staticmethod
    @transaction.atomic
    def create_restaurant(data):
        RestaurantService._validate_contact(data.get("email"), data.get("phone"))

        restaurant = Restaurant.objects.create(
            slug=RestaurantService.generate_unique_slug(data["name"]),
            **data,
        )
        logger.info(f"Restaurant created: {restaurant.id} ({restaurant.name})")
        return restaurant

    @staticmethod
    @transaction.atomic
    def update_restaurant(restaurant, data):
        email = data.get("email", restaurant.email)
        phone = data.get("phone", restaurant.phone)
        RestaurantService._validate_contact(email, phone)

        for field, value in data.items():
            setattr(restaurant, field, value)
        if "name" in data:
            restaurant.slug = RestaurantService.generate_unique_slug(
                data["name"], exclude_id=restaurant.pk
            )
        restaurant.save()

        logger.info(f"Restaurant updated: {restaurant.id} fields={sorted(data)}")
        return restaurant

    @staticmethod
    def get_restaurant_for_staff(restaurant_id, staff):
        """
        Load a restaurant the given staff member is allowed to see.
        """
        if not staff.is_super_admin and str(staff.restaurant_id) != str(restaurant_id):
            logger.warning(
                f"Staff {staff.id} denied access to restaurant {restaurant_id}"
            )
            raise AuthorizationError("You do not have access to this restaurant")

        try:
            return Restaurant.objects.get(pk=restaurant_id)
        except (Restaurant.DoesNotExist, ValueError, DjangoValidationError):
            raise ResourceNotFoundError("Restaurant", restaurant_id)

    @staticmethod
    def list_restaurants(search=None):
        queryset = Restaurant.objects.all().order_by("name")
        if search:
            queryset = queryset.filter(name__icontains=search.strip())
        return queryset

    @staticmethod
    def require_current_restaurant():
        """
        The restaurant the current request acts on. SUPER_ADMIN requests have
        none unless they select one with ``X-Restaurant-ID``.
        """
        restaurant = get_current_restaurant()
        if restaurant is None:
            raise ValidationError(
                "No restaurant selected for this request",
                code="RESTAURANT_REQUIRED",
            )
        return restaurant

    @staticmethod
    def resolve_selected_restaurant(restaurant_id):
        if not restaurant_id:
            return None
        try:
            return Restaurant.objects.filter(pk=restaurant_id).first()
        except (ValueError, DjangoValidationError):
            return None
