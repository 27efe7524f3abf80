from threading import local

from django.db import models

# Thread-local storage for the current restaurant
_thread_locals = local()


def set_current_restaurant(restaurant):
    """
    Set the current restaurant for this thread.

    Args:
        restaurant: Restaurant instance or None to clear

    Called by RestaurantContextMiddleware, StaffJWTAuthentication, the
    customer views (from the resolved table) and background jobs.
    """
    _thread_locals.restaurant = restaurant


def get_current_restaurant():
    return getattr(_thread_locals, 'restaurant', None)


def get_current_restaurant_id():
    restaurant = get_current_restaurant()
    return getattr(restaurant, 'pk', None) if restaurant is not None else None


class RestaurantManager(models.Manager):
    """
    Filters querysets by the current restaurant.

    FAILS CLOSED: returns an empty queryset if no restaurant context is set.

    Models whose restaurant is reached through a relation pass the lookup
    path, e.g. ``RestaurantManager('order__restaurant')``.

    Usage:
        class Table(models.Model):
            restaurant = models.ForeignKey('restaurants.Restaurant', on_delete=models.CASCADE)

            objects = RestaurantManager()   # restaurant-filtered
            all_objects = models.Manager()  # unfiltered, for super admins and jobs
    """

    def __init__(self, restaurant_field='restaurant'):
        super().__init__()
        self.restaurant_field = restaurant_field

    def _base_queryset(self):
        return super().get_queryset()

    def _scope(self, qs):
        restaurant_id = get_current_restaurant_id()
        if restaurant_id:
            return qs.filter(**{f'{self.restaurant_field}_id': restaurant_id})
        return qs.none()

    def get_queryset(self):
        return self._scope(self._base_queryset())


class RestaurantSoftDeleteManager(RestaurantManager):
    """
    Combined manager for models with BOTH restaurant scoping AND soft delete.

    The default queryset is restaurant-filtered and active only.
    """

    def _base_queryset(self):
        from core_backend.utils.archiving import SoftDeleteQuerySet

        return SoftDeleteQuerySet(self.model, using=self._db)

    def get_queryset(self):
        return self._scope(self._base_queryset()).active()

    def active(self):
        return self.get_queryset()

    def with_archived(self):
        return self._scope(self._base_queryset())

    def archived_only(self):
        return self._scope(self._base_queryset()).archived()
