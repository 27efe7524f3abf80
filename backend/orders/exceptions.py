"""
Order-specific business errors.

All of them are 422 responses except DuplicateOrderError, which is a 429 so
clients back off before retrying.
"""

from core_backend.exceptions import BusinessLogicError, RateLimitError


class MenuItemNotAvailableError(BusinessLogicError):
    default_detail = "Menu item is not available."
    default_code = "MENU_ITEM_UNAVAILABLE"


class ModifierNotAvailableError(BusinessLogicError):
    default_detail = "Modifier is not available."
    default_code = "MODIFIER_UNAVAILABLE"


class TableUnavailableError(BusinessLogicError):
    default_detail = "Table is not available for orders."
    default_code = "TABLE_UNAVAILABLE"


class RestaurantClosedError(BusinessLogicError):
    default_detail = "Restaurant is not accepting orders."
    default_code = "RESTAURANT_CLOSED"


class OrderNotModifiableError(BusinessLogicError):
    default_detail = "Order can no longer be modified."
    default_code = "ORDER_NOT_MODIFIABLE"


class InvalidStatusTransitionError(BusinessLogicError):
    default_detail = "Invalid order status transition."
    default_code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current_status, new_status, allowed=()):
        super().__init__(
            message=f"Cannot change order status from {current_status} to {new_status}",
            details={
                "current_status": current_status,
                "requested_status": new_status,
                "allowed": list(allowed),
            },
        )


class OrderValueError(BusinessLogicError):
    default_detail = "Order total is outside the allowed range."
    default_code = "INVALID_ORDER_VALUE"


class DuplicateOrderError(RateLimitError):
    default_code = "DUPLICATE_ORDER"

    def __init__(self, retry_after):
        super().__init__(
            message=f"Please wait {retry_after} seconds before placing another order",
            retry_after=retry_after,
        )
