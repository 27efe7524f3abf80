from decimal import Decimal, ROUND_HALF_UP
import logging

from core_backend.exceptions import ValidationError
from menu.models import MenuItem
from menu.modifier_services import ModifierSelectionService
from orders.exceptions import MenuItemNotAvailableError, OrderValueError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def quantize(amount):
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


class OrderCalculationService:
    """Item limits, server-side pricing and tax-inclusive totals."""

    STAFF_MAX_LINES = 50
    CUSTOMER_MAX_LINES = 20
    MAX_QUANTITY_PER_LINE = 10
    MAX_QUANTITY_PER_ITEM = 10
    MAX_MODIFIERS_PER_LINE = 20
    MIN_ORDER_TOTAL = Decimal("0.01")
    MAX_ORDER_TOTAL = Decimal("10000.00")

    @staticmethod
    def _line_signature(item):
        return (str(item["menu_item"]), tuple(sorted(str(pk) for pk in item.get("modifiers") or [])))

    @staticmethod
    def validate_item_limits(items, max_lines):
        """
        Check line count, per-line and per-item quantities, modifier counts
        and duplicate lines before anything touches the database.
        """
        if not items:
            raise ValidationError("Order must contain at least one item", code="EMPTY_ORDER")
        if len(items) > max_lines:
            raise ValidationError(
                f"Order cannot contain more than {max_lines} items",
                details={"max_items": max_lines},
                code="TOO_MANY_ITEMS",
            )

        totals_per_item = {}
        signatures = set()
        for item in items:
            quantity = item.get("quantity", 1)
            if not 1 <= quantity <= OrderCalculationService.MAX_QUANTITY_PER_LINE:
                raise ValidationError(
                    f"Quantity must be between 1 and {OrderCalculationService.MAX_QUANTITY_PER_LINE}",
                    code="INVALID_QUANTITY",
                )
            if len(item.get("modifiers") or []) > OrderCalculationService.MAX_MODIFIERS_PER_LINE:
                raise ValidationError(
                    f"An item cannot have more than {OrderCalculationService.MAX_MODIFIERS_PER_LINE} modifiers",
                    code="TOO_MANY_MODIFIERS",
                )

            signature = OrderCalculationService._line_signature(item)
            if signature in signatures:
                raise ValidationError(
                    "Duplicate items with the same modifiers. Increase the quantity instead.",
                    details={"menu_item": signature[0]},
                    code="DUPLICATE_ITEMS",
                )
            signatures.add(signature)

            menu_item_id = signature[0]
            totals_per_item[menu_item_id] = totals_per_item.get(menu_item_id, 0) + quantity
            if totals_per_item[menu_item_id] > OrderCalculationService.MAX_QUANTITY_PER_ITEM:
                raise ValidationError(
                    f"Cannot order more than {OrderCalculationService.MAX_QUANTITY_PER_ITEM} of the same item",
                    details={"menu_item": menu_item_id},
                    code="QUANTITY_LIMIT_EXCEEDED",
                )

    @staticmethod
    def load_menu_items(restaurant, items):
        """
        Fetch the ordered menu items from the restaurant's available menu.
        Items from another restaurant are treated as unavailable.
        """
        requested = {str(item["menu_item"]) for item in items}
        menu_items = {
            str(menu_item.pk): menu_item
            for menu_item in MenuItem.all_objects.select_related("category").filter(
                restaurant=restaurant,
                pk__in=requested,
                is_active=True,
                is_available=True,
                category__is_active=True,
            )
        }
        missing = requested - set(menu_items)
        if missing:
            raise MenuItemNotAvailableError(
                "One or more menu items are not available",
                details={"menu_item_ids": sorted(missing)},
            )
        return menu_items

    @staticmethod
    def price_items(restaurant, items):
        """
        Resolve every line against the menu. Returns a list of dicts with
        ``menu_item``, ``quantity``, ``notes``, ``price`` (base unit price),
        ``modifiers`` (priced selections) and ``line_total``.
        """
        menu_items = OrderCalculationService.load_menu_items(restaurant, items)

        lines = []
        for item in items:
            menu_item = menu_items[str(item["menu_item"])]
            selections = ModifierSelectionService.validate_selection(
                menu_item, item.get("modifiers") or []
            )
            modifier_total = sum((selection["price"] for selection in selections), Decimal("0.00"))
            quantity = item.get("quantity", 1)
            lines.append(
                {
                    "menu_item": menu_item,
                    "quantity": quantity,
                    "notes": item.get("notes", "") or "",
                    "price": menu_item.price,
                    "modifiers": selections,
                    "line_total": quantize((menu_item.price + modifier_total) * quantity),
                }
            )
        return lines

    @staticmethod
    def calculate_tax(subtotal, tax_rate):
        """Tax contained in a tax-inclusive ``subtotal``."""
        subtotal = Decimal(subtotal)
        rate = Decimal(tax_rate) / Decimal("100")
        return quantize(subtotal - subtotal / (Decimal("1") + rate))

    @staticmethod
    def calculate_totals(restaurant, lines):
        subtotal = quantize(sum((line["line_total"] for line in lines), Decimal("0.00")))
        service_fee = Decimal("0.00")
        total = subtotal + service_fee

        if not OrderCalculationService.MIN_ORDER_TOTAL <= total <= OrderCalculationService.MAX_ORDER_TOTAL:
            raise OrderValueError(
                f"Order total must be between {OrderCalculationService.MIN_ORDER_TOTAL} "
                f"and {OrderCalculationService.MAX_ORDER_TOTAL}",
                details={"total": str(total)},
            )

        return {
            "subtotal": subtotal,
            "tax_amount": OrderCalculationService.calculate_tax(subtotal, restaurant.tax_rate),
            "service_fee": service_fee,
            "total_amount": total,
        }
