import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)


def kitchen_group_name(restaurant_id):
    return f"kitchen_{restaurant_id}"


class KitchenNotificationService:
    """
    Pushes order and assistance events to the restaurant's kitchen group.

    Broadcasting is best effort: an unavailable channel layer or a failed
    send is logged and the calling operation carries on.
    """

    @staticmethod
    def _send(restaurant_id, message):
        channel_layer = get_channel_layer()
        if not channel_layer:
            logger.warning("Channel layer not available. Cannot send kitchen notification.")
            return False

        group_name = kitchen_group_name(restaurant_id)
        try:
            async_to_sync(channel_layer.group_send)(group_name, message)
        except Exception as e:
            logger.error(f"Failed to broadcast {message['type']} to {group_name}: {e}", exc_info=True)
            return False

        logger.debug(f"Broadcast {message['type']} to {group_name}")
        return True

    @staticmethod
    def _order_payload(order):
        return {
            "id": str(order.id),
            "order_number": order.order_number,
            "status": order.status,
            "table_id": str(order.table_id),
            "table_number": order.table.number,
            "total_amount": str(order.total_amount),
            "item_count": sum(item.quantity for item in order.items.all()),
            "notes": order.notes,
            "created_at": order.created_at.isoformat(),
        }

    @staticmethod
    def order_created(order):
        return KitchenNotificationService._send(
            order.restaurant_id,
            {"type": "order.created", "order": KitchenNotificationService._order_payload(order)},
        )

    @staticmethod
    def order_status_changed(order, previous_status):
        return KitchenNotificationService._send(
            order.restaurant_id,
            {
                "type": "order.status_changed",
                "order_id": str(order.id),
                "order_number": order.order_number,
                "previous_status": previous_status,
                "status": order.status,
                "estimated_time": order.estimated_time,
                "updated_at": order.updated_at.isoformat(),
            },
        )

    @staticmethod
    def assistance_requested(assistance):
        return KitchenNotificationService._send(
            assistance.restaurant_id,
            {
                "type": "assistance.requested",
                "assistance": {
                    "id": str(assistance.id),
                    "table_id": str(assistance.table_id),
                    "table_number": assistance.table.number,
                    "request_type": assistance.type,
                    "message": assistance.message,
                    "created_at": assistance.created_at.isoformat(),
                },
            },
        )
