import json
import logging

from channels.generic.websocket import AsyncWebsocketConsumer

from .services.notification_service import kitchen_group_name

logger = logging.getLogger(__name__)


class KitchenConsumer(AsyncWebsocketConsumer):
    """
    Realtime feed for a restaurant's kitchen and floor staff.

    The restaurant comes from the authenticated staff member; SUPER_ADMIN
    connections pick one with ``?restaurant_id=``.
    """

    async def connect(self):
        user = self.scope.get("user")
        if user is None or not user.is_authenticated:
            logger.warning("Kitchen WebSocket rejected: unauthenticated connection")
            await self.close(code=4001)
            return

        restaurant_id = user.restaurant_id
        if restaurant_id is None and user.is_super_admin:
            query = self.scope.get("query_string", b"").decode()
            for part in query.split("&"):
                if part.startswith("restaurant_id="):
                    restaurant_id = part.split("=", 1)[1] or None

        if restaurant_id is None:
            logger.warning(f"Kitchen WebSocket rejected: staff {user.pk} has no restaurant")
            await self.close(code=4003)
            return

        self.restaurant_id = str(restaurant_id)
        self.group_name = kitchen_group_name(self.restaurant_id)

        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send_json({"type": "connection_established", "restaurant_id": self.restaurant_id})
        logger.info(f"Kitchen WebSocket connected: staff={user.pk}, restaurant={self.restaurant_id}")

    async def disconnect(self, close_code):
        group_name = getattr(self, "group_name", None)
        if group_name:
            await self.channel_layer.group_discard(group_name, self.channel_name)
            logger.info(f"Kitchen WebSocket disconnected: restaurant={self.restaurant_id}, code={close_code}")

    async def receive(self, text_data=None, bytes_data=None):
        try:
            data = json.loads(text_data or "")
        except json.JSONDecodeError:
            await self.send_json({"type": "error", "message": "Invalid JSON format"})
            return

        if data.get("type") == "ping":
            await self.send_json({"type": "pong"})
        else:
            await self.send_json({"type": "error", "message": f"Unknown message type: {data.get('type')}"})

    async def send_json(self, payload):
        await self.send(text_data=json.dumps(payload))

    # Group event handlers

    async def order_created(self, event):
        await self.send_json({"type": "order_created", "order": event["order"]})

    async def order_status_changed(self, event):
        payload = {key: value for key, value in event.items() if key != "type"}
        await self.send_json({"type": "order_status_changed", **payload})

    async def assistance_requested(self, event):
        await self.send_json({"type": "assistance_requested", "assistance": event["assistance"]})
