import logging

from channels.generic.websocket import AsyncJsonWebsocketConsumer

from .dispatchers import user_group_name

logger = logging.getLogger(__name__)


class DeliveryConsumer(AsyncJsonWebsocketConsumer):
    """
    Websocket endpoint a client keeps open to receive its deliveries.

    Every socket joins the group of its user, so a user connected from
    several devices gets each delivery on all of them.
    """

    async def connect(self):
        self.user_id = self.scope["url_route"]["kwargs"]["user_id"]
        self.group_name = user_group_name(self.user_id)

        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        logger.debug("User %s connected on %s", self.user_id, self.channel_name)

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def chat_message(self, event):
        payload = {key: value for key, value in event.items() if key != "type"}
        await self.send_json(payload)
