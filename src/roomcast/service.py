"""
Chat orchestration: registration, room membership and message posting.
"""

import logging

from .entities import Message
from .exceptions import NotMember
from .router import DeliveryRouter

logger = logging.getLogger(__name__)


class ChatService:
    """
    Entry point used by the transport layer.

    Posting never waits for delivery: a message is accepted once it has been
    validated and its fan-out scheduled. Individual delivery failures are
    recorded on ``router`` and never reach the caller.
    """

    def __init__(self, users, rooms, dispatcher, **router_options):
        self.users = users
        self.rooms = rooms
        self.dispatcher = dispatcher
        self.router = DeliveryRouter(rooms, dispatcher, **router_options)

    async def register(self, display_name, delivery_token=""):
        return await self.users.register(display_name, delivery_token)

    async def update_token(self, user_id, token):
        await self.users.update_token(user_id, token)

    async def lookup(self, user_id):
        return await self.users.lookup(user_id)

    async def create_room(self, name):
        return await self.rooms.create_room(name)

    async def list_rooms(self):
        return await self.rooms.list_rooms()

    async def join_room(self, user_id, room_id):
        await self.rooms.join(room_id, user_id)

    async def leave_room(self, user_id, room_id):
        await self.rooms.leave(room_id, user_id)
        # No stale redelivery to a departed member
        self.router.discard_pending(room_id, user_id)

    async def post_message(self, sender_id, room_id, content):
        """
        Accept a message and fan it out to the other members of the room.

        Raises:
            UserNotFound: If the sender is unknown
            RoomNotFound: If the room is unknown
            NotMember: If the sender does not belong to the room
        """
        await self.users.lookup(sender_id)

        # One snapshot serves both the membership check and the fan-out
        members = await self.rooms.members_of(room_id)
        if sender_id not in members:
            raise NotMember(sender_id, room_id)

        message = Message(sender_id=sender_id, room_id=room_id, content=content)
        logger.debug("User %s posted %s in room %s", sender_id, message.id, room_id)
        await self.router.fan_out(message, members)
        return message

    def session(self, user_id, room_id=None):
        return ChatSession(self, user_id, room_id)

    async def close(self):
        await self.router.close()
        await self.dispatcher.close()


class ChatSession:
    """
    Per-connection context holding the room a client is currently talking in.
    """

    def __init__(self, service, user_id, room_id=None):
        self.service = service
        self.user_id = user_id
        self.room_id = room_id

    async def join(self, room_id):
        await self.service.join_room(self.user_id, room_id)
        self.room_id = room_id

    async def leave(self):
        if self.room_id is None:
            return
        await self.service.leave_room(self.user_id, self.room_id)
        self.room_id = None

    async def post(self, content):
        if self.room_id is None:
            raise NotMember(self.user_id, None)
        return await self.service.post_message(self.user_id, self.room_id, content)
