"""
Base classes for user registries and room stores.

Concrete implementations live in ``memory`` (process-local dictionaries)
and ``core`` (Django ORM).
"""

import asyncio
from collections import defaultdict


class BaseUserRegistry:
    """
    Creates and looks up user identities and their delivery tokens.
    """

    async def register(self, display_name, delivery_token=""):
        """
        Create a new user with a fresh id.

        Registrations are never merged, two users may share a display name.

        Returns:
            User: the newly created user
        """
        raise NotImplementedError("Subclasses must implement register")

    async def update_token(self, user_id, token):
        """
        Replace the delivery token of a user.

        Raises:
            UserNotFound: If user_id is unknown
        """
        raise NotImplementedError("Subclasses must implement update_token")

    async def lookup(self, user_id):
        """
        Raises:
            UserNotFound: If user_id is unknown
        """
        raise NotImplementedError("Subclasses must implement lookup")

    async def exists(self, user_id):
        raise NotImplementedError("Subclasses must implement exists")

    async def flush(self):
        """Remove every user."""
        raise NotImplementedError("Subclasses must implement flush")


class BaseRoomStore:
    """
    Base class for room stores.

    Owns room entities and their member sets. Mutations and reads of a
    single room are serialized by a lock scoped to that room, so that a
    ``members_of`` call never observes a partial ``join`` or ``leave``
    while different rooms proceed independently.
    """

    def __init__(self, registry):
        self.registry = registry
        self._room_locks = defaultdict(asyncio.Lock)  # Lock per room id

    def room_lock(self, room_id):
        return self._room_locks[room_id]

    async def create_room(self, name):
        """
        Create a room. Room creation is an administrative operation.

        Returns:
            Room: the new room with no members
        """
        raise NotImplementedError("Subclasses must implement create_room")

    async def list_rooms(self):
        """
        Returns:
            list[Room]: every room in creation order, with live members
        """
        raise NotImplementedError("Subclasses must implement list_rooms")

    async def get_room(self, room_id):
        raise NotImplementedError("Subclasses must implement get_room")

    async def join(self, room_id, user_id):
        """
        Add user_id to the room. Joining twice is a no-op.

        Raises:
            RoomNotFound: If room_id is unknown
            UserNotFound: If user_id is unknown
        """
        raise NotImplementedError("Subclasses must implement join")

    async def leave(self, room_id, user_id):
        """
        Remove user_id from the room. Leaving a room the user is not in is a no-op.

        Raises:
            RoomNotFound: If room_id is unknown
        """
        raise NotImplementedError("Subclasses must implement leave")

    async def members_of(self, room_id):
        """
        Returns:
            frozenset: snapshot of the member ids

        Raises:
            RoomNotFound: If room_id is unknown
        """
        raise NotImplementedError("Subclasses must implement members_of")

    async def is_member(self, room_id, user_id):
        return user_id in await self.members_of(room_id)

    async def flush(self):
        """Remove every room and membership."""
        raise NotImplementedError("Subclasses must implement flush")

    async def _require_user(self, user_id):
        # Raises UserNotFound for unknown ids
        await self.registry.lookup(user_id)
