"""
Process-local user registry and room store.
"""

import asyncio
import logging
from dataclasses import replace

from ..entities import Room, User, new_id
from ..exceptions import RoomNotFound, UserNotFound
from . import BaseRoomStore, BaseUserRegistry

logger = logging.getLogger(__name__)


class InMemoryUserRegistry(BaseUserRegistry):
    def __init__(self, **kwargs):
        self._users = {}  # Dict[user_id, User]
        self._lock = asyncio.Lock()

    async def register(self, display_name, delivery_token=""):
        async with self._lock:
            user_id = new_id()
            while user_id in self._users:
                user_id = new_id()
            user = User(
                id=user_id,
                display_name=display_name,
                delivery_token=delivery_token or "",
            )
            self._users[user_id] = user
        logger.info("Registered user %s (%s)", user_id, display_name)
        return replace(user)

    async def update_token(self, user_id, token):
        async with self._lock:
            try:
                self._users[user_id].delivery_token = token or ""
            except KeyError:
                raise UserNotFound(user_id)
        logger.debug("Updated delivery token of user %s", user_id)

    async def lookup(self, user_id):
        try:
            # Copy so callers cannot mutate the stored user
            return replace(self._users[user_id])
        except KeyError:
            raise UserNotFound(user_id)

    async def exists(self, user_id):
        return user_id in self._users

    async def flush(self):
        async with self._lock:
            self._users.clear()


class InMemoryRoomStore(BaseRoomStore):
    def __init__(self, registry, **kwargs):
        super().__init__(registry)
        # Dicts keep insertion order, which is the listing order
        self._names = {}  # Dict[room_id, name]
        self._members = {}  # Dict[room_id, set[user_id]]

    async def create_room(self, name):
        room_id = new_id()
        self._names[room_id] = name
        self._members[room_id] = set()
        logger.info("Created room %s (%s)", room_id, name)
        return Room(id=room_id, name=name)

    async def list_rooms(self):
        rooms = []
        for room_id in list(self._names):
            async with self.room_lock(room_id):
                rooms.append(self._snapshot(room_id))
        return rooms

    async def get_room(self, room_id):
        self._require_room(room_id)
        async with self.room_lock(room_id):
            return self._snapshot(room_id)

    async def join(self, room_id, user_id):
        self._require_room(room_id)
        await self._require_user(user_id)
        async with self.room_lock(room_id):
            members = self._members[room_id]
            if user_id in members:
                logger.debug("User %s already in room %s", user_id, room_id)
                return
            members.add(user_id)
        logger.debug("User %s joined room %s", user_id, room_id)

    async def leave(self, room_id, user_id):
        self._require_room(room_id)
        async with self.room_lock(room_id):
            self._members[room_id].discard(user_id)
        logger.debug("User %s left room %s", user_id, room_id)

    async def members_of(self, room_id):
        self._require_room(room_id)
        async with self.room_lock(room_id):
            return frozenset(self._members[room_id])

    async def flush(self):
        self._names.clear()
        self._members.clear()
        self._room_locks.clear()

    def _require_room(self, room_id):
        if room_id not in self._names:
            raise RoomNotFound(room_id)

    def _snapshot(self, room_id):
        return Room(
            id=room_id,
            name=self._names[room_id],
            members=frozenset(self._members[room_id]),
        )
