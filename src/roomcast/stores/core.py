"""
User registry and room store backed by the Django ORM.

Membership rows carry a unique ``(room, user_uid)`` constraint, so a join is a
single ``get_or_create`` and stays idempotent even when several processes
share the database.
"""

import logging

from django.conf import settings

from ..entities import Room, User, new_id
from ..exceptions import InvalidStoreError, RoomNotFound, UserNotFound
from ..models import ChatUser, Membership
from ..models import Room as RoomRow
from . import BaseRoomStore, BaseUserRegistry

logger = logging.getLogger(__name__)


def _check_database(database):
    try:
        return settings.DATABASES[database]
    except KeyError:
        raise InvalidStoreError(f"{database} is an invalid database alias")


class DjangoUserRegistry(BaseUserRegistry):
    def __init__(self, *, database="default", **kwargs):
        self.database = database
        self.db_settings = _check_database(database)

    @property
    def users(self):
        return ChatUser.objects.using(self.database)

    async def register(self, display_name, delivery_token=""):
        row = await self.users.acreate(
            uid=new_id(),
            display_name=display_name,
            delivery_token=delivery_token or "",
        )
        logger.info("Registered user %s (%s)", row.uid, display_name)
        return self._to_user(row)

    async def update_token(self, user_id, token):
        updated = await self.users.filter(uid=user_id).aupdate(
            delivery_token=token or ""
        )
        if not updated:
            raise UserNotFound(user_id)
        logger.debug("Updated delivery token of user %s", user_id)

    async def lookup(self, user_id):
        row = await self.users.filter(uid=user_id).afirst()
        if row is None:
            raise UserNotFound(user_id)
        return self._to_user(row)

    async def exists(self, user_id):
        return await self.users.filter(uid=user_id).aexists()

    async def flush(self):
        await self.users.all().adelete()

    @staticmethod
    def _to_user(row):
        return User(
            id=row.uid,
            display_name=row.display_name,
            delivery_token=row.delivery_token,
        )


class DjangoRoomStore(BaseRoomStore):
    def __init__(self, registry, *, database="default", **kwargs):
        super().__init__(registry)
        self.database = database
        self.db_settings = _check_database(database)

    @property
    def rooms(self):
        return RoomRow.objects.using(self.database)

    @property
    def memberships(self):
        return Membership.objects.using(self.database)

    async def create_room(self, name):
        row = await self.rooms.acreate(uid=new_id(), name=name)
        logger.info("Created room %s (%s)", row.uid, name)
        return Room(id=row.uid, name=row.name)

    async def list_rooms(self):
        # Primary keys grow with insertion, so they give creation order
        rows = [row async for row in self.rooms.order_by("id")]
        members = {row.uid: set() for row in rows}
        async for room_uid, user_uid in self.memberships.values_list(
            "room__uid", "user_uid"
        ):
            if room_uid in members:
                members[room_uid].add(user_uid)
        return [
            Room(id=row.uid, name=row.name, members=frozenset(members[row.uid]))
            for row in rows
        ]

    async def get_room(self, room_id):
        # Check first so unknown ids never get a lock entry
        row = await self._get_room_row(room_id)
        async with self.room_lock(room_id):
            members = await self._member_ids(row)
        return Room(id=row.uid, name=row.name, members=members)

    async def join(self, room_id, user_id):
        room = await self._get_room_row(room_id)
        await self._require_user(user_id)

        async with self.room_lock(room_id):
            _, created = await self.memberships.aget_or_create(
                room=room, user_uid=user_id
            )
        if created:
            logger.debug("User %s joined room %s", user_id, room_id)
        else:
            logger.debug("User %s already in room %s", user_id, room_id)

    async def leave(self, room_id, user_id):
        room = await self._get_room_row(room_id)
        async with self.room_lock(room_id):
            await self.memberships.filter(room=room, user_uid=user_id).adelete()
        logger.debug("User %s left room %s", user_id, room_id)

    async def members_of(self, room_id):
        room = await self._get_room_row(room_id)
        async with self.room_lock(room_id):
            return await self._member_ids(room)

    async def flush(self):
        await self.memberships.all().adelete()
        await self.rooms.all().adelete()
        self._room_locks.clear()

    async def _get_room_row(self, room_id):
        row = await self.rooms.filter(uid=room_id).afirst()
        if row is None:
            raise RoomNotFound(room_id)
        return row

    async def _member_ids(self, room):
        return frozenset(
            [
                uid
                async for uid in self.memberships.filter(room=room).values_list(
                    "user_uid", flat=True
                )
            ]
        )
