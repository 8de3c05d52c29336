"""
Payload level facade over ChatService.

Takes loosely typed payloads (dicts or JSON text) as an HTTP layer would
receive them and returns plain dicts ready to be encoded.
"""

from .schemas import (
    MessageResponse,
    PostMessageRequest,
    RegisterUserRequest,
    RegisterUserResponse,
    RoomResponse,
    UpdateTokenRequest,
    parse,
)


class ChatAPI:
    def __init__(self, service):
        self.service = service

    async def list_rooms(self) -> list[dict]:
        rooms = await self.service.list_rooms()
        return [
            RoomResponse(id=room.id, name=room.name, users=sorted(room.members)).model_dump()
            for room in rooms
        ]

    async def register(self, payload) -> dict:
        request = parse(RegisterUserRequest, payload)
        user = await self.service.register(request.name, request.token or "")
        return RegisterUserResponse(id=user.id, name=user.display_name).model_dump()

    async def update_token(self, user_id: str, payload) -> None:
        request = parse(UpdateTokenRequest, payload)
        await self.service.update_token(user_id, request.token)

    async def join_room(self, user_id: str, room_id: str) -> None:
        await self.service.join_room(user_id, room_id)

    async def leave_room(self, user_id: str, room_id: str) -> None:
        await self.service.leave_room(user_id, room_id)

    async def post_message(self, payload) -> dict:
        request = parse(PostMessageRequest, payload)
        message = await self.service.post_message(
            request.sender, request.room, request.content
        )
        return MessageResponse(**message.as_payload()).model_dump()
