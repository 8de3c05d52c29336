"""
Value types shared by the stores, the router and the service.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class User:
    id: str
    display_name: str
    delivery_token: str = ""


@dataclass(frozen=True)
class Room:
    id: str
    name: str
    members: frozenset = frozenset()

    @property
    def member_count(self) -> int:
        return len(self.members)


@dataclass(frozen=True)
class Message:
    sender_id: str
    room_id: str
    content: str
    created_at: float = field(default_factory=time.monotonic)
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=new_id)

    def as_payload(self) -> dict:
        """The fields a receiving device gets."""
        return {
            "message_id": self.id,
            "sender": self.sender_id,
            "room": self.room_id,
            "content": self.content,
            "sent_at": self.sent_at.isoformat(),
        }


@dataclass
class DeliveryTask:
    target_user_id: str
    message: Message
    attempt: int = 0


@dataclass
class DeliveryResult:
    task: DeliveryTask
    delivered: bool
    error: Exception | None = None
