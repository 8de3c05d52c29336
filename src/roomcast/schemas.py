from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import MalformedInput


class RegisterUserRequest(BaseModel):
    name: str = Field(min_length=1)
    token: Optional[str] = ""


class RegisterUserResponse(BaseModel):
    id: str
    name: str


class UpdateTokenRequest(BaseModel):
    token: str


class PostMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: str
    room: str = Field(alias="roomId")
    content: str


class MessageResponse(BaseModel):
    message_id: str
    sender: str
    room: str
    content: str
    sent_at: str


class RoomResponse(BaseModel):
    id: str
    name: str
    users: list[str]


def parse(model, payload):
    """
    Validate a dict, JSON string or JSON bytes into ``model``.

    Raises:
        MalformedInput: If the payload does not match the model
    """
    try:
        if isinstance(payload, (str, bytes, bytearray)):
            return model.model_validate_json(payload)
        return model.model_validate(payload)
    except ValidationError as e:
        raise MalformedInput(str(e)) from e
