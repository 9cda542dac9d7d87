import json
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator


class MalformedMessageError(ValueError):
    """An inbound frame could not be parsed into a client message."""


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


# Client -> server

class CreateRoom(WireModel):
    type: Literal["CREATE_ROOM"]
    initial_state: Any = Field(default=None, alias="initialState")


class JoinRoom(WireModel):
    type: Literal["JOIN_ROOM"]
    code: str

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, value: Any) -> str:
        # Any value is a lookup key; a non-string simply never matches a room
        if value is None:
            return ""
        return str(value).strip().upper()


class UpdateState(WireModel):
    type: Literal["UPDATE_STATE"]
    state: Any = None


class SendDraftEvent(WireModel):
    type: Literal["DRAFT_EVENT"]
    event: str
    data: Any = None


class GetViewerCount(WireModel):
    type: Literal["GET_VIEWER_COUNT"]


ClientMessage = Annotated[
    Union[CreateRoom, JoinRoom, UpdateState, SendDraftEvent, GetViewerCount],
    Field(discriminator="type"),
]

CLIENT_MESSAGE_TYPES = {"CREATE_ROOM", "JOIN_ROOM", "UPDATE_STATE", "DRAFT_EVENT", "GET_VIEWER_COUNT"}

client_message_adapter = TypeAdapter(ClientMessage)


def parse_client_message(raw: str) -> Optional[ClientMessage]:
    """Parse one inbound frame.

    Returns None for a well-formed object whose type the relay does not handle.
    Raises MalformedMessageError for anything that is not a JSON object or that
    has a known type but invalid fields.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedMessageError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedMessageError(f"Expected a JSON object, got {type(data).__name__}")
    if data.get("type") not in CLIENT_MESSAGE_TYPES:
        return None
    try:
        return client_message_adapter.validate_python(data)
    except ValidationError as e:
        raise MalformedMessageError(f"Invalid {data['type']} message: {e.error_count()} error(s)") from e


# Server -> client

class RoomCreated(WireModel):
    type: Literal["ROOM_CREATED"] = "ROOM_CREATED"
    code: str


class RoomJoined(WireModel):
    type: Literal["ROOM_JOINED"] = "ROOM_JOINED"
    code: str
    state: Any = None


class StateUpdate(WireModel):
    type: Literal["STATE_UPDATE"] = "STATE_UPDATE"
    state: Any = None


class DraftEvent(WireModel):
    type: Literal["DRAFT_EVENT"] = "DRAFT_EVENT"
    event: str
    data: Any = None


class ViewerJoined(WireModel):
    type: Literal["VIEWER_JOINED"] = "VIEWER_JOINED"
    viewer_count: int = Field(alias="viewerCount")


class ViewerLeft(WireModel):
    type: Literal["VIEWER_LEFT"] = "VIEWER_LEFT"
    viewer_count: int = Field(alias="viewerCount")


class ViewerCount(WireModel):
    type: Literal["VIEWER_COUNT"] = "VIEWER_COUNT"
    count: int


class HostDisconnected(WireModel):
    type: Literal["HOST_DISCONNECTED"] = "HOST_DISCONNECTED"


class ErrorMessage(WireModel):
    type: Literal["ERROR"] = "ERROR"
    message: str
