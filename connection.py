import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState


class Role(str, Enum):
    UNASSIGNED = "unassigned"
    HOST = "host"
    VIEWER = "viewer"


class RoleTransitionError(Exception):
    """Raised when a connection that already has a role is assigned another one."""


@dataclass(frozen=True)
class RoleBinding:
    """Tagged role of a connection: Unassigned, Host(code) or Viewer(code).

    Host and Viewer are terminal. A binding only ever moves out of Unassigned.
    """
    role: Role = Role.UNASSIGNED
    code: Optional[str] = None

    @property
    def is_assigned(self) -> bool:
        return self.role is not Role.UNASSIGNED

    def as_host(self, code: str) -> "RoleBinding":
        return self._transition(Role.HOST, code)

    def as_viewer(self, code: str) -> "RoleBinding":
        return self._transition(Role.VIEWER, code)

    def _transition(self, role: Role, code: str) -> "RoleBinding":
        if self.is_assigned:
            raise RoleTransitionError(
                f"Connection is already {self.role.value} of room {self.code}, cannot become {role.value} of {code}"
            )
        return RoleBinding(role=role, code=code)


class Connection(ABC):
    """A live transport endpoint as seen by the relay.

    The relay only needs to know whether the peer is still reachable and how to
    push a JSON payload to it. Subclasses adapt a concrete transport.
    """

    def __init__(self, connection_id: Optional[str] = None):
        self.connection_id = connection_id or uuid.uuid4().hex
        self.binding = RoleBinding()

    @property
    def role(self) -> Role:
        return self.binding.role

    @property
    def room_code(self) -> Optional[str]:
        return self.binding.code

    def assign_host(self, code: str):
        self.binding = self.binding.as_host(code)

    def assign_viewer(self, code: str):
        self.binding = self.binding.as_viewer(code)

    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    async def send_json(self, payload: dict) -> None:
        ...

    def __repr__(self):
        return f"<{type(self).__name__} {self.connection_id[:8]} {self.role.value}:{self.room_code}>"


class WebSocketConnection(Connection):
    """Connection backed by a Starlette/FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket, connection_id: Optional[str] = None):
        super().__init__(connection_id)
        self.websocket = websocket

    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_json(self, payload: dict) -> None:
        await self.websocket.send_text(json.dumps(payload))
