import asyncio
from typing import Dict, List, Optional, Set

from backend import Room, RoomCodeExhaustedError, RoomRegistry
from connection import Connection, Role
from constants import (
    MAX_VIEWERS_PER_ROOM,
    ROOM_CAPACITY_EXHAUSTED,
    ROOM_FULL,
    ROOM_NOT_FOUND,
    SEND_TIMEOUT_SECONDS,
    SWEEP_INTERVAL_SECONDS,
)
from logging_config import get_logger
from outbox import Outbox
from schemas.messages import (
    CreateRoom,
    DraftEvent,
    ErrorMessage,
    GetViewerCount,
    HostDisconnected,
    JoinRoom,
    MalformedMessageError,
    RoomCreated,
    RoomJoined,
    SendDraftEvent,
    StateUpdate,
    UpdateState,
    ViewerCount,
    ViewerJoined,
    ViewerLeft,
    WireModel,
    parse_client_message,
)

logger = get_logger(__name__)


class RoomRelay:
    """Routes messages between each room's host and its viewers.

    Every inbound message, every disconnect and every sweep pass runs under one
    asyncio lock and never awaits while holding it. Outbound messages are only
    queued on the recipient's Outbox there; the actual network sends happen in
    per-connection writer tasks, so a peer that stops reading delays nobody else.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        max_viewers_per_room: int = MAX_VIEWERS_PER_ROOM,
        send_timeout: float = SEND_TIMEOUT_SECONDS,
    ):
        self.registry = registry
        self.max_viewers_per_room = max_viewers_per_room
        self.send_timeout = send_timeout
        self._lock = asyncio.Lock()
        self._outboxes: Dict[Connection, Outbox] = {}
        self._writers: Set[asyncio.Task] = set()

    async def handle_message(self, connection: Connection, raw: str):
        try:
            message = parse_client_message(raw)
        except MalformedMessageError as e:
            logger.warning(f"Malformed message from connection {connection.connection_id}: {e}")
            return

        if message is None:
            logger.debug(f"Ignoring message of unknown type from connection {connection.connection_id}")
            return

        async with self._lock:
            try:
                self._dispatch(connection, message)
            except Exception as e:
                logger.error(
                    f"Error processing {message.type} from connection {connection.connection_id}: {e}",
                    exc_info=True,
                )

    def _dispatch(self, connection: Connection, message):
        if isinstance(message, CreateRoom):
            self._create_room(connection, message)
        elif isinstance(message, JoinRoom):
            self._join_room(connection, message)
        elif isinstance(message, UpdateState):
            self._update_state(connection, message)
        elif isinstance(message, SendDraftEvent):
            self._draft_event(connection, message)
        elif isinstance(message, GetViewerCount):
            self._get_viewer_count(connection)

    def _create_room(self, connection: Connection, message: CreateRoom):
        if connection.binding.is_assigned:
            logger.debug(f"Connection {connection.connection_id} is already {connection.role.value}, ignoring CREATE_ROOM")
            return

        try:
            code = self.registry.create(connection, message.initial_state)
        except RoomCodeExhaustedError as e:
            logger.error(f"Room creation failed for connection {connection.connection_id}: {e}")
            self.send(connection, ErrorMessage(message=ROOM_CAPACITY_EXHAUSTED))
            return

        connection.assign_host(code)
        self.send(connection, RoomCreated(code=code))
        logger.info(f"Room created: {code}")

    def _join_room(self, connection: Connection, message: JoinRoom):
        if connection.binding.is_assigned:
            logger.debug(f"Connection {connection.connection_id} is already {connection.role.value}, ignoring JOIN_ROOM")
            return

        room = self.registry.get(message.code)
        if room is None:
            logger.info(f"Join rejected: room {message.code!r} not found")
            self.send(connection, ErrorMessage(message=ROOM_NOT_FOUND))
            return

        if self.max_viewers_per_room and room.viewer_count >= self.max_viewers_per_room:
            logger.info(f"Join rejected: room {room.code} is full ({room.viewer_count}/{self.max_viewers_per_room})")
            self.send(connection, ErrorMessage(message=ROOM_FULL))
            return

        room.add_viewer(connection)
        connection.assign_viewer(room.code)

        self.send(connection, RoomJoined(code=room.code, state=room.state))
        self.send(room.host, ViewerJoined(viewer_count=room.viewer_count))
        logger.info(f"Viewer joined room: {room.code} ({room.viewer_count} viewers)")

    def _update_state(self, connection: Connection, message: UpdateState):
        room = self._hosted_room(connection)
        if room is None:
            return
        room.state = message.state
        queued = self.broadcast(room, StateUpdate(state=message.state))
        logger.debug(f"State of room {room.code} replaced, queued for {queued} viewers")

    def _draft_event(self, connection: Connection, message: SendDraftEvent):
        room = self._hosted_room(connection)
        if room is None:
            return
        queued = self.broadcast(room, DraftEvent(event=message.event, data=message.data))
        logger.debug(f"Draft event {message.event!r} in room {room.code} queued for {queued} viewers")

    def _get_viewer_count(self, connection: Connection):
        room = self._hosted_room(connection)
        if room is None:
            return
        self.send(connection, ViewerCount(count=room.viewer_count))

    def _hosted_room(self, connection: Connection) -> Optional[Room]:
        """The room this connection hosts, or None when it may not act as host."""
        if connection.role is not Role.HOST:
            logger.debug(f"Connection {connection.connection_id} is not a host, ignoring host-only message")
            return None
        room = self.registry.get(connection.room_code)
        if room is None or room.host is not connection:
            logger.debug(f"Room {connection.room_code} of connection {connection.connection_id} no longer exists")
            return None
        return room

    def send(self, connection: Connection, message: WireModel) -> bool:
        """Queue one message for one connection. Closed connections are skipped."""
        if not connection.is_open():
            logger.debug(f"Skipping {message.type} to closed connection {connection.connection_id}")
            return False
        self._post(connection, message.to_wire())
        return True

    def broadcast(self, room: Room, message: WireModel) -> int:
        """Fan a message out to every open viewer of the room.

        Viewers that are not open are skipped but stay in the room; removing them
        is left to disconnect handling. Returns how many viewers it was queued for.
        """
        viewers = room.open_viewers()
        payload = message.to_wire()
        for viewer in viewers:
            self._post(viewer, payload)
        return len(viewers)

    def _post(self, connection: Connection, payload: dict):
        outbox = self._outboxes.get(connection)
        if outbox is None:
            outbox = self._outboxes[connection] = Outbox(connection, self.send_timeout)
        writer = outbox.post(payload)
        if writer is not None:
            self._writers.add(writer)
            writer.add_done_callback(self._writers.discard)

    async def flush(self):
        """Wait until every queued message has been sent, dropped or timed out."""
        while self._writers:
            await asyncio.gather(*list(self._writers), return_exceptions=True)

    async def handle_disconnect(self, connection: Connection):
        async with self._lock:
            try:
                self._disconnect(connection)
            except Exception as e:
                logger.error(f"Error cleaning up connection {connection.connection_id}: {e}", exc_info=True)
            finally:
                self._outboxes.pop(connection, None)

    def _disconnect(self, connection: Connection):
        if not connection.binding.is_assigned:
            return

        room = self.registry.get(connection.room_code)
        if room is None:
            return

        if connection.role is Role.HOST:
            if room.host is connection:
                self._close_room(room)
                logger.info(f"Room closed: {room.code}")
            return

        if room.remove_viewer(connection):
            self.send(room.host, ViewerLeft(viewer_count=room.viewer_count))
            logger.info(f"Viewer left room: {room.code} ({room.viewer_count} viewers)")

    def _close_room(self, room: Room):
        self.broadcast(room, HostDisconnected())
        self.registry.delete(room.code)

    async def sweep(self) -> List[str]:
        """Tear down every room whose host is no longer open. Returns the swept codes."""
        swept = []
        async with self._lock:
            for room in self.registry.rooms():
                if room.host.is_open():
                    continue
                try:
                    self._close_room(room)
                except Exception as e:
                    logger.error(f"Error sweeping room {room.code}: {e}", exc_info=True)
                    continue
                swept.append(room.code)
                logger.info(f"Cleaned up stale room: {room.code}")
        return swept

    async def run_sweeper(self, interval: float = SWEEP_INTERVAL_SECONDS):
        logger.info(f"Starting liveness sweeper (every {interval}s)")
        try:
            while True:
                await asyncio.sleep(interval)
                try:
                    swept = await self.sweep()
                    if swept:
                        logger.debug(f"Sweep removed {len(swept)} rooms, {len(self.registry)} remain")
                except Exception as e:
                    logger.error(f"Error during liveness sweep: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info("Liveness sweeper cancelled")
            raise
