import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

from connection import Connection
from constants import ROOM_CODE_ALPHABET, ROOM_CODE_LENGTH, ROOM_CODE_MAX_ATTEMPTS
from logging_config import get_logger

logger = get_logger(__name__)


class RoomCodeExhaustedError(Exception):
    """No free room code was found within the allowed number of attempts."""


@dataclass(eq=False)
class Room:
    code: str
    host: Connection
    state: Any = None
    viewers: Set[Connection] = field(default_factory=set)
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def viewer_count(self) -> int:
        return len(self.viewers)

    def add_viewer(self, connection: Connection):
        self.viewers.add(connection)

    def remove_viewer(self, connection: Connection) -> bool:
        if connection in self.viewers:
            self.viewers.remove(connection)
            return True
        return False

    def open_viewers(self) -> List[Connection]:
        return [viewer for viewer in self.viewers if viewer.is_open()]


class RoomCodeGenerator:
    def __init__(
        self,
        alphabet: str = ROOM_CODE_ALPHABET,
        length: int = ROOM_CODE_LENGTH,
        max_attempts: int = ROOM_CODE_MAX_ATTEMPTS,
        rng: Optional[random.Random] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.alphabet = alphabet
        self.length = length
        self.max_attempts = max_attempts
        self.rng = rng or random.SystemRandom()

    def generate(self, is_taken: Callable[[str], bool]) -> str:
        """Return a code for which is_taken() is false, trying at most max_attempts candidates."""
        for attempt in range(1, self.max_attempts + 1):
            code = "".join(self.rng.choices(self.alphabet, k=self.length))
            if not is_taken(code):
                return code
            logger.debug(f"Room code {code} already in use (attempt {attempt}/{self.max_attempts})")
        logger.error(f"Could not allocate a room code after {self.max_attempts} attempts")
        raise RoomCodeExhaustedError(f"No free room code after {self.max_attempts} attempts")


class RoomRegistry:
    """In-process registry of live rooms, keyed by room code.

    This is the only authority on whether a room exists. It never awaits, so on a
    single event loop every call completes before any other unit of work runs.
    """

    def __init__(self, code_generator: Optional[RoomCodeGenerator] = None):
        self.code_generator = code_generator or RoomCodeGenerator()
        self._rooms: Dict[str, Room] = {}
        logger.info("Initializing in-memory RoomRegistry")

    def create(self, host: Connection, initial_state: Any = None) -> str:
        code = self.code_generator.generate(self.__contains__)
        self._rooms[code] = Room(code=code, host=host, state=initial_state)
        logger.debug(f"Room {code} registered (total rooms: {len(self._rooms)})")
        return code

    def get(self, code: str) -> Optional[Room]:
        room = self._rooms.get(code)
        if room is None:
            logger.debug(f"Room {code} not found in registry")
        return room

    def delete(self, code: str) -> bool:
        room = self._rooms.pop(code, None)
        if room is None:
            logger.debug(f"Room {code} already absent, nothing to delete")
            return False
        logger.debug(f"Room {code} removed from registry (total rooms: {len(self._rooms)})")
        return True

    def rooms(self) -> List[Room]:
        return list(self._rooms.values())

    def __contains__(self, code) -> bool:
        return code in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
