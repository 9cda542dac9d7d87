import asyncio
from typing import Optional

from connection import Connection
from constants import SEND_TIMEOUT_SECONDS
from logging_config import get_logger

logger = get_logger(__name__)


class Outbox:
    """Ordered delivery queue for one connection.

    post() never blocks: payloads are queued and a writer task sends them one at a
    time, each bounded by send_timeout. The writer exits once the queue is empty and
    is started again by the next post().
    """

    def __init__(self, connection: Connection, send_timeout: float = SEND_TIMEOUT_SECONDS):
        self.connection = connection
        self.send_timeout = send_timeout
        self._queue: asyncio.Queue = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def post(self, payload: dict) -> Optional[asyncio.Task]:
        """Queue a payload. Returns the writer task when a new one had to be started."""
        self._queue.put_nowait(payload)
        if self._writer is not None and not self._writer.done():
            return None
        self._writer = asyncio.get_running_loop().create_task(self._drain())
        return self._writer

    async def _drain(self):
        while not self._queue.empty():
            payload = self._queue.get_nowait()
            try:
                await self._send(payload)
            finally:
                self._queue.task_done()

    async def _send(self, payload: dict):
        message_type = payload.get("type")
        if not self.connection.is_open():
            logger.debug(f"Skipping {message_type} to closed connection {self.connection.connection_id}")
            return
        try:
            await asyncio.wait_for(self.connection.send_json(payload), self.send_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Timed out after {self.send_timeout}s sending {message_type} to connection {self.connection.connection_id}"
            )
        except Exception as e:
            logger.warning(f"Error sending {message_type} to connection {self.connection.connection_id}: {e}")
