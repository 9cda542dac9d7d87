from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from routers.rooms import rooms_router
from backend import RoomRegistry
from connection import WebSocketConnection
from constants import ALLOWED_ORIGINS, MAX_VIEWERS_PER_ROOM, SWEEP_INTERVAL_SECONDS
from relay import RoomRelay
from schemas.rooms import HealthResponse
from logging_config import get_logger, setup_logging
from typing import Optional, Set
import asyncio
import os

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)
logger = get_logger(__name__)


def create_app(
    registry: Optional[RoomRegistry] = None,
    sweep_interval: float = SWEEP_INTERVAL_SECONDS,
    max_viewers_per_room: int = MAX_VIEWERS_PER_ROOM,
) -> FastAPI:
    """Build the relay application around a room registry.

    The registry is created here unless one is passed in, so tests (or a different
    registry implementation) can be injected.
    """
    if registry is None:
        registry = RoomRegistry()
    relay = RoomRelay(registry, max_viewers_per_room=max_viewers_per_room)
    pending_cleanups: Set[asyncio.Task] = set()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper = asyncio.create_task(relay.run_sweeper(sweep_interval))
        try:
            yield
        finally:
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass
            logger.info("Liveness sweeper stopped")

    app = FastAPI(title="Draft Relay", lifespan=lifespan)
    app.state.registry = registry
    app.state.relay = relay

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(rooms_router)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(status="ok", rooms=len(registry))

    @app.websocket("/")
    async def websocket_endpoint(websocket: WebSocket):
        """One participant's connection.

        Every connection starts unassigned; CREATE_ROOM makes it a host and
        JOIN_ROOM makes it a viewer. Frames are handled one at a time, in order.
        """
        await websocket.accept()
        connection = WebSocketConnection(websocket)
        logger.info(f"WebSocket connection accepted: {connection.connection_id}")

        try:
            message_count = 0
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))

                data = message.get("text")
                if data is None:
                    data = (message.get("bytes") or b"").decode("utf-8", errors="replace")
                message_count += 1
                logger.debug(f"Received message #{message_count} from connection {connection.connection_id}")

                await relay.handle_message(connection, data)
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected normally for connection {connection.connection_id}")
        except Exception as e:
            logger.error(f"WebSocket error for connection {connection.connection_id}: {e}", exc_info=True)
        finally:
            # Teardown has to complete even when this handler task is being cancelled
            cleanup = asyncio.ensure_future(relay.handle_disconnect(connection))
            pending_cleanups.add(cleanup)
            cleanup.add_done_callback(pending_cleanups.discard)
            await asyncio.shield(cleanup)

    logger.info("FastAPI application initialized")
    return app


app = create_app()
