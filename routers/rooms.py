from fastapi import APIRouter, HTTPException, Request
from schemas.rooms import RoomDetailsResponse
from constants import ROOM_NOT_FOUND
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("/{code}", response_model=RoomDetailsResponse)
async def get_room_details(code: str, request: Request):
    """
    Look up a live room by its code.

    Returns:
    - code: Room code
    - viewer_count: Number of viewers currently in the room
    - host_connected: Whether the host connection is still open
    - has_state: Whether the host has published any state yet
    - created_at: Room creation timestamp
    """
    code = code.strip().upper()
    client_host = request.client.host if request.client else 'unknown'
    logger.info(f"Room details request for {code} from {client_host}")

    registry = request.app.state.registry
    room = registry.get(code)
    if room is None:
        logger.warning(f"Room details failed: Room {code} not found")
        raise HTTPException(status_code=404, detail=ROOM_NOT_FOUND)

    return RoomDetailsResponse(
        code=room.code,
        viewer_count=room.viewer_count,
        host_connected=room.host.is_open(),
        has_state=room.state is not None,
        created_at=room.created_at.isoformat(),
    )
