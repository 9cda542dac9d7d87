from pydantic import BaseModel


class RoomDetailsResponse(BaseModel):
    code: str
    viewer_count: int
    host_connected: bool
    has_state: bool
    created_at: str

class HealthResponse(BaseModel):
    status: str
    rooms: int
