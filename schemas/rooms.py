from pydantic import BaseModel
from typing import Optional


class CreateRoomResponse(BaseModel):
    room_id: str

class JoinRoomResponse(BaseModel):
    room_id: str
    token: str
    connected_count: int
    ttl: int
    created_at: Optional[int] = None
    newly_admitted: bool = False

class RoomTtlResponse(BaseModel):
    ttl: int

class DestroyRoomResponse(BaseModel):
    success: bool
    message: str
