from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Query, Request, Response

from constants import AUTH_COOKIE_NAME, COOKIE_SECURE
from dependencies import ChatServices, RoomMember, get_services, require_member
from errors import RoomNotFound
from logging_config import get_logger, mask_token
from schemas.rooms import CreateRoomResponse, DestroyRoomResponse, JoinRoomResponse, RoomTtlResponse

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/api/room", tags=["rooms"])


@rooms_router.post("/create", response_model=CreateRoomResponse, status_code=201)
def create_room(request: Request, services: ChatServices = Depends(get_services)):
    logger.info(f"Room creation request from {request.client.host if request.client else 'unknown'}")
    room_id = services.registry.create_room()
    return CreateRoomResponse(room_id=room_id)


@rooms_router.post("/join", response_model=JoinRoomResponse)
def join_room(
    response: Response,
    room_id: Optional[str] = Query(None, alias="roomId"),
    token: Optional[str] = Cookie(None, alias=AUTH_COOKIE_NAME),
    services: ChatServices = Depends(get_services),
):
    # First contact gets a server-issued token; the cookie carries it afterwards
    token = token or services.gate.issue_token()
    logger.info(f"Join room request for {room_id} with token {mask_token(token)}")
    membership = services.gate.authenticate(room_id, token)
    room = services.registry.get_room(room_id)
    if room is None:
        raise RoomNotFound()
    if membership.newly_admitted:
        logger.info(f"Room {room_id} now has {len(membership.connected_tokens)} members")

    response.set_cookie(
        AUTH_COOKIE_NAME,
        membership.token,
        path="/",
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="strict",
    )
    return JoinRoomResponse(
        room_id=room_id,
        token=membership.token,
        connected_count=len(membership.connected_tokens),
        ttl=room.ttl_seconds,
        created_at=room.created_at,
        newly_admitted=membership.newly_admitted,
    )


@rooms_router.get("/ttl", response_model=RoomTtlResponse)
def get_room_ttl(member: RoomMember = Depends(require_member), services: ChatServices = Depends(get_services)):
    ttl = services.registry.get_ttl_seconds(member.room_id)
    if ttl is None:
        raise RoomNotFound()
    return RoomTtlResponse(ttl=ttl)


@rooms_router.delete("/destroy", response_model=DestroyRoomResponse)
def destroy_room(member: RoomMember = Depends(require_member), services: ChatServices = Depends(get_services)):
    logger.info(f"Destroy request for room {member.room_id} from token {mask_token(member.membership.token)}")
    services.registry.destroy_room(member.room_id)
    return DestroyRoomResponse(success=True, message="Room destroyed")
