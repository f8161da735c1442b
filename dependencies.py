from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, Query

from backend import RedisBackend, redis_backend
from constants import AUTH_COOKIE_NAME
from errors import MissingCredentials, RoomFull, RoomNotFound
from logging_config import get_logger
from services.broadcaster import RedisEventBroadcaster
from services.membership import Membership, MembershipGate
from services.messages import MessageLog
from services.rooms import RoomRegistry
from services.ttl import TtlCoordinator

logger = get_logger(__name__)


@dataclass
class ChatServices:
    store: RedisBackend
    broadcaster: RedisEventBroadcaster
    registry: RoomRegistry
    ttl: TtlCoordinator
    gate: MembershipGate
    messages: MessageLog


def build_services(store: RedisBackend, broadcaster=None) -> ChatServices:
    broadcaster = broadcaster if broadcaster is not None else RedisEventBroadcaster(store)
    registry = RoomRegistry(store, broadcaster)
    ttl = TtlCoordinator(store, registry)
    return ChatServices(
        store=store,
        broadcaster=broadcaster,
        registry=registry,
        ttl=ttl,
        gate=MembershipGate(store, ttl),
        messages=MessageLog(store, registry, broadcaster, ttl),
    )


@lru_cache(maxsize=1)
def get_services() -> ChatServices:
    return build_services(redis_backend)


@dataclass
class RoomMember:
    room_id: str
    membership: Membership


def require_member(
    room_id: Optional[str] = Query(None, alias="roomId"),
    token: Optional[str] = Cookie(None, alias=AUTH_COOKIE_NAME),
    services: ChatServices = Depends(get_services),
) -> RoomMember:
    """Runs the join protocol for every guarded request.

    Missing credentials, unknown rooms and full rooms all answer the same
    way so callers cannot tell which rooms exist.
    """
    try:
        membership = services.gate.authenticate(room_id, token)
    except (MissingCredentials, RoomNotFound, RoomFull) as e:
        logger.info(f"Rejected request for room {room_id}: {type(e).__name__}")
        raise HTTPException(status_code=401, detail="Unauthorized")
    return RoomMember(room_id=room_id, membership=membership)
