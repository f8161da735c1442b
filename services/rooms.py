import time
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from backend import RedisBackend
from constants import ROOM_TTL_SECONDS
from errors import RoomNotFound, StoreUnavailable
from logging_config import get_logger
from redis_keys import META_CONNECTED_FIELD, META_CREATED_AT_FIELD, history_key, meta_key, messages_key
from services.broadcaster import DESTROY_EVENT, EventBroadcaster
from services.membership import decode_tokens

logger = get_logger(__name__)


@dataclass
class RoomInfo:
    room_id: str
    created_at: Optional[int]
    ttl_seconds: int
    connected_tokens: List[str] = field(default_factory=list)


def now_ms() -> int:
    return int(time.time() * 1000)


class RoomRegistry:
    """Owns room metadata: creation, existence, remaining TTL and destruction."""

    def __init__(self, store: RedisBackend, broadcaster: EventBroadcaster, ttl_seconds: int = ROOM_TTL_SECONDS):
        self.store = store
        self.broadcaster = broadcaster
        self.ttl_seconds = ttl_seconds

    def create_room(self) -> str:
        room_id = uuid.uuid4().hex
        self.store.create_hash_with_ttl(meta_key(room_id), {
            META_CONNECTED_FIELD: "[]",
            META_CREATED_AT_FIELD: now_ms(),
        }, self.ttl_seconds)
        logger.info(f"Room {room_id} created with TTL {self.ttl_seconds} seconds")
        return room_id

    def room_exists(self, room_id: str) -> bool:
        return self.store.exists(meta_key(room_id))

    def get_ttl_seconds(self, room_id: str) -> Optional[int]:
        """Remaining lifetime floored at 0, or None once the room is gone."""
        remaining = self.store.ttl(meta_key(room_id))
        if remaining == -2:
            return None
        return max(remaining, 0)

    def get_room(self, room_id: str) -> Optional[RoomInfo]:
        meta = self.store.hgetall(meta_key(room_id))
        if not meta:
            return None
        created_at = meta.get(META_CREATED_AT_FIELD)
        try:
            created_at = int(created_at) if created_at is not None else None
        except ValueError:
            logger.warning(f"Room {room_id} has unreadable createdAt {created_at!r}")
            created_at = None
        return RoomInfo(
            room_id=room_id,
            created_at=created_at,
            ttl_seconds=self.get_ttl_seconds(room_id) or 0,
            connected_tokens=decode_tokens(meta.get(META_CONNECTED_FIELD), room_id),
        )

    def destroy_room(self, room_id: str):
        """Delete every key of the room, then tell subscribers.

        Each delete is attempted independently. If the metadata itself could
        not be removed the room is still live, so that failure is re-raised
        after the remaining cleanup has run.
        """
        if not self.room_exists(room_id):
            logger.warning(f"Destroy failed: Room {room_id} not found")
            raise RoomNotFound()

        meta_error = None
        for key in (meta_key(room_id), messages_key(room_id), history_key(room_id)):
            try:
                self.store.delete(key)
            except StoreUnavailable as e:
                logger.error(f"Could not delete {key} while destroying room {room_id}: {e}")
                if key == meta_key(room_id):
                    meta_error = e
        if meta_error is not None:
            raise meta_error

        try:
            self.broadcaster.publish(room_id, DESTROY_EVENT, {"isDestroyed": True})
        except Exception as e:
            logger.error(f"Destroy event for room {room_id} was not published: {e}", exc_info=True)
        logger.info(f"Room {room_id} destroyed")
