from backend import RedisBackend
from errors import StoreUnavailable
from logging_config import get_logger
from redis_keys import dependent_keys

logger = get_logger(__name__)


class TtlCoordinator:
    """Mirrors the room metadata's remaining TTL onto the room's other keys."""

    def __init__(self, store: RedisBackend, registry):
        self.store = store
        self.registry = registry

    def resync(self, room_id: str) -> bool:
        """Returns True when dependent keys were updated.

        A missing room is the signal to do nothing. EXPIRE on a key that no
        longer exists is itself a no-op, so a resync racing a destroy cannot
        bring keys back.
        """
        remaining = self.registry.get_ttl_seconds(room_id)
        if remaining is None or remaining <= 0:
            logger.debug(f"Skipping TTL resync for room {room_id}: remaining={remaining}")
            return False
        for key in dependent_keys(room_id):
            self.store.expire(key, remaining)
        logger.debug(f"Resynced TTL of room {room_id} dependents to {remaining}s")
        return True

    def resync_quietly(self, room_id: str) -> bool:
        """resync for callers whose own write already committed."""
        try:
            return self.resync(room_id)
        except StoreUnavailable as e:
            logger.warning(f"TTL resync for room {room_id} deferred: {e}")
            return False
