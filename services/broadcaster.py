"""Fan-out of room events to live subscribers.

The core only needs ``publish``; delivery is best-effort and callers never
let a failed publish fail the operation that triggered it.
"""
import json
from abc import ABC, abstractmethod
from typing import List

from backend import RedisBackend
from constants import HISTORY_MAX_EVENTS
from logging_config import get_logger
from redis_keys import channel_name, history_key, meta_key

logger = get_logger(__name__)

MESSAGE_EVENT = "message"
DESTROY_EVENT = "destroy"

# Only chat messages are worth replaying to late subscribers
REPLAYABLE_EVENTS = {MESSAGE_EVENT}


class EventBroadcaster(ABC):

    @abstractmethod
    def publish(self, room_id: str, event: str, payload: dict) -> None:
        """Publish an event on the room's channel. May raise; callers swallow."""

    def recent_events(self, room_id: str) -> List[dict]:
        return []


class RedisEventBroadcaster(EventBroadcaster):
    """Publishes JSON envelopes on Redis pub/sub and keeps a short replay buffer."""

    def __init__(self, store: RedisBackend, history_max_events: int = HISTORY_MAX_EVENTS):
        self.store = store
        self.history_max_events = history_max_events

    @staticmethod
    def envelope(room_id: str, event: str, payload: dict) -> dict:
        return {"event": event, "room_id": room_id, "data": payload}

    def publish(self, room_id: str, event: str, payload: dict) -> None:
        message_json = json.dumps(self.envelope(room_id, event, payload))
        if event in REPLAYABLE_EVENTS:
            # Replay buffer shares the room's expiry and is never recreated once the room is gone
            if not self.store.append_if_exists(meta_key(room_id), history_key(room_id), message_json,
                                               max_len=self.history_max_events):
                logger.info(f"Room {room_id} is gone, {event} event not kept for replay")
        subscribers = self.store.publish(channel_name(room_id), message_json)
        logger.debug(f"Published {event} event to room {room_id}, {subscribers} subscribers")

    def recent_events(self, room_id: str) -> List[dict]:
        events = []
        for raw in self.store.lrange(history_key(room_id)):
            try:
                events.append(json.loads(raw))
            except (json.JSONDecodeError, TypeError) as e:
                logger.warning(f"Skipping unreadable history entry in room {room_id}: {e}")
        return events

    def subscribe(self, room_id: str):
        return self.store.subscribe(channel_name(room_id))
