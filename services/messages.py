import json
import uuid
from dataclasses import asdict, dataclass
from typing import List, Optional

from backend import RedisBackend
from constants import MAX_SENDER_LENGTH, MAX_TEXT_LENGTH
from errors import InvalidInput, MalformedState, RoomNotFound
from logging_config import get_logger
from redis_keys import messages_key, meta_key
from services.broadcaster import MESSAGE_EVENT, EventBroadcaster
from services.rooms import RoomRegistry, now_ms

logger = get_logger(__name__)


@dataclass
class Message:
    id: str
    sender: str
    text: str
    timestamp: int
    token: Optional[str] = None

    def to_record(self) -> str:
        return json.dumps(asdict(self))

    def public_view(self) -> dict:
        return {"id": self.id, "sender": self.sender, "text": self.text, "timestamp": self.timestamp}


def parse_record(raw) -> Message:
    """Decode one stored message. Older records spell the time field ``timeStamp``."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedState(f"message record is not JSON: {e.msg}") from e
    if not isinstance(raw, dict):
        raise MalformedState(f"message record has type {type(raw).__name__}")
    timestamp = raw.get("timestamp", raw.get("timeStamp"))
    if not isinstance(raw.get("id"), str) or not isinstance(timestamp, int):
        raise MalformedState("message record is missing id or timestamp")
    return Message(
        id=raw["id"],
        sender=str(raw.get("sender", "")),
        text=str(raw.get("text", "")),
        timestamp=timestamp,
        token=raw.get("token"),
    )


def public_view(record) -> dict:
    """Externally visible form of a stored message; the token never leaves the store."""
    message = record if isinstance(record, Message) else parse_record(record)
    return message.public_view()


def validate_message_input(sender, text):
    if not isinstance(sender, str) or not isinstance(text, str):
        raise InvalidInput("sender and text must be strings")
    if len(sender) > MAX_SENDER_LENGTH:
        raise InvalidInput(f"sender must be at most {MAX_SENDER_LENGTH} characters")
    if len(text) > MAX_TEXT_LENGTH:
        raise InvalidInput(f"text must be at most {MAX_TEXT_LENGTH} characters")


class MessageLog:
    """Append-only per-room message storage with best-effort fan-out."""

    def __init__(self, store: RedisBackend, registry: RoomRegistry, broadcaster: EventBroadcaster, ttl_coordinator):
        self.store = store
        self.registry = registry
        self.broadcaster = broadcaster
        self.ttl_coordinator = ttl_coordinator

    def append(self, room_id: str, sender: str, text: str, token: Optional[str] = None) -> Message:
        if not self.registry.room_exists(room_id):
            logger.warning(f"Append failed: Room {room_id} not found")
            raise RoomNotFound()
        validate_message_input(sender, text)

        message = Message(id=uuid.uuid4().hex, sender=sender, text=text, timestamp=now_ms(), token=token)
        if not self.store.append_if_exists(meta_key(room_id), messages_key(room_id), message.to_record()):
            logger.warning(f"Append failed: Room {room_id} vanished before message {message.id} was stored")
            raise RoomNotFound()
        logger.debug(f"Message {message.id} stored in room {room_id}")

        # Persisted is sent; fan-out is best effort
        try:
            self.broadcaster.publish(room_id, MESSAGE_EVENT, message.public_view())
        except Exception as e:
            logger.error(f"Fan-out of message {message.id} in room {room_id} failed: {e}", exc_info=True)

        self.ttl_coordinator.resync_quietly(room_id)
        return message

    def list(self, room_id: str) -> List[dict]:
        if not self.registry.room_exists(room_id):
            logger.warning(f"List failed: Room {room_id} not found")
            raise RoomNotFound()

        messages = []
        for position, raw in enumerate(self.store.lrange(messages_key(room_id))):
            try:
                messages.append(public_view(raw))
            except MalformedState as e:
                logger.warning(f"Skipping message #{position} in room {room_id}: {e}")
        return messages
