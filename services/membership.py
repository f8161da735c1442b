"""Join protocol for rooms: token validation plus capacity-checked admission.

``authenticate`` runs on every request that carries a room token, so the
already-a-member case is a single read with no transaction. Only a token the
room has not seen yet goes through the store's optimistic ``try_admit``.
"""
import json
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from backend import AdmitResult, RedisBackend
from constants import MAX_ROOM_MEMBERS
from errors import MalformedState, MissingCredentials, RoomFull, RoomNotFound
from logging_config import get_logger, mask_token
from redis_keys import META_CONNECTED_FIELD, meta_key

logger = get_logger(__name__)


@dataclass
class Membership:
    token: str
    connected_tokens: List[str] = field(default_factory=list)
    newly_admitted: bool = False


def _malformed(room_id: Optional[str], raw, reason: str) -> List[str]:
    error = MalformedState(f"token set of room {room_id}: {reason}")
    logger.warning(f"{error} (raw={raw!r:.80}); treating room as empty")
    return []


def decode_tokens(raw, room_id: Optional[str] = None) -> List[str]:
    """Normalize a stored token set to a list of strings.

    Accepted encodings, in order: a native list, a blank string, a JSON
    array. Anything else is logged and read as an empty room.
    """
    if raw is None:
        return []
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, list):
        tokens = raw
    elif isinstance(raw, str):
        if not raw.strip():
            return []
        try:
            tokens = json.loads(raw)
        except json.JSONDecodeError as e:
            return _malformed(room_id, raw, f"invalid JSON ({e.msg})")
    else:
        return _malformed(room_id, raw, f"unexpected type {type(raw).__name__}")

    if not isinstance(tokens, list):
        return _malformed(room_id, raw, "not a list")
    if not all(isinstance(t, str) for t in tokens):
        return _malformed(room_id, raw, "non-string member")
    return list(tokens)


class MembershipGate:

    def __init__(self, store: RedisBackend, ttl_coordinator, max_members: int = MAX_ROOM_MEMBERS):
        self.store = store
        self.ttl_coordinator = ttl_coordinator
        self.max_members = max_members

    @staticmethod
    def issue_token() -> str:
        return uuid.uuid4().hex

    def authenticate(self, room_id: Optional[str], token: Optional[str]) -> Membership:
        if not room_id or not token:
            logger.warning(f"Auth failed: missing credentials (room_id={room_id!r}, token={mask_token(token)})")
            raise MissingCredentials()

        key = meta_key(room_id)
        raw = self.store.hget(key, META_CONNECTED_FIELD)
        if raw is None and not self.store.exists(key):
            logger.warning(f"Auth failed: Room {room_id} not found")
            raise RoomNotFound()

        tokens = decode_tokens(raw, room_id)
        if token in tokens:
            return Membership(token=token, connected_tokens=tokens)

        outcome = self.store.try_admit(key, META_CONNECTED_FIELD, token, self.max_members,
                                       lambda value: decode_tokens(value, room_id))
        if outcome.result == AdmitResult.NOT_FOUND:
            logger.warning(f"Auth failed: Room {room_id} disappeared during admission")
            raise RoomNotFound()
        if outcome.result == AdmitResult.FULL:
            logger.warning(f"Auth failed: Room {room_id} is full ({len(outcome.tokens)}/{self.max_members})")
            raise RoomFull()
        if outcome.result == AdmitResult.ALREADY_MEMBER:
            # another request with the same token won the race
            return Membership(token=token, connected_tokens=outcome.tokens)

        logger.info(f"Token {mask_token(token)} admitted to room {room_id} ({len(outcome.tokens)}/{self.max_members})")
        self.ttl_coordinator.resync_quietly(room_id)
        return Membership(token=token, connected_tokens=outcome.tokens, newly_admitted=True)
