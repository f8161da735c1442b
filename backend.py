import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

import redis
from redis.backoff import AbstractBackoff, ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.exceptions import WatchError
from redis.retry import Retry

from constants import (
    ADMIT_MAX_ATTEMPTS,
    REDIS_DB,
    REDIS_HOST,
    REDIS_PASSWORD,
    REDIS_PORT,
    REDIS_READ_RETRIES,
    REDIS_SOCKET_TIMEOUT,
)
from errors import StoreUnavailable
from logging_config import get_logger, mask_token

logger = get_logger(__name__)

TRANSIENT_ERRORS = (RedisConnectionError, RedisTimeoutError)


class AdmitResult(str, Enum):
    ADMITTED = "admitted"
    ALREADY_MEMBER = "already_member"
    FULL = "full"
    NOT_FOUND = "not_found"


@dataclass
class AdmitOutcome:
    result: AdmitResult
    tokens: List[str] = field(default_factory=list)


def create_redis_client() -> redis.Redis:
    return redis.Redis(
        host=REDIS_HOST,
        port=REDIS_PORT,
        db=REDIS_DB,
        password=REDIS_PASSWORD,
        decode_responses=True,
        socket_timeout=REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=REDIS_SOCKET_TIMEOUT,
    )


class RedisBackend:
    """Key-value store used by the room services.

    Reads are retried with backoff on transient failures. Writes are not:
    a failed write surfaces as StoreUnavailable and the caller decides
    whether re-checking state and trying again is safe.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None, pubsub_client: Optional[redis.Redis] = None,
                 read_retries: int = REDIS_READ_RETRIES, admit_max_attempts: int = ADMIT_MAX_ATTEMPTS,
                 backoff: Optional[AbstractBackoff] = None):
        self.redis_client = redis_client if redis_client is not None else create_redis_client()
        # pubsub() checks out its own connection from this client's pool
        self.pubsub_client = pubsub_client if pubsub_client is not None else self.redis_client
        self.read_retries = read_retries
        self.admit_max_attempts = admit_max_attempts
        self._read_retry = Retry(backoff or ExponentialBackoff(cap=0.5, base=0.01), read_retries,
                                 supported_errors=TRANSIENT_ERRORS)
        logger.info(f"Initializing RedisBackend (read_retries={read_retries}, admit_max_attempts={admit_max_attempts})")

    def ping(self) -> bool:
        return self._read("ping", self.redis_client.ping)

    def _read(self, op_name: str, fn: Callable, *args):
        def on_failure(error):
            logger.warning(f"Redis {op_name} failed: {error}")

        try:
            return self._read_retry.call_with_retry(lambda: fn(*args), on_failure)
        except TRANSIENT_ERRORS as e:
            logger.error(f"Redis {op_name} gave up after {self.read_retries} retries: {e}")
            raise StoreUnavailable(f"{op_name} failed: {e}") from e

    def _write(self, op_name: str, fn: Callable, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except TRANSIENT_ERRORS as e:
            logger.error(f"Redis {op_name} failed: {e}")
            raise StoreUnavailable(f"{op_name} failed: {e}") from e

    # -- reads ---------------------------------------------------------------

    def exists(self, key: str) -> bool:
        return bool(self._read("exists", self.redis_client.exists, key))

    def hget(self, key: str, field_name: str):
        return self._read("hget", self.redis_client.hget, key, field_name)

    def hgetall(self, key: str) -> dict:
        return self._read("hgetall", self.redis_client.hgetall, key)

    def lrange(self, key: str, start: int = 0, end: int = -1) -> list:
        return self._read("lrange", self.redis_client.lrange, key, start, end)

    def ttl(self, key: str) -> int:
        """Raw Redis TTL: -2 when the key is missing, -1 when it has no expiry."""
        return self._read("ttl", self.redis_client.ttl, key)

    # -- writes --------------------------------------------------------------

    def expire(self, key: str, seconds: int) -> bool:
        return bool(self._write("expire", self.redis_client.expire, key, seconds))

    def delete(self, key: str) -> int:
        return self._write("delete", self.redis_client.delete, key)

    def publish(self, channel: str, message: str) -> int:
        subscribers = self._write("publish", self.redis_client.publish, channel, message)
        logger.debug(f"Published to channel {channel}, {subscribers} subscribers")
        return subscribers

    def subscribe(self, channel: str):
        """Create a pubsub subscriber for a channel."""
        logger.debug(f"Subscribing to Redis channel {channel}")
        pubsub = self.pubsub_client.pubsub()
        self._write("subscribe", pubsub.subscribe, channel)
        return pubsub

    # -- atomic primitives ---------------------------------------------------

    def create_hash_with_ttl(self, key: str, mapping: dict, ttl: int):
        """Write a hash and its expiry in one MULTI/EXEC."""
        def _create():
            with self.redis_client.pipeline(transaction=True) as pipe:
                pipe.hset(key, mapping=mapping)
                pipe.expire(key, ttl)
                pipe.execute()

        self._write("create_hash_with_ttl", _create)
        logger.debug(f"Created hash {key} with TTL {ttl}")

    def try_admit(self, key: str, field_name: str, token: str, max_size: int,
                  decode: Callable[[object], List[str]]) -> AdmitOutcome:
        """Add token to the JSON token list stored at key/field unless the list is full.

        Uses WATCH/MULTI/EXEC so the read-check-append is one optimistic
        transaction. A concurrent writer invalidates the attempt and it is
        re-run against the fresh state.
        """
        for attempt in range(1, self.admit_max_attempts + 1):
            try:
                with self.redis_client.pipeline() as pipe:
                    try:
                        pipe.watch(key)
                        if not pipe.exists(key):
                            return AdmitOutcome(AdmitResult.NOT_FOUND)
                        tokens = decode(pipe.hget(key, field_name))
                        if token in tokens:
                            return AdmitOutcome(AdmitResult.ALREADY_MEMBER, tokens)
                        if len(tokens) >= max_size:
                            return AdmitOutcome(AdmitResult.FULL, tokens)
                        updated = tokens + [token]
                        pipe.multi()
                        pipe.hset(key, field_name, json.dumps(updated))
                        pipe.execute()
                        return AdmitOutcome(AdmitResult.ADMITTED, updated)
                    except WatchError:
                        logger.debug(f"Admission of {mask_token(token)} to {key} raced, attempt {attempt}/{self.admit_max_attempts}")
                        continue
            except TRANSIENT_ERRORS as e:
                logger.error(f"Redis try_admit failed for {key}: {e}")
                raise StoreUnavailable(f"try_admit failed: {e}") from e
        logger.error(f"Admission to {key} gave up after {self.admit_max_attempts} contended attempts")
        raise StoreUnavailable("try_admit: too much contention")

    def append_if_exists(self, parent_key: str, list_key: str, value: str, max_len: Optional[int] = None) -> bool:
        """RPUSH value onto list_key only while parent_key exists.

        The list inherits the parent's remaining TTL in the same transaction,
        so nothing can land under a room that is already gone. With max_len
        the list is trimmed to its newest max_len entries. Returns False when
        the parent is missing.
        """
        for attempt in range(1, self.admit_max_attempts + 1):
            try:
                with self.redis_client.pipeline() as pipe:
                    try:
                        pipe.watch(parent_key)
                        if not pipe.exists(parent_key):
                            return False
                        remaining = pipe.ttl(parent_key)
                        pipe.multi()
                        pipe.rpush(list_key, value)
                        if max_len:
                            pipe.ltrim(list_key, -max_len, -1)
                        if remaining > 0:
                            pipe.expire(list_key, remaining)
                        pipe.execute()
                        return True
                    except WatchError:
                        logger.debug(f"Append to {list_key} raced with a write to {parent_key}, attempt {attempt}")
                        continue
            except TRANSIENT_ERRORS as e:
                logger.error(f"Redis append_if_exists failed for {list_key}: {e}")
                raise StoreUnavailable(f"append_if_exists failed: {e}") from e
        raise StoreUnavailable("append_if_exists: too much contention")


redis_backend = RedisBackend()
