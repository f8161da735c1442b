REDIS_META_KEY = "meta:{room_id}" # room id - hash: connected, createdAt
REDIS_MESSAGES_KEY = "messages:{room_id}" # room id - list of JSON message records
REDIS_HISTORY_KEY = "history:{room_id}" # room id - capped list of recent message events
REDIS_ROOM_CHANNEL = "channel:{room_id}" # room id - pub/sub channel name

META_CONNECTED_FIELD = "connected"
META_CREATED_AT_FIELD = "createdAt"

# **Example `meta:{id}` hash fields**
# - `connected` = json array of membership tokens, insertion order, max 10
# - `createdAt` = ms since epoch, set once

# **TTL**
# - `meta:{id}` carries the authoritative TTL, set at creation.
# - `messages:{id}` and `history:{id}` mirror it after every join/append.


def meta_key(room_id: str) -> str:
    return REDIS_META_KEY.format(room_id=room_id)


def messages_key(room_id: str) -> str:
    return REDIS_MESSAGES_KEY.format(room_id=room_id)


def history_key(room_id: str) -> str:
    return REDIS_HISTORY_KEY.format(room_id=room_id)


def channel_name(room_id: str) -> str:
    return REDIS_ROOM_CHANNEL.format(room_id=room_id)


def dependent_keys(room_id: str) -> list[str]:
    """Keys whose expiry must never outlive the room's metadata."""
    return [messages_key(room_id), history_key(room_id)]
