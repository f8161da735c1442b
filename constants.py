import os

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)
REDIS_DB = int(os.getenv("REDIS_DB", 0))

# Every store call is bounded; a hung socket surfaces as StoreUnavailable
REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", 2.0))
REDIS_READ_RETRIES = int(os.getenv("REDIS_READ_RETRIES", 3))

ROOM_TTL_SECONDS = int(os.getenv("ROOM_TTL_SECONDS", 600))
MAX_ROOM_MEMBERS = int(os.getenv("MAX_ROOM_MEMBERS", 10))
ADMIT_MAX_ATTEMPTS = int(os.getenv("ADMIT_MAX_ATTEMPTS", 10))

MAX_SENDER_LENGTH = int(os.getenv("MAX_SENDER_LENGTH", 100))
MAX_TEXT_LENGTH = int(os.getenv("MAX_TEXT_LENGTH", 1000))

HISTORY_MAX_EVENTS = int(os.getenv("HISTORY_MAX_EVENTS", 100))

AUTH_COOKIE_NAME = os.getenv("AUTH_COOKIE_NAME", "x-auth-token")
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() in ("1", "true", "yes")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))
RELOAD = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)
