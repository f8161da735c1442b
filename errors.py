class ChatError(Exception):
    """Base error for room, membership and message operations."""

    status_code = 500
    detail = "Internal server error"

    def __init__(self, message: str = None):
        super().__init__(message or self.detail)
        self.message = message or self.detail


class MissingCredentials(ChatError):
    status_code = 401
    detail = "Missing room id or token"


class RoomNotFound(ChatError):
    # Never-created, expired and destroyed rooms all look the same
    status_code = 404
    detail = "Room not found"


class RoomFull(ChatError):
    status_code = 403
    detail = "Room is full"


class InvalidInput(ChatError):
    status_code = 422
    detail = "Invalid input"


class StoreUnavailable(ChatError):
    status_code = 503
    detail = "Store unavailable"


class MalformedState(ChatError):
    """Stored data failed to parse. Recovered locally, never sent to callers."""

    status_code = 500
    detail = "Malformed stored state"
