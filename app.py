from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import asyncio
import json

from constants import LOG_FILE, LOG_LEVEL
from dependencies import ChatServices, get_services
from errors import ChatError, InvalidInput, StoreUnavailable
from logging_config import get_logger, setup_logging
from routers.messages import messages_router
from routers.rooms import rooms_router
from services.broadcaster import DESTROY_EVENT

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        get_services().store.ping()
        logger.info("Redis connection verified")
    except StoreUnavailable as e:
        # Keep serving; requests answer 503 until Redis is reachable
        logger.error(f"Redis is not reachable at startup: {e}")
    yield


app = FastAPI(lifespan=lifespan)

# Configure CORS to allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms_router)
app.include_router(messages_router)


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError):
    body = {"error": exc.detail}
    if isinstance(exc, InvalidInput):
        body["message"] = exc.message
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {type(exc).__name__}")
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


logger.info("FastAPI application initialized")


async def _wait_for_disconnect(websocket: WebSocket):
    """Subscribers only listen; reading is how a closed socket is noticed."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
        # text or binary frames from a subscriber carry nothing; drop them


@app.websocket("/rooms/{room_id}/ws")
async def room_events(websocket: WebSocket, room_id: str, token: Optional[str] = None,
                      services: ChatServices = Depends(get_services)):
    """Relay a room's live events to one subscriber.

    Recent message events are replayed first. The subscription is opened
    before the replay, so an event may arrive twice; consumers de-duplicate
    on message id.
    """
    loop = asyncio.get_event_loop()
    try:
        await loop.run_in_executor(None, services.gate.authenticate, room_id, token)
    except ChatError as e:
        logger.info(f"WebSocket connection rejected for room {room_id}: {type(e).__name__}")
        await websocket.close(code=1008, reason="Unauthorized")
        return

    await websocket.accept()
    logger.info(f"WebSocket subscriber connected to room {room_id}")

    pubsub = None
    watcher = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        pubsub = await loop.run_in_executor(None, services.broadcaster.subscribe, room_id)
        backlog = await loop.run_in_executor(None, services.broadcaster.recent_events, room_id)
        for event in backlog:
            await websocket.send_text(json.dumps(event))
        logger.debug(f"Replayed {len(backlog)} events to subscriber of room {room_id}")

        def get_message():
            return pubsub.get_message(timeout=1.0, ignore_subscribe_messages=True)

        while not watcher.done():
            message = await loop.run_in_executor(None, get_message)
            if message is None or message.get("type") != "message":
                continue
            await websocket.send_text(message["data"])
            try:
                event_name = json.loads(message["data"]).get("event")
            except (json.JSONDecodeError, AttributeError):
                logger.warning(f"Unreadable event on room {room_id} channel")
                continue
            if event_name == DESTROY_EVENT:
                logger.info(f"Room {room_id} destroyed, closing subscriber")
                break
    except WebSocketDisconnect:
        logger.info(f"WebSocket subscriber disconnected from room {room_id}")
    except Exception as e:
        logger.error(f"WebSocket relay error for room {room_id}: {e}", exc_info=True)
    finally:
        watcher.cancel()
        outcome, = await asyncio.gather(watcher, return_exceptions=True)
        if isinstance(outcome, Exception):
            logger.error(f"Disconnect watcher for room {room_id} failed: {outcome!r}")
        if pubsub is not None:
            try:
                pubsub.close()
            except Exception as e:
                logger.debug(f"Error closing pub/sub for room {room_id}: {e}")
        try:
            await websocket.close()
        except RuntimeError:
            # already closed by the client
            pass
