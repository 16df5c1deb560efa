"""FastAPI WebSocket server for the Passt Nicht card game."""

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from config import config
from constants import ROOM_TIMEOUT_MINUTES
from game import RejectionReason
from handlers import HANDLERS, ConnectionContext, handle_connect, handle_disconnect
from logging_config import connection_id_var, room_code_var, setup_logging
from models import MalformedAction, events, parse_action
from room import RoomManager
from routers.health import router as health_router, set_health_dependencies

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)

REAPER_INTERVAL_SECONDS = 60

room_manager = RoomManager(target_score=config.rules.target_score)
_reaper_task: Optional[asyncio.Task] = None


async def _periodic_room_reaper():
    """Periodic task removing rooms nobody has been connected to for a while."""
    timeout = timedelta(minutes=ROOM_TIMEOUT_MINUTES)
    while True:
        try:
            await asyncio.sleep(REAPER_INTERVAL_SECONDS)
            removed = room_manager.reap_idle_rooms(timeout)
            if removed:
                logger.info(f"Reaped {len(removed)} idle rooms: {', '.join(removed)}")
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error(f"Room reaper failed: {e}")


async def _close_all_websockets():
    """Close all active WebSocket connections gracefully."""
    for room in list(room_manager.rooms.values()):
        for websocket in list(room.connections.values()):
            try:
                await websocket.close(code=1001, reason="Server shutting down")
            except Exception:
                pass
    logger.info("All WebSocket connections closed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler: start and stop background tasks."""
    global _reaper_task

    set_health_dependencies(room_manager=room_manager)
    _reaper_task = asyncio.create_task(_periodic_room_reaper())
    logger.info(f"Passt Nicht server started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    _reaper_task.cancel()
    try:
        await _reaper_task
    except asyncio.CancelledError:
        pass
    await _close_all_websockets()
    room_manager.rooms.clear()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Passt Nicht",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(health_router)


@app.post("/api/rooms")
async def create_room():
    """Reserve a fresh room code. The room's state is created by its first join."""
    room = room_manager.create_room()
    return {"room_code": room.code}


@app.websocket("/ws/{room_code}")
async def websocket_endpoint(websocket: WebSocket, room_code: str):
    await websocket.accept()

    # Clients reuse their player_id across reconnects to get their seat back
    player_id = websocket.query_params.get("player_id") or str(uuid.uuid4())
    room = room_manager.get_or_create_room(room_code)

    room_code_var.set(room.code)
    connection_id_var.set(player_id)
    logger.debug(f"WebSocket connected as {player_id}")

    ctx = ConnectionContext(websocket=websocket, player_id=player_id, room=room)
    await handle_connect(ctx)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug(f"WebSocket {player_id} closed")
                break
            if room.connections.get(player_id) is not websocket:
                # Superseded by a newer socket for the same seat
                break
            text = message.get("text")
            if text is None:
                await websocket.send_json(
                    events.error("Binary frames are not supported", RejectionReason.MALFORMED_ACTION)
                )
                continue
            await dispatch_message(text, ctx)
    except WebSocketDisconnect:
        logger.debug(f"WebSocket {player_id} closed")
    finally:
        await handle_disconnect(ctx)


async def dispatch_message(text: str, ctx: ConnectionContext) -> None:
    """
    Decode one inbound frame and run its handler.

    Malformed frames get a private error. An unexpected failure inside a
    handler is logged and reported to the sender; the connection stays open.
    """
    try:
        action = parse_action(json.loads(text))
    except (ValueError, RecursionError) as e:
        # JSONDecodeError and MalformedAction are ValueErrors; deeply nested
        # arrays exceed the recursion limit while decoding
        message = str(e) if isinstance(e, MalformedAction) else "Invalid message"
        await ctx.websocket.send_json(events.error(message, RejectionReason.MALFORMED_ACTION))
        return

    handler = HANDLERS[action.type]
    try:
        await handler(action, ctx)
    except Exception:
        logger.exception(f"Handler for {action.type.value} failed")
        await ctx.websocket.send_json(events.error("Internal server error"))


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Passt Nicht server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
