"""
Operational endpoints.

- GET /health   process is up (always 200)
- GET /ready    room manager wired by the lifespan (200) or not yet (503)
- GET /metrics  room, seat and connection counts
"""

from collections import Counter
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])

# Set by main.lifespan; None until the app has started
_room_manager = None


def set_health_dependencies(room_manager=None):
    global _room_manager
    _room_manager = room_manager


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check():
    return {"status": "ok", "timestamp": _now()}


@router.get("/ready")
async def readiness_check():
    """Report 503 until rooms can be served."""
    if _room_manager is None:
        return JSONResponse(
            status_code=503,
            content={
                "status": "starting",
                "checks": {"room_manager": {"status": "not_configured"}},
                "timestamp": _now(),
            },
        )
    return {
        "status": "ok",
        "checks": {"room_manager": {"status": "ok"}},
        "timestamp": _now(),
    }


@router.get("/metrics")
async def metrics():
    """
    Snapshot of in-memory room usage.

    Rooms reserved through POST /api/rooms but never joined have no state and
    are counted under active_rooms only.
    """
    data = {"timestamp": _now()}
    if _room_manager is None:
        return data

    rooms = list(_room_manager.rooms.values())
    games = [room.state for room in rooms if room.state is not None]
    data.update({
        "active_rooms": len(rooms),
        "total_players": sum(len(state.players) for state in games),
        "connected_websockets": sum(len(room.connections) for room in rooms),
        "rooms_by_phase": dict(Counter(state.phase.value for state in games)),
    })
    return data
