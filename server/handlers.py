"""WebSocket action handlers for the Passt Nicht card game.

Each handler corresponds to a single inbound action type. Handlers are
dispatched via the HANDLERS dict in main.py and always receive an already
validated action model (see models/actions.py).

Every handler works the same way: take the room's lock, ask the Room to apply
the action, reply privately with an error on rejection, otherwise broadcast
the resulting events and a fresh per-connection state.
"""

from dataclasses import dataclass

from fastapi import WebSocket

from game import GamePhase, Rejection
from models import (
    ActionType,
    JoinAction,
    JokerWishAction,
    PlayToDiscardAction,
    PlayToDisplayAction,
    RestartGameAction,
    StartGameAction,
    events,
)
from models.events import Destination
from room import JoinResult, Room


@dataclass
class ConnectionContext:
    """State tracked per WebSocket connection."""

    websocket: WebSocket
    player_id: str
    room: Room


async def _reject(ctx: ConnectionContext, rejection: Rejection) -> None:
    ctx.room.log.debug(
        f"Rejected {rejection.reason.value}: {rejection.message}",
        extra={"player_id": ctx.player_id},
    )
    await ctx.websocket.send_json(events.rejected(rejection))


async def _announce_round_result(room: Room) -> None:
    """Broadcast the round/game result if the last play ended the round."""
    if room.state.phase == GamePhase.ROUND_END:
        room.log.info(f"Round {room.state.round_number} ended: {room.state.round_scores}")
        await room.broadcast(events.round_ended(room.state))
    elif room.state.phase == GamePhase.GAME_OVER:
        message = events.game_over(room.state)
        room.log.info(f"Game over, winner {message['winner_id']}")
        await room.broadcast(message)


# ---------------------------------------------------------------------------
# Lobby handlers
# ---------------------------------------------------------------------------

async def handle_join(action: JoinAction, ctx: ConnectionContext) -> None:
    room = ctx.room
    async with room.game_lock:
        result = room.join(ctx.player_id, action.name)
        if isinstance(result, Rejection):
            await _reject(ctx, result)
            return

        if result == JoinResult.SEATED:
            await room.broadcast(events.player_joined(ctx.player_id, action.name))
        await room.broadcast_state()


# ---------------------------------------------------------------------------
# Game lifecycle handlers
# ---------------------------------------------------------------------------

async def handle_start_game(action: StartGameAction, ctx: ConnectionContext) -> None:
    room = ctx.room
    async with room.game_lock:
        rejection = room.start(ctx.player_id)
        if rejection:
            await _reject(ctx, rejection)
            return
        await room.broadcast_state()


async def handle_restart_game(action: RestartGameAction, ctx: ConnectionContext) -> None:
    room = ctx.room
    async with room.game_lock:
        rejection = room.restart(ctx.player_id)
        if rejection:
            await _reject(ctx, rejection)
            return
        await room.broadcast_state()


# ---------------------------------------------------------------------------
# Turn action handlers
# ---------------------------------------------------------------------------

async def handle_play_to_discard(action: PlayToDiscardAction, ctx: ConnectionContext) -> None:
    room = ctx.room
    async with room.game_lock:
        rejection = room.play_to_discard(ctx.player_id, action.card_id, action.source)
        if rejection:
            await _reject(ctx, rejection)
            return

        card = room.state.discard_pile.top_card
        await room.broadcast(events.card_played(ctx.player_id, card, Destination.DISCARD))
        await _announce_round_result(room)
        await room.broadcast_state()


async def handle_play_to_display(action: PlayToDisplayAction, ctx: ConnectionContext) -> None:
    room = ctx.room
    async with room.game_lock:
        player = room.state.get_player(ctx.player_id) if room.state else None
        card = player.find_in_hand(action.card_id) if player else None

        rejection = room.play_to_display(ctx.player_id, action.card_id)
        if rejection:
            await _reject(ctx, rejection)
            return

        await room.broadcast(events.card_played(ctx.player_id, card, Destination.DISPLAY))
        await room.broadcast_state()


async def handle_joker_wish(action: JokerWishAction, ctx: ConnectionContext) -> None:
    room = ctx.room
    async with room.game_lock:
        rejection = room.joker_wish(ctx.player_id, action.wish.to_wish())
        if rejection:
            await _reject(ctx, rejection)
            return
        await room.broadcast_state()


# ---------------------------------------------------------------------------
# Connection handlers
# ---------------------------------------------------------------------------

async def handle_connect(ctx: ConnectionContext) -> None:
    """
    Attach a freshly opened socket and show it the current board.

    An older socket for the same player id is closed; only the newest one
    speaks for the seat.
    """
    room = ctx.room
    async with room.game_lock:
        previous = room.connections.get(ctx.player_id)
        reconnected = room.attach(ctx.player_id, ctx.websocket)
        if previous is not None and previous is not ctx.websocket:
            await room.close_socket(previous, "Replaced by a newer connection")
        await ctx.websocket.send_json(events.connected(ctx.player_id, room.code))
        if reconnected:
            await room.broadcast_state()
        elif room.state is not None:
            await room.send_to(ctx.player_id, events.state_update(room.state, ctx.player_id))


async def handle_disconnect(ctx: ConnectionContext) -> None:
    """Detach a closed socket; its seat stays but turn order skips it."""
    room = ctx.room
    async with room.game_lock:
        if room.connections.get(ctx.player_id) is not ctx.websocket:
            # A newer socket for the same player already replaced this one
            return
        if room.detach(ctx.player_id):
            await room.broadcast(events.player_left(ctx.player_id))
            await room.broadcast_state()


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    ActionType.JOIN: handle_join,
    ActionType.START_GAME: handle_start_game,
    ActionType.PLAY_TO_DISCARD: handle_play_to_discard,
    ActionType.PLAY_TO_DISPLAY: handle_play_to_display,
    ActionType.JOKER_WISH: handle_joker_wish,
    ActionType.RESTART_GAME: handle_restart_game,
}
