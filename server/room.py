"""
Room management for multiplayer Passt Nicht games.

This module handles room creation, seat management, and WebSocket
communication for multiplayer game sessions.

A Room contains:
    - A unique 4-letter code for joining
    - The WebSocket connections currently attached (seated or not)
    - The authoritative GameState (created by the first join)
    - A lock serializing every read-modify-write of that state

Room methods that change state are synchronous and must be called while
holding game_lock. They return None (or a result value) on success and a
Rejection otherwise; a rejected call leaves the state untouched.
"""

import asyncio
import logging
import random
import string
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Union

from fastapi import WebSocket

from constants import MAX_PLAYERS, MIN_PLAYERS, ROOM_CODE_LENGTH, DEFAULT_TARGET_SCORE
from game import (
    GamePhase,
    GameResult,
    GameState,
    JokerWish,
    PlaySource,
    Rejection,
    RejectionReason,
    add_player,
    apply_joker_wish,
    create_initial_state,
    play_to_discard,
    play_to_display,
    reset_scores,
    start_round,
)
from logging_config import RoomLogger
from models import events

logger = logging.getLogger(__name__)


class JoinResult(str, Enum):
    """What a successful join did."""

    SEATED = "seated"            # New seat in the lobby
    RENAMED = "renamed"          # Same seat joined again in the lobby
    RECONNECTED = "reconnected"  # Known seat came back after the game started


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Room:
    """
    A game room hosting one Passt Nicht game.

    Attributes:
        code: 4-letter room code (e.g., "ABCD").
        state: Authoritative game state, None until the first join.
        connections: Attached WebSockets keyed by player/connection id.
        target_score: Score that ends games played in this room.
        game_lock: asyncio.Lock for serializing state mutations.
        last_activity: When a connection last attached, left, or acted.
    """

    code: str
    state: Optional[GameState] = None
    connections: dict[str, WebSocket] = field(default_factory=dict)
    target_score: int = DEFAULT_TARGET_SCORE
    game_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    last_activity: datetime = field(default_factory=_now)
    log: RoomLogger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.log = RoomLogger.for_room(__name__, self.code)

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    def attach(self, player_id: str, websocket: WebSocket) -> bool:
        """
        Register an open socket with the room.

        A socket whose id already has a seat counts as a reconnect and marks
        the seat connected again.

        Returns:
            True if a disconnected seat came back (state changed).
        """
        self.connections[player_id] = websocket
        self.touch()
        player = self.state.get_player(player_id) if self.state else None
        if player and not player.connected:
            self._mark_connected(player_id, True)
            self.log.info(f"Seat {player_id} reconnected")
            return True
        return False

    def detach(self, player_id: str) -> bool:
        """
        Forget a closed socket and mark its seat disconnected.

        The seat stays in the game and keeps its turn rights; turn advancement
        skips it until it reconnects.

        Returns:
            True if a seated player went offline (state changed).
        """
        self.connections.pop(player_id, None)
        self.touch()
        player = self.state.get_player(player_id) if self.state else None
        if player and player.connected:
            self._mark_connected(player_id, False)
            self.log.info(f"Seat {player_id} disconnected")
            return True
        return False

    def _mark_connected(self, player_id: str, connected: bool) -> None:
        new_state = self.state.copy()
        new_state.get_player(player_id).connected = connected
        self.state = new_state

    def touch(self) -> None:
        self.last_activity = _now()

    def is_idle(self, timeout: timedelta) -> bool:
        """No sockets attached and nothing happened for at least timeout."""
        return not self.connections and _now() - self.last_activity >= timeout

    # -------------------------------------------------------------------------
    # Seats
    # -------------------------------------------------------------------------

    def is_host(self, player_id: str) -> bool:
        return self.state is not None and self.state.host_id == player_id

    def join(self, player_id: str, name: str) -> Union[JoinResult, Rejection]:
        """
        Seat a player, rename an existing seat, or reconnect a known seat.

        The first joiner becomes host and creates the game state. New seats are
        only accepted in the lobby, up to MAX_PLAYERS.

        Args:
            player_id: Joining connection's id.
            name: Display name.

        Returns:
            What happened, or a Rejection.
        """
        if self.state is None:
            self.state = create_initial_state(player_id, self.target_score)
            self.log.info(f"Room opened by host {player_id}")

        existing = self.state.get_player(player_id)
        if existing:
            new_state = self.state.copy()
            player = new_state.get_player(player_id)
            player.name = name
            if self.state.phase == GamePhase.LOBBY:
                self.state = new_state
                return JoinResult.RENAMED
            player.connected = True
            self.state = new_state
            return JoinResult.RECONNECTED

        if self.state.phase != GamePhase.LOBBY:
            return Rejection(RejectionReason.WRONG_PHASE, "Game already in progress")

        if len(self.state.players) >= MAX_PLAYERS:
            return Rejection(RejectionReason.ROOM_FULL, f"Room is full (max {MAX_PLAYERS} players)")

        self.state = add_player(self.state, player_id, name)
        self.log.info(f"{name} took seat {len(self.state.players) - 1}", extra={"player_id": player_id})
        return JoinResult.SEATED

    # -------------------------------------------------------------------------
    # Game Lifecycle
    # -------------------------------------------------------------------------

    def start(self, player_id: str, rng: Optional[random.Random] = None) -> Optional[Rejection]:
        """Host deals the first round."""
        if self.state is None:
            return Rejection(RejectionReason.WRONG_PHASE, "Nobody has joined yet")
        if not self.is_host(player_id):
            return Rejection(RejectionReason.AUTHORIZATION_ERROR, "Only the host can start the game")
        if self.state.phase != GamePhase.LOBBY:
            return Rejection(RejectionReason.WRONG_PHASE, "Game already started")
        if len(self.state.players) < MIN_PLAYERS:
            return Rejection(
                RejectionReason.NOT_ENOUGH_PLAYERS, f"Need at least {MIN_PLAYERS} players"
            )

        self.state = start_round(self.state, rng)
        self.log.info(f"Game started with {len(self.state.players)} players")
        return None

    def restart(self, player_id: str, rng: Optional[random.Random] = None) -> Optional[Rejection]:
        """
        Host deals the next round (scores kept) or a new game (scores zeroed).
        """
        if self.state is None:
            return Rejection(RejectionReason.WRONG_PHASE, "Nobody has joined yet")
        if not self.is_host(player_id):
            return Rejection(RejectionReason.AUTHORIZATION_ERROR, "Only the host can restart")

        if self.state.phase == GamePhase.ROUND_END:
            self.state = start_round(self.state, rng)
        elif self.state.phase == GamePhase.GAME_OVER:
            self.state = start_round(reset_scores(self.state), rng)
            self.log.info("New game started, scores reset")
        else:
            return Rejection(RejectionReason.WRONG_PHASE, "Nothing to restart yet")

        self.log.info(f"Round {self.state.round_number} dealt")
        return None

    # -------------------------------------------------------------------------
    # Play Actions
    # -------------------------------------------------------------------------

    def _apply(self, result: GameResult) -> Optional[Rejection]:
        if isinstance(result, Rejection):
            return result
        self.state = result
        self.touch()
        return None

    def _no_game(self) -> Rejection:
        return Rejection(RejectionReason.WRONG_PHASE, "Game not in progress")

    def play_to_discard(self, player_id: str, card_id: str, source: PlaySource) -> Optional[Rejection]:
        if self.state is None:
            return self._no_game()
        return self._apply(play_to_discard(self.state, player_id, card_id, source))

    def play_to_display(self, player_id: str, card_id: str) -> Optional[Rejection]:
        if self.state is None:
            return self._no_game()
        return self._apply(play_to_display(self.state, player_id, card_id))

    def joker_wish(self, player_id: str, wish: JokerWish) -> Optional[Rejection]:
        if self.state is None:
            return self._no_game()
        return self._apply(apply_joker_wish(self.state, player_id, wish))

    # -------------------------------------------------------------------------
    # Messaging
    # -------------------------------------------------------------------------

    async def send_to(self, player_id: str, message: dict) -> None:
        """
        Send a message to one attached connection.

        Args:
            player_id: ID of the recipient.
            message: JSON-serializable message dict.
        """
        websocket = self.connections.get(player_id)
        if websocket is None:
            return
        try:
            await websocket.send_json(message)
        except Exception as e:
            self.log.debug(f"Send to {player_id} failed: {e}")

    async def close_socket(self, websocket: WebSocket, reason: str) -> None:
        """Close a socket the room no longer tracks; a peer that is already gone is fine."""
        try:
            await websocket.close(code=1000, reason=reason)
        except Exception as e:
            self.log.debug(f"Closing replaced socket failed: {e}")

    async def broadcast(self, message: dict, exclude: Optional[str] = None) -> None:
        """
        Send the same message to every attached connection.

        Only for public payloads; use broadcast_state() for game state.

        Args:
            message: JSON-serializable message dict.
            exclude: Optional player ID to skip.
        """
        for player_id in list(self.connections):
            if player_id != exclude:
                await self.send_to(player_id, message)

    async def broadcast_state(self) -> None:
        """Send every attached connection its own freshly computed view."""
        if self.state is None:
            return
        for player_id in list(self.connections):
            await self.send_to(player_id, events.state_update(self.state, player_id))


class RoomManager:
    """
    Manages all active game rooms.

    Provides room creation with unique codes, lookup, and idle cleanup.
    A single RoomManager instance is used by the server.
    """

    def __init__(self, target_score: int = DEFAULT_TARGET_SCORE) -> None:
        self.rooms: dict[str, Room] = {}
        self.target_score = target_score

    def _generate_code(self, max_attempts: int = 100) -> str:
        """Generate a unique room code."""
        for _ in range(max_attempts):
            code = "".join(random.choices(string.ascii_uppercase, k=ROOM_CODE_LENGTH))
            if code not in self.rooms:
                return code
        raise RuntimeError("Could not generate unique room code")

    def create_room(self, code: Optional[str] = None) -> Room:
        """
        Create a new room.

        Args:
            code: Room code to use; a fresh unique one if omitted.

        Returns:
            The newly created Room.
        """
        code = (code or self._generate_code()).upper()
        room = Room(code=code, target_score=self.target_score)
        self.rooms[code] = room
        logger.info(f"Room {code} created")
        return room

    def get_room(self, code: str) -> Optional[Room]:
        """Get a room by its code (case-insensitive)."""
        return self.rooms.get(code.upper())

    def get_or_create_room(self, code: str) -> Room:
        return self.get_room(code) or self.create_room(code)

    def remove_room(self, code: str) -> None:
        if self.rooms.pop(code.upper(), None) is not None:
            logger.info(f"Room {code} removed")

    def reap_idle_rooms(self, timeout: timedelta) -> list[str]:
        """
        Remove rooms nobody has been connected to for at least timeout.

        Returns:
            Codes of the removed rooms.
        """
        idle = [code for code, room in self.rooms.items() if room.is_idle(timeout)]
        for code in idle:
            self.remove_room(code)
        return idle
