"""
Test suite for Room and RoomManager.

Covers:
- Seating, host assignment, room capacity, renames and reconnects
- Host-only start/restart and their phase checks
- Connection attach/detach and turn skipping
- Message broadcast and per-connection state
- Room creation, lookup and idle cleanup

Run with: pytest test_room.py -v
"""

import random
from datetime import timedelta

import pytest

from game import GamePhase, JokerWish, PlaySource, Rejection, RejectionReason
from room import JoinResult, Room, RoomManager


# =============================================================================
# Mock helpers
# =============================================================================

class MockWebSocket:
    """Mock WebSocket that collects sent messages."""

    def __init__(self):
        self.messages: list[dict] = []

    async def send_json(self, data: dict):
        self.messages.append(data)


class BrokenWebSocket:
    """Mock WebSocket whose peer has gone away."""

    async def send_json(self, data: dict):
        raise RuntimeError("connection closed")


def seated_room(num_players: int = 2) -> Room:
    room = Room(code="TEST")
    for i in range(num_players):
        room.attach(f"p{i}", MockWebSocket())
        room.join(f"p{i}", f"Player {i}")
    return room


def started_room(num_players: int = 2, seed: int = 1) -> Room:
    room = seated_room(num_players)
    assert room.start("p0", random.Random(seed)) is None
    return room


# =============================================================================
# Joining
# =============================================================================

class TestRoomJoin:

    def test_first_join_creates_state_and_host(self):
        room = Room(code="ABCD")
        assert room.state is None
        assert room.join("alice", "Alice") == JoinResult.SEATED
        assert room.state.host_id == "alice"
        assert room.is_host("alice")
        assert room.state.phase == GamePhase.LOBBY

    def test_later_joiners_are_not_host(self):
        room = seated_room(3)
        assert room.state.host_id == "p0"
        assert not room.is_host("p1")
        assert [p.id for p in room.state.players] == ["p0", "p1", "p2"]

    def test_room_full_at_six(self):
        room = seated_room(6)
        result = room.join("p6", "Seventh")
        assert isinstance(result, Rejection)
        assert result.reason == RejectionReason.ROOM_FULL
        assert len(room.state.players) == 6

    def test_rejoin_in_lobby_renames(self):
        room = seated_room(2)
        assert room.join("p1", "Bob") == JoinResult.RENAMED
        assert room.state.get_player("p1").name == "Bob"
        assert len(room.state.players) == 2

    def test_unknown_player_after_start_rejected(self):
        room = started_room(2)
        result = room.join("late", "Latecomer")
        assert result.reason == RejectionReason.WRONG_PHASE
        assert room.state.get_player("late") is None

    def test_known_player_after_start_reconnects(self):
        room = started_room(2)
        room.detach("p1")
        assert room.join("p1", "Player 1") == JoinResult.RECONNECTED
        assert room.state.get_player("p1").connected

    def test_reconnect_keeps_hand_and_score(self):
        room = started_room(2)
        hand = list(room.state.get_player("p1").hand)
        room.detach("p1")
        room.join("p1", "Player 1")
        assert room.state.get_player("p1").hand == hand

    def test_duplicate_join_is_idempotent(self):
        room = started_room(2)
        before = room.state.copy()
        room.join("p1", "Player 1")
        room.join("p1", "Player 1")
        assert room.state == before


# =============================================================================
# Start / Restart
# =============================================================================

class TestRoomLifecycle:

    def test_start_before_anyone_joined(self):
        room = Room(code="ABCD")
        assert room.start("p0").reason == RejectionReason.WRONG_PHASE

    def test_only_host_can_start(self):
        room = seated_room(2)
        assert room.start("p1").reason == RejectionReason.AUTHORIZATION_ERROR
        assert room.state.phase == GamePhase.LOBBY

    def test_start_needs_two_players(self):
        room = seated_room(1)
        assert room.start("p0").reason == RejectionReason.NOT_ENOUGH_PLAYERS

    def test_start_deals_round(self):
        room = started_room(3)
        assert room.state.phase == GamePhase.PLAYING
        assert room.state.round_number == 1
        assert all(len(p.hand) == 5 for p in room.state.players)

    def test_start_twice_rejected(self):
        room = started_room(2)
        assert room.start("p0").reason == RejectionReason.WRONG_PHASE

    def test_restart_during_round_rejected(self):
        room = started_room(2)
        assert room.restart("p0").reason == RejectionReason.WRONG_PHASE

    def test_restart_in_lobby_rejected(self):
        room = seated_room(2)
        assert room.restart("p0").reason == RejectionReason.WRONG_PHASE

    def test_non_host_restart_rejected(self):
        room = started_room(2)
        room.state.phase = GamePhase.ROUND_END
        assert room.restart("p1").reason == RejectionReason.AUTHORIZATION_ERROR

    def test_restart_after_round_keeps_scores(self):
        room = started_room(2)
        room.state.phase = GamePhase.ROUND_END
        room.state.players[0].score = 17
        assert room.restart("p0", random.Random(2)) is None
        assert room.state.phase == GamePhase.PLAYING
        assert room.state.round_number == 2
        assert room.state.players[0].score == 17

    def test_restart_after_game_over_resets_scores(self):
        room = started_room(2)
        room.state.phase = GamePhase.GAME_OVER
        room.state.players[0].score = 55
        room.state.players[1].score = -4
        assert room.restart("p0", random.Random(2)) is None
        assert room.state.phase == GamePhase.PLAYING
        assert room.state.round_number == 1
        assert [p.score for p in room.state.players] == [0, 0]


# =============================================================================
# Play delegation
# =============================================================================

class TestRoomPlays:

    def test_plays_without_game(self):
        room = Room(code="ABCD")
        assert room.play_to_discard("p0", "c1", PlaySource.HAND).reason == RejectionReason.WRONG_PHASE
        assert room.play_to_display("p0", "c1").reason == RejectionReason.WRONG_PHASE
        assert room.joker_wish("p0", JokerWish.for_number(3)).reason == RejectionReason.WRONG_PHASE

    def test_plays_in_lobby(self):
        room = seated_room(2)
        assert room.play_to_display("p0", "c1").reason == RejectionReason.WRONG_PHASE

    def test_display_play_updates_state(self):
        room = started_room(2)
        player = room.state.current_player()
        card = next(c for c in player.hand if not c.is_joker)
        assert room.play_to_display(player.id, card.id) is None
        assert card in room.state.get_player(player.id).display.all_cards()

    def test_rejected_play_keeps_state(self):
        room = started_room(2)
        before = room.state
        other = room.state.players[1 - room.state.current_player_index]
        rejection = room.play_to_display(other.id, other.hand[0].id)
        assert rejection.reason == RejectionReason.OUT_OF_TURN
        assert room.state is before


# =============================================================================
# Connections
# =============================================================================

class TestRoomConnections:

    def test_attach_unseated_is_not_reconnect(self):
        room = Room(code="ABCD")
        assert room.attach("x", MockWebSocket()) is False
        assert "x" in room.connections

    def test_detach_marks_seat_disconnected(self):
        room = started_room(3)
        assert room.detach("p1") is True
        assert "p1" not in room.connections
        assert not room.state.get_player("p1").connected

    def test_detach_unseated(self):
        room = Room(code="ABCD")
        room.attach("x", MockWebSocket())
        assert room.detach("x") is False
        assert room.connections == {}

    def test_reattach_marks_seat_connected(self):
        room = started_room(2)
        room.detach("p1")
        assert room.attach("p1", MockWebSocket()) is True
        assert room.state.get_player("p1").connected

    def test_disconnected_seat_skipped_in_turn_order(self):
        room = started_room(3)
        room.state.current_player_index = 0
        room.detach("p1")
        card = next(c for c in room.state.players[0].hand if not c.is_joker)
        room.play_to_display("p0", card.id)
        assert room.state.current_player_index == 2

    def test_is_idle(self):
        room = Room(code="ABCD")
        assert room.is_idle(timedelta(0))
        assert not room.is_idle(timedelta(minutes=5))
        room.attach("x", MockWebSocket())
        assert not room.is_idle(timedelta(0))


# =============================================================================
# Messaging
# =============================================================================

class TestRoomMessaging:

    @pytest.mark.asyncio
    async def test_broadcast_reaches_everyone(self):
        room = seated_room(3)
        await room.broadcast({"type": "test"})
        for ws in room.connections.values():
            assert ws.messages == [{"type": "test"}]

    @pytest.mark.asyncio
    async def test_broadcast_exclude(self):
        room = seated_room(2)
        await room.broadcast({"type": "test"}, exclude="p0")
        assert room.connections["p0"].messages == []
        assert room.connections["p1"].messages == [{"type": "test"}]

    @pytest.mark.asyncio
    async def test_failed_send_does_not_stop_broadcast(self):
        room = seated_room(2)
        room.connections["p0"] = BrokenWebSocket()
        await room.broadcast({"type": "test"})
        assert room.connections["p1"].messages == [{"type": "test"}]

    @pytest.mark.asyncio
    async def test_send_to_unknown_is_noop(self):
        room = seated_room(1)
        await room.send_to("nobody", {"type": "test"})
        assert room.connections["p0"].messages == []

    @pytest.mark.asyncio
    async def test_broadcast_state_is_per_recipient(self):
        room = started_room(2)
        await room.broadcast_state()
        for pid, ws in room.connections.items():
            [message] = ws.messages
            assert message["type"] == "state_update"
            own = [c["id"] for c in message["state"]["my_hand"]]
            assert own == [c.id for c in room.state.get_player(pid).hand]

    @pytest.mark.asyncio
    async def test_broadcast_state_without_game(self):
        room = Room(code="ABCD")
        ws = MockWebSocket()
        room.attach("x", ws)
        await room.broadcast_state()
        assert ws.messages == []


# =============================================================================
# RoomManager
# =============================================================================

class TestRoomManager:

    def test_create_room_returns_room(self):
        rm = RoomManager()
        room = rm.create_room()
        assert len(room.code) == 4
        assert room.code.isupper()
        assert room.code in rm.rooms

    def test_create_multiple_rooms_unique_codes(self):
        rm = RoomManager()
        codes = {rm.create_room().code for _ in range(20)}
        assert len(codes) == 20

    def test_get_room_case_insensitive(self):
        rm = RoomManager()
        room = rm.create_room("abcd")
        assert room.code == "ABCD"
        assert rm.get_room("abcd") is room
        assert rm.get_room("ABCD") is room

    def test_get_or_create_room(self):
        rm = RoomManager()
        room = rm.get_or_create_room("wxyz")
        assert rm.get_or_create_room("WXYZ") is room
        assert len(rm.rooms) == 1

    def test_rooms_are_independent(self):
        rm = RoomManager()
        a = rm.create_room("AAAA")
        b = rm.create_room("BBBB")
        a.join("p0", "Alice")
        assert b.state is None
        assert a.game_lock is not b.game_lock

    def test_target_score_passed_to_rooms(self):
        rm = RoomManager(target_score=30)
        room = rm.create_room()
        room.join("p0", "Alice")
        assert room.state.target_score == 30

    def test_remove_room(self):
        rm = RoomManager()
        room = rm.create_room()
        rm.remove_room(room.code.lower())
        assert rm.get_room(room.code) is None

    def test_remove_missing_room_is_noop(self):
        rm = RoomManager()
        rm.remove_room("NOPE")
        assert rm.rooms == {}

    def test_reap_idle_rooms(self):
        rm = RoomManager()
        idle = rm.create_room("IDLE")
        busy = rm.create_room("BUSY")
        busy.attach("p0", MockWebSocket())
        removed = rm.reap_idle_rooms(timedelta(0))
        assert removed == [idle.code]
        assert list(rm.rooms) == ["BUSY"]


class TestReconnectIdempotence:

    def test_repeated_join_with_new_names_keeps_one_seat(self):
        room = started_room(2)
        room.detach("p1")
        room.join("p1", "First")
        room.join("p1", "Second")
        assert [p.id for p in room.state.players] == ["p0", "p1"]
        assert room.state.get_player("p1").name == "Second"
        assert room.state.get_player("p1").connected
