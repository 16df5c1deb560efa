"""
Outbound event definitions for Passt Nicht.

Every message the server sends is a JSON object with a "type" tag. The
factory functions below are the only place these payloads are built, so the
wire format lives in one file.
"""

from enum import Enum
from typing import Optional

from game import Card, GameState, Rejection, RejectionReason, to_client_state, winner


class EventType(str, Enum):
    """All outbound event types."""

    CONNECTED = "connected"
    STATE_UPDATE = "state_update"
    ERROR = "error"
    CARD_PLAYED = "card_played"
    ROUND_ENDED = "round_ended"
    GAME_OVER = "game_over"
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"


class Destination(str, Enum):
    """Where a played card went."""

    DISCARD = "discard"
    DISPLAY = "display"


# =============================================================================
# Event Factory Functions
# =============================================================================


def connected(player_id: str, room_code: str) -> dict:
    """Sent once when a socket opens, tells the client its player id."""
    return {"type": EventType.CONNECTED.value, "player_id": player_id, "room_code": room_code}


def state_update(state: GameState, viewer_id: str) -> dict:
    """
    Create a StateUpdate event for one recipient.

    Never broadcast a single instance: the payload contains the viewer's hand.

    Args:
        state: Authoritative game state.
        viewer_id: Recipient's player/connection id.
    """
    return {"type": EventType.STATE_UPDATE.value, "state": to_client_state(state, viewer_id)}


def error(message: str, code: Optional[RejectionReason] = None) -> dict:
    """Create a private Error event."""
    return {
        "type": EventType.ERROR.value,
        "message": message,
        "code": code.value if code else "internal",
    }


def rejected(rejection: Rejection) -> dict:
    """Create an Error event from a rule or session rejection."""
    return error(rejection.message, rejection.reason)


def card_played(player_id: str, card: Card, destination: Destination) -> dict:
    """
    Create a CardPlayed event.

    Args:
        player_id: Who played.
        card: The card (always public once played).
        destination: "discard" or "display".
    """
    return {
        "type": EventType.CARD_PLAYED.value,
        "player_id": player_id,
        "card": card.to_dict(),
        "destination": Destination(destination).value,
    }


def round_ended(state: GameState) -> dict:
    """
    Create a RoundEnded event with each seat's round points and new total.

    Args:
        state: State right after end_round().
    """
    return {
        "type": EventType.ROUND_ENDED.value,
        "round_number": state.round_number,
        "scores": [
            {
                "player_id": p.id,
                "round_points": state.round_scores.get(p.id, 0),
                "total_score": p.score,
            }
            for p in state.players
        ],
    }


def game_over(state: GameState) -> dict:
    """
    Create a GameOver event with the winner and final standings.

    Args:
        state: State in the GAME_OVER phase.
    """
    best = winner(state)
    return {
        "type": EventType.GAME_OVER.value,
        "winner_id": best.id if best else None,
        "final_scores": [
            {"player_id": p.id, "total_score": p.score}
            for p in state.players
        ],
    }


def player_joined(player_id: str, name: str) -> dict:
    return {"type": EventType.PLAYER_JOINED.value, "player_id": player_id, "name": name}


def player_left(player_id: str) -> dict:
    return {"type": EventType.PLAYER_LEFT.value, "player_id": player_id}
