"""Wire models for the Passt Nicht server."""

from .actions import (
    Action,
    ActionType,
    JoinAction,
    JokerWishAction,
    MalformedAction,
    PlayToDiscardAction,
    PlayToDisplayAction,
    RestartGameAction,
    StartGameAction,
    WishPayload,
    parse_action,
)
from .events import Destination, EventType

__all__ = [
    "Action",
    "ActionType",
    "JoinAction",
    "JokerWishAction",
    "MalformedAction",
    "PlayToDiscardAction",
    "PlayToDisplayAction",
    "RestartGameAction",
    "StartGameAction",
    "WishPayload",
    "parse_action",
    "Destination",
    "EventType",
]
