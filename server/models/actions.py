"""
Inbound action models and validation.

Every WebSocket frame from a client is parsed into one of these models before
any handler sees it. Anything that does not fit a known shape is rejected
here, so handlers never deal with malformed input.
"""

from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

from game import Color, JokerWish, PlaySource, WishKind


class ActionType(str, Enum):
    """Inbound action types."""
    JOIN = "join"
    START_GAME = "start_game"
    PLAY_TO_DISCARD = "play_to_discard"
    PLAY_TO_DISPLAY = "play_to_display"
    JOKER_WISH = "joker_wish"
    RESTART_GAME = "restart_game"


class MalformedAction(ValueError):
    """Raised by parse_action() for input that is not a valid action."""


class BaseAction(BaseModel):
    """Base action model."""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, frozen=True)

    type: ActionType


class JoinAction(BaseAction):
    """Take a seat (lobby) or reconnect to an existing one."""
    name: str = Field(..., min_length=1, max_length=30)


class StartGameAction(BaseAction):
    """Host starts the first round."""


class PlayToDiscardAction(BaseAction):
    """Discard a card from hand or from the top of a display stack."""
    card_id: str = Field(..., min_length=1, validation_alias=AliasChoices("card_id", "cardId"))
    source: PlaySource = Field(PlaySource.HAND, validation_alias=AliasChoices("source", "from"))


class PlayToDisplayAction(BaseAction):
    """Put a hand card on the display."""
    card_id: str = Field(..., min_length=1, validation_alias=AliasChoices("card_id", "cardId"))


class WishPayload(BaseModel):
    """
    A joker wish as sent by clients.

    Accepts {"color": "red"}, {"number": 7}, and the tagged forms
    {"type": "color", "color": "red"} / {"type": "number", "number": 7}.
    """
    type: Optional[WishKind] = None
    color: Optional[Literal["red", "blue", "green", "yellow"]] = None
    number: Optional[int] = Field(None, ge=1, le=10)

    @model_validator(mode="after")
    def _exactly_one(self) -> "WishPayload":
        if (self.color is None) == (self.number is None):
            raise ValueError("wish needs exactly one of color or number")
        if self.type == WishKind.COLOR and self.color is None:
            raise ValueError("color wish without a color")
        if self.type == WishKind.NUMBER and self.number is None:
            raise ValueError("number wish without a number")
        return self

    def to_wish(self) -> JokerWish:
        if self.color is not None:
            return JokerWish.for_color(Color(self.color))
        return JokerWish.for_number(self.number)


class JokerWishAction(BaseAction):
    """Choose the wish for a joker just played."""
    wish: WishPayload


class RestartGameAction(BaseAction):
    """Host deals the next round, or a fresh game after game over."""


Action = Union[
    JoinAction,
    StartGameAction,
    PlayToDiscardAction,
    PlayToDisplayAction,
    JokerWishAction,
    RestartGameAction,
]

ACTION_MODELS: dict[ActionType, type[BaseAction]] = {
    ActionType.JOIN: JoinAction,
    ActionType.START_GAME: StartGameAction,
    ActionType.PLAY_TO_DISCARD: PlayToDiscardAction,
    ActionType.PLAY_TO_DISPLAY: PlayToDisplayAction,
    ActionType.JOKER_WISH: JokerWishAction,
    ActionType.RESTART_GAME: RestartGameAction,
}


def parse_action(data: Any) -> Action:
    """
    Parse a decoded JSON message into an action model.

    Args:
        data: Decoded JSON value from the WebSocket.

    Returns:
        Parsed action model.

    Raises:
        MalformedAction: If the type is missing/unknown or fields are invalid.
    """
    if not isinstance(data, dict):
        raise MalformedAction("Message must be a JSON object")

    raw_type = data.get("type")
    if not raw_type:
        raise MalformedAction("Missing action type")

    try:
        action_type = ActionType(raw_type)
    except ValueError:
        raise MalformedAction(f"Unknown action type: {raw_type}")

    try:
        return ACTION_MODELS[action_type].model_validate(data)
    except ValidationError as e:
        details = "; ".join(err["msg"] for err in e.errors())
        raise MalformedAction(f"Invalid {action_type.value} action: {details}")
