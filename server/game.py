"""
Game logic for Passt Nicht.

This module implements the authoritative game-state machine: cards and deck,
player and discard pile state, the legal-play rule, turn flow, and scoring.
Every transition is a pure function that takes a GameState and returns either
a new GameState or a Rejection; the input state is never modified.

Passt Nicht Rules Summary:
    - 84 cards: numbers 1-10 in red, blue, green and yellow (two of each)
      plus 4 jokers
    - Each player is dealt 5 cards, one card opens the discard pile
    - On your turn either discard a matching card (same color or number as
      the top card) from your hand or from the top of one of your display
      stacks, or place a hand card face-up on your display and draw one
    - Jokers match anything; whoever plays one wishes a color or a number
      that the next discard must satisfy
    - The round ends when someone empties their hand by discarding
    - Display cards score their number, cards left in hand cost their number
      (jokers cost 5); the game ends once someone reaches the target score
"""

import itertools
import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Union

from constants import (
    CARD_NUMBERS,
    CARDS_PER_COLOR_NUMBER,
    DEFAULT_TARGET_SCORE,
    HAND_SIZE,
    JOKER_COUNT,
    JOKER_DISPLAY_VALUE,
    JOKER_HAND_PENALTY,
)


class Color(str, Enum):
    """Card colors. JOKER is the color carried by the four wild cards."""

    RED = "red"
    BLUE = "blue"
    GREEN = "green"
    YELLOW = "yellow"
    JOKER = "joker"


# Display stacks and wishes only ever use the four real colors
CARD_COLORS: tuple[Color, ...] = (Color.RED, Color.BLUE, Color.GREEN, Color.YELLOW)


class GamePhase(str, Enum):
    """
    Phases of a Passt Nicht game.

    Flow: LOBBY -> PLAYING -> ROUND_END -> PLAYING ... -> GAME_OVER
    GAME_OVER can be restarted into PLAYING with scores reset.
    """

    LOBBY = "lobby"
    PLAYING = "playing"
    ROUND_END = "round_end"
    GAME_OVER = "game_over"


class PlaySource(str, Enum):
    """Where a card played to the discard pile comes from."""

    HAND = "hand"
    DISPLAY = "display"


class RejectionReason(str, Enum):
    """Why an action was refused. The value is sent to clients as the error code."""

    INVALID_PLAYER = "invalid_player"
    OUT_OF_TURN = "out_of_turn"
    WRONG_PHASE = "wrong_phase"
    CARD_NOT_FOUND = "card_not_found"
    ILLEGAL_MOVE = "illegal_move"
    NO_ACTIVE_JOKER = "no_active_joker"
    AUTHORIZATION_ERROR = "authorization_error"
    ROOM_FULL = "room_full"
    NOT_ENOUGH_PLAYERS = "not_enough_players"
    MALFORMED_ACTION = "malformed_action"


@dataclass(frozen=True)
class Rejection:
    """
    A refused action. Returned instead of a new state; never raised.

    Attributes:
        reason: Machine-readable category.
        message: Human-readable description for the client.
    """

    reason: RejectionReason
    message: str

    def to_dict(self) -> dict:
        return {"code": self.reason.value, "message": self.message}


# =============================================================================
# Cards & Deck
# =============================================================================

_card_ids = itertools.count()


@dataclass(frozen=True)
class Card:
    """
    A single card. Cards never change; only the container holding them does.

    Attributes:
        id: Unique identifier (unique within the server process).
        color: One of the four colors, or Color.JOKER.
        number: 1-10, or 0 for jokers.
    """

    id: str
    color: Color
    number: int

    @property
    def is_joker(self) -> bool:
        return self.color == Color.JOKER

    def to_dict(self) -> dict:
        """Convert card to dictionary for JSON serialization."""
        return {"id": self.id, "color": self.color.value, "number": self.number}


def _new_card_id() -> str:
    return f"c{next(_card_ids)}"


def create_deck() -> list[Card]:
    """
    Build the canonical 84-card deck in a fixed order.

    Two cards for every color/number combination plus four jokers. Every call
    hands out fresh card ids.

    Returns:
        List of 84 Card objects, unshuffled.
    """
    cards: list[Card] = []
    for color in CARD_COLORS:
        for number in CARD_NUMBERS:
            for _ in range(CARDS_PER_COLOR_NUMBER):
                cards.append(Card(_new_card_id(), color, number))

    for _ in range(JOKER_COUNT):
        cards.append(Card(_new_card_id(), Color.JOKER, 0))

    return cards


def shuffle(cards: list[Card], rng: Optional[random.Random] = None) -> list[Card]:
    """
    Return a uniformly shuffled copy of the given cards.

    Args:
        cards: Cards to shuffle. Not modified.
        rng: Optional random source (for deterministic tests).

    Returns:
        New list with the same cards in random order.
    """
    shuffled = list(cards)
    (rng or random).shuffle(shuffled)
    return shuffled


# =============================================================================
# Wish, Discard Pile, Display, Player
# =============================================================================

class WishKind(str, Enum):
    COLOR = "color"
    NUMBER = "number"


@dataclass(frozen=True)
class JokerWish:
    """
    A color or number constraint placed on a joker by the player who played it.

    Exactly one of color/number is set, matching kind.
    """

    kind: WishKind
    color: Optional[Color] = None
    number: Optional[int] = None

    @classmethod
    def for_color(cls, color: Color) -> "JokerWish":
        return cls(kind=WishKind.COLOR, color=Color(color))

    @classmethod
    def for_number(cls, number: int) -> "JokerWish":
        return cls(kind=WishKind.NUMBER, number=number)

    def allows(self, card: Card) -> bool:
        """Check whether a non-joker card satisfies this wish."""
        if self.kind == WishKind.COLOR:
            return card.color == self.color
        return card.number == self.number

    def to_dict(self) -> dict:
        if self.kind == WishKind.COLOR:
            return {"type": "color", "color": self.color.value}
        return {"type": "number", "number": self.number}


@dataclass
class DiscardPile:
    """
    The discard pile.

    Only the top card is in play. Cards covered by later plays are kept in
    history so the round's cards can still be accounted for.

    Attributes:
        top_card: The visible card, or None before the first round.
        wish: Active joker wish. Always None unless top_card is a joker.
        history: Covered cards, oldest first.
    """

    top_card: Optional[Card] = None
    wish: Optional[JokerWish] = None
    history: list[Card] = field(default_factory=list)

    def copy(self) -> "DiscardPile":
        return DiscardPile(self.top_card, self.wish, list(self.history))

    def place(self, card: Card) -> None:
        """Put a card on top of the pile, covering the current top card."""
        if self.top_card is not None:
            self.history.append(self.top_card)
        self.top_card = card
        self.wish = None

    @property
    def awaiting_wish(self) -> bool:
        """A joker was played and its player has not chosen a wish yet."""
        return self.top_card is not None and self.top_card.is_joker and self.wish is None

    def to_dict(self) -> dict:
        return {
            "top_card": self.top_card.to_dict() if self.top_card else None,
            "wish": self.wish.to_dict() if self.wish else None,
        }


def _empty_stacks() -> dict[Color, list[Card]]:
    return {color: [] for color in CARD_COLORS}


@dataclass
class Display:
    """
    A player's face-up display: one stack per color, last element on top.

    All four colors are always present; an empty stack is an empty list.
    """

    stacks: dict[Color, list[Card]] = field(default_factory=_empty_stacks)

    def copy(self) -> "Display":
        return Display({color: list(stack) for color, stack in self.stacks.items()})

    def top_cards(self) -> list[Card]:
        """Top card of every non-empty stack, in color order."""
        return [self.stacks[color][-1] for color in CARD_COLORS if self.stacks[color]]

    def push(self, card: Card) -> None:
        self.stacks[card.color].append(card)

    def pop_top(self, card_id: str) -> Optional[Card]:
        """
        Remove a card if it is the top card of one of the stacks.

        Args:
            card_id: ID of the card to take.

        Returns:
            The removed Card, or None if no stack has it on top.
        """
        for color in CARD_COLORS:
            stack = self.stacks[color]
            if stack and stack[-1].id == card_id:
                return stack.pop()
        return None

    def all_cards(self) -> list[Card]:
        return [card for color in CARD_COLORS for card in self.stacks[color]]

    def points(self) -> int:
        """Sum of display card numbers (jokers never reach a display)."""
        return sum(
            JOKER_DISPLAY_VALUE if card.is_joker else card.number
            for card in self.all_cards()
        )

    def to_dict(self) -> dict:
        """Serialize non-empty stacks only, keyed by color name."""
        return {
            color.value: [card.to_dict() for card in self.stacks[color]]
            for color in CARD_COLORS
            if self.stacks[color]
        }


@dataclass
class Player:
    """
    A seated player.

    Attributes:
        id: Unique identifier (the player's connection id).
        name: Display name.
        hand: Cards in hand. Order has no rule meaning but is kept stable.
        display: Face-up per-color stacks.
        score: Cumulative score across rounds. Can be negative.
        connected: Whether the player's connection is currently open.
    """

    id: str
    name: str
    hand: list[Card] = field(default_factory=list)
    display: Display = field(default_factory=Display)
    score: int = 0
    connected: bool = True

    def copy(self) -> "Player":
        return replace(self, hand=list(self.hand), display=self.display.copy())

    def find_in_hand(self, card_id: str) -> Optional[Card]:
        for card in self.hand:
            if card.id == card_id:
                return card
        return None

    def remove_from_hand(self, card_id: str) -> Optional[Card]:
        for i, card in enumerate(self.hand):
            if card.id == card_id:
                return self.hand.pop(i)
        return None

    def hand_penalty(self) -> int:
        """Points lost for cards still in hand (jokers cost more than they are worth)."""
        return sum(JOKER_HAND_PENALTY if card.is_joker else card.number for card in self.hand)

    def round_points(self) -> int:
        return self.display.points() - self.hand_penalty()


# =============================================================================
# Game State
# =============================================================================

@dataclass
class GameState:
    """
    The full authoritative state of one room's game.

    Attributes:
        host_id: Player who created the room; only they may start/restart.
        phase: Current game phase.
        players: Seated players in turn order.
        draw_pile: Face-down cards, drawn from the front.
        discard_pile: Discard pile with optional joker wish.
        current_player_index: Seat whose turn it is.
        round_number: Rounds started in this game (0 in the lobby).
        target_score: Score that ends the game once reached.
        round_scores: Per-player points of the last finished round.
    """

    host_id: str
    phase: GamePhase = GamePhase.LOBBY
    players: list[Player] = field(default_factory=list)
    draw_pile: list[Card] = field(default_factory=list)
    discard_pile: DiscardPile = field(default_factory=DiscardPile)
    current_player_index: int = 0
    round_number: int = 0
    target_score: int = DEFAULT_TARGET_SCORE
    round_scores: dict[str, int] = field(default_factory=dict)

    def copy(self) -> "GameState":
        """Copy every mutable container. Cards are shared since they never change."""
        return replace(
            self,
            players=[p.copy() for p in self.players],
            draw_pile=list(self.draw_pile),
            discard_pile=self.discard_pile.copy(),
            round_scores=dict(self.round_scores),
        )

    def get_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def seat_of(self, player_id: str) -> int:
        """Seat index of a player, or -1 if not seated."""
        for i, player in enumerate(self.players):
            if player.id == player_id:
                return i
        return -1

    def current_player(self) -> Optional[Player]:
        if self.players:
            return self.players[self.current_player_index]
        return None

    def cards_in_play(self) -> list[Card]:
        """Every card of the current round, wherever it is."""
        cards = list(self.draw_pile)
        for player in self.players:
            cards.extend(player.hand)
            cards.extend(player.display.all_cards())
        cards.extend(self.discard_pile.history)
        if self.discard_pile.top_card is not None:
            cards.append(self.discard_pile.top_card)
        return cards


GameResult = Union[GameState, Rejection]


def create_initial_state(host_id: str, target_score: int = DEFAULT_TARGET_SCORE) -> GameState:
    """Create an empty lobby owned by the given host."""
    return GameState(host_id=host_id, target_score=target_score)


def add_player(state: GameState, player_id: str, name: str) -> GameState:
    """
    Seat a new player at the end of the turn order.

    Seat limits and phase checks are the caller's job (see room.py).
    """
    new_state = state.copy()
    new_state.players.append(Player(id=player_id, name=name))
    return new_state


def reset_scores(state: GameState) -> GameState:
    """Zero every score and the round counter for a fresh game with the same seats."""
    new_state = state.copy()
    for player in new_state.players:
        player.score = 0
    new_state.round_number = 0
    new_state.round_scores = {}
    return new_state


# =============================================================================
# Matching
# =============================================================================

def card_matches_discard(
    card: Card,
    top_card: Optional[Card],
    wish: Optional[JokerWish],
) -> bool:
    """
    Check whether a card may be played onto the discard pile.

    Matching rules, in order:
        1. Empty pile: anything goes.
        2. Jokers always match.
        3. An active wish must be satisfied (the top card itself is ignored).
        4. Otherwise same color or same number as the top card.

    A joker on top without a wish matches nothing but jokers. The engine never
    lets another play happen in that state, see _wish_pending_rejection().

    Args:
        card: Candidate card.
        top_card: Current top of the discard pile.
        wish: Active joker wish, if any.

    Returns:
        True if the card can be discarded.
    """
    if top_card is None:
        return True
    if card.is_joker:
        return True
    if wish is not None:
        return wish.allows(card)
    if top_card.is_joker:
        return False
    return card.color == top_card.color or card.number == top_card.number


@dataclass
class PlayableCards:
    """Cards a player could discard right now."""

    from_hand: list[Card] = field(default_factory=list)
    from_display: list[Card] = field(default_factory=list)

    def card_ids(self) -> list[str]:
        return [card.id for card in self.from_hand + self.from_display]


def get_playable_cards(player: Player, state: GameState) -> PlayableCards:
    """
    List the hand cards and display stack tops that match the discard pile.

    Advisory only (for UI hints); play_to_discard() checks again.
    """
    top_card = state.discard_pile.top_card
    wish = state.discard_pile.wish
    return PlayableCards(
        from_hand=[c for c in player.hand if card_matches_discard(c, top_card, wish)],
        from_display=[
            c for c in player.display.top_cards()
            if card_matches_discard(c, top_card, wish)
        ],
    )


# =============================================================================
# Turn Flow
# =============================================================================

def next_player_index(state: GameState) -> int:
    """
    Find the next connected seat after the current one.

    Walks forward once around the table. If no other seat is connected the
    turn stays where it is.
    """
    count = len(state.players)
    if count == 0:
        return state.current_player_index
    for step in range(1, count + 1):
        index = (state.current_player_index + step) % count
        if state.players[index].connected:
            return index
    return state.current_player_index


def _check_turn(state: GameState, player_id: str) -> Optional[Rejection]:
    """Shared seat/turn/phase preconditions of every in-round action."""
    seat = state.seat_of(player_id)
    if seat == -1:
        return Rejection(RejectionReason.INVALID_PLAYER, "Player not found")
    if seat != state.current_player_index:
        return Rejection(RejectionReason.OUT_OF_TURN, "Not your turn")
    if state.phase != GamePhase.PLAYING:
        return Rejection(RejectionReason.WRONG_PHASE, "Game not in progress")
    return None


def _wish_pending_rejection(state: GameState) -> Optional[Rejection]:
    if state.discard_pile.awaiting_wish:
        return Rejection(RejectionReason.ILLEGAL_MOVE, "Choose a wish for the joker first")
    return None


# =============================================================================
# Round Lifecycle
# =============================================================================

def start_round(state: GameState, rng: Optional[random.Random] = None) -> GameState:
    """
    Deal a new round.

    Shuffles a fresh deck, clears every hand and display, deals HAND_SIZE
    cards round-robin starting at seat 0, and opens the discard pile with a
    non-joker card. The first seat to act rotates with the round number.

    Args:
        state: State to start from (lobby, round_end, or reset game_over).
        rng: Optional random source (for deterministic tests).

    Returns:
        New state in the PLAYING phase.
    """
    rng = rng or random
    deck = shuffle(create_deck(), rng)

    new_state = state.copy()
    for player in new_state.players:
        player.hand = []
        player.display = Display()

    for _ in range(HAND_SIZE):
        for player in new_state.players:
            player.hand.append(deck.pop(0))

    # A joker can never open the pile: slide it back in somewhere later
    opening = deck.pop(0)
    while opening.is_joker:
        deck.insert(rng.randint(1, len(deck)), opening)
        opening = deck.pop(0)

    new_state.draw_pile = deck
    new_state.discard_pile = DiscardPile(top_card=opening)
    new_state.current_player_index = state.round_number % len(new_state.players)
    if not new_state.players[new_state.current_player_index].connected:
        new_state.current_player_index = next_player_index(new_state)
    new_state.round_number = state.round_number + 1
    new_state.round_scores = {}
    new_state.phase = GamePhase.PLAYING
    return new_state


def end_round(state: GameState) -> GameState:
    """
    Score the round and decide whether the game is over.

    Each player gains their display points minus their hand penalty. The turn
    index is left alone.

    Returns:
        New state in ROUND_END, or GAME_OVER if anyone reached the target score.
    """
    new_state = state.copy()
    new_state.round_scores = {}
    for player in new_state.players:
        points = player.round_points()
        player.score += points
        new_state.round_scores[player.id] = points

    if any(p.score >= new_state.target_score for p in new_state.players):
        new_state.phase = GamePhase.GAME_OVER
    else:
        new_state.phase = GamePhase.ROUND_END
    return new_state


def winner(state: GameState) -> Optional[Player]:
    """Highest score wins; on a tie the earliest seat."""
    if not state.players:
        return None
    return max(state.players, key=lambda p: p.score)


# =============================================================================
# Play Actions
# =============================================================================

def play_to_discard(
    state: GameState,
    player_id: str,
    card_id: str,
    source: PlaySource = PlaySource.HAND,
) -> GameResult:
    """
    Discard a card from the hand or from the top of a display stack.

    Emptying the hand ends the round. Playing a joker keeps the turn with the
    player until they choose a wish. Any other play passes the turn.

    Args:
        state: Current state.
        player_id: Acting player.
        card_id: Card to discard.
        source: Where the card comes from.

    Returns:
        New state, or a Rejection (state untouched).
    """
    rejection = _check_turn(state, player_id) or _wish_pending_rejection(state)
    if rejection:
        return rejection

    new_state = state.copy()
    player = new_state.players[new_state.current_player_index]

    if PlaySource(source) == PlaySource.HAND:
        card = player.find_in_hand(card_id)
        if card is None:
            return Rejection(RejectionReason.CARD_NOT_FOUND, "Card not in hand")
    else:
        card = next((c for c in player.display.top_cards() if c.id == card_id), None)
        if card is None:
            return Rejection(
                RejectionReason.CARD_NOT_FOUND, "Card not on top of any display stack"
            )

    pile = new_state.discard_pile
    if not card_matches_discard(card, pile.top_card, pile.wish):
        return Rejection(RejectionReason.ILLEGAL_MOVE, "Card does not match the discard pile")

    if PlaySource(source) == PlaySource.HAND:
        player.remove_from_hand(card_id)
    else:
        player.display.pop_top(card_id)
    pile.place(card)

    if not player.hand:
        return end_round(new_state)

    if not card.is_joker:
        new_state.current_player_index = next_player_index(new_state)
    return new_state


def play_to_display(state: GameState, player_id: str, card_id: str) -> GameResult:
    """
    Place a hand card on top of its color stack and draw a replacement.

    Jokers cannot be displayed. The turn always passes afterwards.

    Returns:
        New state, or a Rejection (state untouched).
    """
    rejection = _check_turn(state, player_id) or _wish_pending_rejection(state)
    if rejection:
        return rejection

    new_state = state.copy()
    player = new_state.players[new_state.current_player_index]

    card = player.find_in_hand(card_id)
    if card is None:
        return Rejection(RejectionReason.CARD_NOT_FOUND, "Card not in hand")
    if card.is_joker:
        return Rejection(RejectionReason.ILLEGAL_MOVE, "Jokers cannot be displayed")

    player.remove_from_hand(card_id)
    player.display.push(card)
    if new_state.draw_pile:
        player.hand.append(new_state.draw_pile.pop(0))

    new_state.current_player_index = next_player_index(new_state)
    return new_state


def apply_joker_wish(state: GameState, player_id: str, wish: JokerWish) -> GameResult:
    """
    Set the wish for the joker the current player just played and pass the turn.

    Returns:
        New state, or a Rejection (state untouched).
    """
    rejection = _check_turn(state, player_id)
    if rejection:
        return rejection
    if not state.discard_pile.awaiting_wish:
        return Rejection(RejectionReason.NO_ACTIVE_JOKER, "No joker on discard pile")
    if wish.color not in CARD_COLORS and wish.number not in CARD_NUMBERS:
        return Rejection(RejectionReason.ILLEGAL_MOVE, "Wish must name a color or a number")

    new_state = state.copy()
    new_state.discard_pile.wish = wish
    new_state.current_player_index = next_player_index(new_state)
    return new_state


# =============================================================================
# Projection
# =============================================================================

def to_client_state(state: GameState, viewer_id: str) -> dict:
    """
    Build the view of the game one connection is allowed to see.

    The viewer gets their own hand in full; everyone else is reduced to a hand
    count. Displays and the discard pile are public. Computed fresh on every
    call, never cached.

    Args:
        state: Authoritative state.
        viewer_id: Connection/player id of the recipient (may be unseated).

    Returns:
        JSON-serializable dict.
    """
    seat = state.seat_of(viewer_id)
    me = state.players[seat] if seat != -1 else None
    current = state.current_player()

    playable: list[str] = []
    if (
        me is not None
        and state.phase == GamePhase.PLAYING
        and seat == state.current_player_index
        and not state.discard_pile.awaiting_wish
    ):
        playable = get_playable_cards(me, state).card_ids()

    return {
        "phase": state.phase.value,
        "players": [
            {
                "id": p.id,
                "name": p.name,
                "hand_count": len(p.hand),
                "display": p.display.to_dict(),
                "score": p.score,
                "connected": p.connected,
                "is_host": p.id == state.host_id,
            }
            for p in state.players
        ],
        "my_hand": [c.to_dict() for c in me.hand] if me else [],
        "my_display": me.display.to_dict() if me else {},
        "my_player_index": seat,
        "discard_pile": state.discard_pile.to_dict(),
        "awaiting_wish": state.phase == GamePhase.PLAYING and state.discard_pile.awaiting_wish,
        "current_player_index": state.current_player_index,
        "current_player_id": current.id if current else None,
        "round_number": state.round_number,
        "target_score": state.target_score,
        "draw_pile_count": len(state.draw_pile),
        "host_id": state.host_id,
        "round_scores": dict(state.round_scores),
        "playable": playable,
    }
