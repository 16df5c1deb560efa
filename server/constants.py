"""
Card and rule constants for Passt Nicht.

This module is the single source of truth for deck composition and scoring
numbers used by game.py. Rule numbers can be customized via environment
variables, see config.py.

Scoring at round end:
    - Display cards: + their number
    - Hand cards: - their number
    - Joker in hand: -5 (an unplayed joker costs more than a 5 card is worth)
"""

from config import config


# =============================================================================
# Deck Composition
# =============================================================================

CARD_NUMBERS: tuple[int, ...] = tuple(range(1, 11))
CARDS_PER_COLOR_NUMBER: int = 2
JOKER_COUNT: int = 4
DECK_SIZE: int = 4 * len(CARD_NUMBERS) * CARDS_PER_COLOR_NUMBER + JOKER_COUNT  # 84


# =============================================================================
# Rules
# =============================================================================

HAND_SIZE: int = config.rules.hand_size
DEFAULT_TARGET_SCORE: int = config.rules.target_score
JOKER_HAND_PENALTY: int = config.rules.joker_hand_penalty
JOKER_DISPLAY_VALUE: int = config.rules.joker_display_value

MAX_PLAYERS: int = config.MAX_PLAYERS_PER_ROOM
MIN_PLAYERS: int = config.MIN_PLAYERS_TO_START
ROOM_CODE_LENGTH: int = config.ROOM_CODE_LENGTH
ROOM_TIMEOUT_MINUTES: int = config.ROOM_TIMEOUT_MINUTES
