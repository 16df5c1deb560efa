"""
Settings for the Passt Nicht server.

Values are resolved once at import, first match wins:
1. Process environment
2. A .env file at the repository root
3. The dataclass defaults below

Usage:
    from config import config
    uvicorn.run(app, host=config.HOST, port=config.PORT)
    deal(config.rules.hand_size)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_FILE = Path(__file__).parent.parent / ".env"
if ENV_FILE.exists():
    load_dotenv(ENV_FILE)

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Read a yes/no flag; anything unrecognised means the default."""
    raw = os.environ.get(key, "").strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Read an integer; a value that does not parse means the default."""
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {key}={raw!r}, using {default}")
        return default


@dataclass
class GameRules:
    """Numbers the rule engine deals and scores with."""
    hand_size: int = 5
    target_score: int = 50
    joker_hand_penalty: int = 5   # cost of a joker still in hand at round end
    joker_display_value: int = 0  # jokers cannot be displayed, kept for scoring symmetry

    @classmethod
    def from_env(cls) -> "GameRules":
        return cls(
            hand_size=get_env_int("HAND_SIZE", cls.hand_size),
            target_score=get_env_int("TARGET_SCORE", cls.target_score),
            joker_hand_penalty=get_env_int("JOKER_HAND_PENALTY", cls.joker_hand_penalty),
            joker_display_value=get_env_int("JOKER_DISPLAY_VALUE", cls.joker_display_value),
        )


@dataclass
class ServerConfig:
    """Process-wide settings: network, logging, room limits and rules."""
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    MAX_PLAYERS_PER_ROOM: int = 6
    MIN_PLAYERS_TO_START: int = 2
    ROOM_CODE_LENGTH: int = 4
    ROOM_TIMEOUT_MINUTES: int = 60

    rules: GameRules = field(default_factory=GameRules)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        settings = cls(
            HOST=get_env("HOST", cls.HOST),
            PORT=get_env_int("PORT", cls.PORT),
            DEBUG=get_env_bool("DEBUG", cls.DEBUG),
            LOG_LEVEL=get_env("LOG_LEVEL", cls.LOG_LEVEL),
            ENVIRONMENT=get_env("ENVIRONMENT", cls.ENVIRONMENT),
            MAX_PLAYERS_PER_ROOM=get_env_int("MAX_PLAYERS_PER_ROOM", cls.MAX_PLAYERS_PER_ROOM),
            MIN_PLAYERS_TO_START=get_env_int("MIN_PLAYERS_TO_START", cls.MIN_PLAYERS_TO_START),
            ROOM_CODE_LENGTH=get_env_int("ROOM_CODE_LENGTH", cls.ROOM_CODE_LENGTH),
            ROOM_TIMEOUT_MINUTES=get_env_int("ROOM_TIMEOUT_MINUTES", cls.ROOM_TIMEOUT_MINUTES),
            rules=GameRules.from_env(),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Reject combinations that would make a room unplayable."""
        if self.MIN_PLAYERS_TO_START < 2:
            raise ValueError("MIN_PLAYERS_TO_START must be at least 2")
        if self.MAX_PLAYERS_PER_ROOM < self.MIN_PLAYERS_TO_START:
            raise ValueError("MAX_PLAYERS_PER_ROOM must not be below MIN_PLAYERS_TO_START")
        # 84 cards, one opens the discard pile
        if self.rules.hand_size < 1 or self.rules.hand_size * self.MAX_PLAYERS_PER_ROOM > 83:
            raise ValueError("HAND_SIZE does not fit the deck for MAX_PLAYERS_PER_ROOM seats")


config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Re-read the environment. Modules that copied values at import keep the old ones."""
    global config
    config = ServerConfig.from_env()
    return config
