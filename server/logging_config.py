"""
Logging setup for the Passt Nicht server.

Two output formats share one notion of context:
- JSONFormatter, one object per line, used when ENVIRONMENT=production
- DevelopmentFormatter, coloured single lines for a terminal

Context comes from two places. The WebSocket endpoint sets room_code_var and
connection_id_var for the lifetime of a connection, so anything logged while
handling that socket is tagged automatically. Room objects log through a
RoomLogger that carries the room code (and optionally a player id) as extras,
which covers code running outside a connection, like the idle-room reaper.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

room_code_var: ContextVar[Optional[str]] = ContextVar("room_code", default=None)
connection_id_var: ContextVar[Optional[str]] = ContextVar("connection_id", default=None)

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("uvicorn.access", "websockets", "asyncio")


def record_context(record: logging.LogRecord) -> dict[str, str]:
    """
    Collect room/connection/player tags for a record.

    Explicit extras on the record win over the connection-scoped context vars.
    """
    context = {}
    room_code = getattr(record, "room_code", None) or room_code_var.get()
    if room_code:
        context["room_code"] = room_code
    connection_id = connection_id_var.get()
    if connection_id:
        context["connection_id"] = connection_id
    player_id = getattr(record, "player_id", None)
    if player_id:
        context["player_id"] = player_id
    return context


class JSONFormatter(logging.Formatter):
    """Machine-readable log lines for production log collection."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_context(record),
        }

        if record.levelno >= logging.ERROR:
            entry["source"] = f"{record.pathname}:{record.lineno} in {record.funcName}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """
    Coloured output for local runs.

    Ids are shortened to 8 characters; player ids are usually uuid4 strings.
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    SHORT_NAMES = {"room_code": "room", "connection_id": "conn", "player_id": "player"}

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""
        clock = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        tags = ", ".join(
            f"{self.SHORT_NAMES[key]}={value[:8]}"
            for key, value in record_context(record).items()
        )
        tags = f" [{tags}]" if tags else ""

        line = f"{clock} {color}{record.levelname:8}{reset} {record.name}{tags} - {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """
    Install a single stdout handler on the root logger.

    Args:
        level: Log level name; unknown names fall back to INFO.
        environment: "production" selects JSON output.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if environment == "production" else DevelopmentFormatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level}, environment={environment}")


class RoomLogger(logging.LoggerAdapter):
    """
    Logger adapter that tags every record with a fixed room code.

    Usage:
        log = RoomLogger.for_room(__name__, "ABCD")
        log.info("Round dealt", extra={"player_id": host_id})
    """

    @classmethod
    def for_room(cls, name: str, room_code: str) -> "RoomLogger":
        return cls(logging.getLogger(name), {"room_code": room_code})

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        # Per-call extras (player_id) are merged on top of the room code
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs
