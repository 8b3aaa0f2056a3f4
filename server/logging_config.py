"""
Logging setup for the Crazy Eights server.

Production logs are one JSON object per line; development logs are coloured
single lines. Both carry whatever connection, game, session and player
context is known for the record, taken from explicit ``extra`` fields first
and from the context variables set by the WebSocket loop otherwise.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

# Set per connection by main.websocket_endpoint
connection_id_var: ContextVar[Optional[str]] = ContextVar("connection_id", default=None)
game_id_var: ContextVar[Optional[str]] = ContextVar("game_id", default=None)
player_id_var: ContextVar[Optional[int]] = ContextVar("player_id", default=None)

CONTEXT_FIELDS = ("connection_id", "game_id", "session_code", "player_id")

NOISY_LOGGERS = ("uvicorn.access", "uvicorn.error", "websockets", "asyncio")


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Collect the context fields known for a record, skipping unset ones."""
    context = {
        "connection_id": connection_id_var.get(),
        "game_id": game_id_var.get(),
        "player_id": player_id_var.get(),
    }
    for key in CONTEXT_FIELDS:
        value = getattr(record, key, None)
        if value is not None and value != "":
            context[key] = value
    return {k: v for k, v in context.items() if v is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(record_context(record))

        if record.levelno >= logging.ERROR:
            entry["source"] = f"{record.pathname}:{record.lineno} in {record.funcName}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Coloured single-line output for a terminal."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        level = f"{color}{record.levelname:8}{self.RESET if color else ''}"

        context = record_context(record)
        tags = []
        if "game_id" in context:
            tags.append(f"game={str(context['game_id'])[:8]}")
        if "session_code" in context:
            tags.append(f"session={context['session_code']}")
        if "player_id" in context:
            tags.append(f"player={context['player_id']}")
        where = f" [{', '.join(tags)}]" if tags else ""

        clock = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        line = f"{clock} {level} {record.name}{where} - {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """
    Install a stdout handler on the root logger.

    Args:
        level: Level name; unknown names fall back to INFO.
        environment: "production" selects JSON output.
    """
    formatter = JSONFormatter() if environment == "production" else DevelopmentFormatter()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level}, environment={environment}")


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that adds fixed context to every record.

    Usage:
        log = get_logger(__name__).with_context(session_code="ABCD")
        log.info("Card played")
    """

    def __init__(self, logger: logging.Logger, extra: Optional[dict] = None):
        super().__init__(logger, extra or {})

    def with_context(self, **kwargs) -> "ContextLogger":
        """Return a new adapter with kwargs added to the context."""
        return ContextLogger(self.logger, {**self.extra, **kwargs})

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        # Per-call extra wins over the adapter's context
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name))
