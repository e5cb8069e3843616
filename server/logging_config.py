"""
Logging setup for the Scramble tracker server.

Two output styles share one notion of context:
- production: one JSON object per line, context as top-level keys
- development: a coloured single line with a short [key=value] tag

Context comes from two places. The request middleware sets request_id_var
and user_id_var for everything logged while a request is handled; the
session controller binds game_id and hole on its logger through
ContextLogger.with_context().
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

# Set per request by middleware.context.RequestContextMiddleware
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)

# Record attributes that count as context, with their short development tag.
# Order is the order they appear in output.
CONTEXT_TAGS = {
    "request_id": "req",
    "user_id": "user",
    "game_id": "game",
    "hole": "hole",
    "player_id": "player",
}

# Ids are cut to this many characters in development output
_SHORT_ID = 8


def collect_context(record: logging.LogRecord) -> dict:
    """
    Context for one record.

    Values bound on the record win over the request-scoped context vars.
    Keys with no value are left out.
    """
    context = {
        "request_id": request_id_var.get(),
        "user_id": user_id_var.get(),
    }
    for name in CONTEXT_TAGS:
        value = getattr(record, name, None)
        if value is not None:
            context[name] = value
    return {name: context[name] for name in CONTEXT_TAGS if context.get(name) is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shipping in production."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(collect_context(record))

        # Failures point back at the code that logged them
        if record.levelno >= logging.ERROR:
            entry["source"] = f"{record.pathname}:{record.lineno} in {record.funcName}"

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """
    Compact coloured output for a terminal.

    Example:
        14:02:11.532 INFO     session [req=3f2a9c1d, game=8e4b0a77, hole=3] - Hole 3 finalized
    """

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",     # cyan
        logging.INFO: "\033[32m",      # green
        logging.WARNING: "\033[33m",   # yellow
        logging.ERROR: "\033[31m",     # red
        logging.CRITICAL: "\033[35m",  # magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        level = f"{color}{record.levelname:8}{self.RESET if color else ''}"
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]

        tags = []
        for name, value in collect_context(record).items():
            text = str(value)
            # Hole numbers stay whole; ids are shortened
            if name != "hole":
                text = text[:_SHORT_ID]
            tags.append(f"{CONTEXT_TAGS[name]}={text}")
        tag = f" [{', '.join(tags)}]" if tags else ""

        line = f"{clock} {level} {record.name}{tag} - {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """
    Install the stdout handler on the root logger.

    Args:
        level: Root log level name; unknown names fall back to INFO.
        environment: "production" selects JSON output.
    """
    handler = logging.StreamHandler(sys.stdout)
    if environment == "production":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Per-request access lines and HTTP client chatter
    for noisy in ("uvicorn.access", "httpx", "httpcore", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging ready: level={level}, environment={environment}")


class ContextLogger(logging.LoggerAdapter):
    """
    Logger that stamps bound context onto every record.

    Usage:
        log = get_logger(__name__).with_context(game_id=session.id)
        log.with_context(hole=3).info("Hole finalized")
    """

    def __init__(self, logger: logging.Logger, extra: Optional[dict] = None):
        """
        Args:
            logger: Underlying logger.
            extra: Context attached to every record from this adapter.
        """
        super().__init__(logger, extra or {})

    def with_context(self, **context) -> "ContextLogger":
        """A new adapter with this one's context plus the given keys."""
        return ContextLogger(self.logger, {**self.extra, **context})

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        # Call-site extra overrides bound context
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    """ContextLogger for a module (pass __name__)."""
    return ContextLogger(logging.getLogger(name))
