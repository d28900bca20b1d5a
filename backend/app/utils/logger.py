"""
Structured logging for the FanForge review backend.

- JSONFormatter: one JSON object per record, carrying any ``extra`` context
- StandardFormatter: readable single-line output for local development
- setup_logging: configures the root and uvicorn loggers once at startup
- add_log_context: binds fields such as submission_id to every record of a
  logger, used by background IP registration so its outcome can be traced
  back to the approval that triggered it

Usage:
    from app.utils.logger import setup_logging, add_log_context

    setup_logging(log_level="info", json_logs=True)

    log = add_log_context(logging.getLogger(__name__), submission_id="sub_01")
    log.info("Registration dispatched")
"""

import json
import logging
import sys
import traceback

from datetime import UTC, datetime
from typing import Any


LOG_LEVEL_MAP: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Quieted to third_party_level so request-level chatter stays out of app logs.
THIRD_PARTY_LOGGERS: list[str] = [
    "motor",
    "pymongo",
    "urllib3",
    "httpx",
    "httpcore",
    "redis",
    "asyncio",
]


class LogJSONEncoder(json.JSONEncoder):
    """Serializes anything a log record may carry, falling back to str()."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, bytes):
            return obj.decode("utf-8", errors="replace")
        if isinstance(obj, set | frozenset):
            return sorted(obj, key=str)
        return str(obj)


class JSONFormatter(logging.Formatter):
    """
    Formats records as compact JSON.

    Example output:
        {"timestamp": "2026-01-15T10:30:45.123456+00:00", "level": "WARNING",
         "logger": "app.services.review_service",
         "message": "Background IP registration failed",
         "extra": {"submission_id": "sub_01", "reason": "Registry request timed out"}}
    """

    # LogRecord attributes that are not user context
    RESERVED_ATTRS: frozenset[str] = frozenset(
        {
            "args",
            "asctime",
            "created",
            "exc_info",
            "exc_text",
            "filename",
            "funcName",
            "levelname",
            "levelno",
            "lineno",
            "message",
            "module",
            "msecs",
            "msg",
            "name",
            "pathname",
            "process",
            "processName",
            "relativeCreated",
            "stack_info",
            "thread",
            "threadName",
            "taskName",
        }
    )

    def __init__(self, include_source_location: bool = False) -> None:
        super().__init__()
        self.include_source_location = include_source_location

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(
                timespec="microseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_source_location:
            log_entry["source"] = {
                "filename": record.filename,
                "lineno": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if not key.startswith("_") and key not in self.RESERVED_ATTRS
        }
        if extra:
            log_entry["extra"] = extra

        return json.dumps(log_entry, cls=LogJSONEncoder, ensure_ascii=False, separators=(",", ":"))


class StandardFormatter(logging.Formatter):
    """Human-readable format: [TIMESTAMP] LEVEL logger: message"""

    DEFAULT_FORMAT: str = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
    DEFAULT_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    def __init__(self) -> None:
        super().__init__(fmt=self.DEFAULT_FORMAT, datefmt=self.DEFAULT_DATE_FORMAT)


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    third_party_level: str = "WARNING",
) -> None:
    """
    Configure application-wide logging.

    Call once at startup. Replaces root handlers, routes uvicorn's loggers
    through the same formatter, and lowers third-party verbosity.

    Args:
        log_level: Application log level name (case-insensitive)
        json_logs: JSON output when True, plain text otherwise
        third_party_level: Level applied to THIRD_PARTY_LOGGERS
    """
    level = LOG_LEVEL_MAP.get(log_level.upper(), logging.INFO)

    formatter: logging.Formatter
    if json_logs:
        formatter = JSONFormatter(include_source_location=level <= logging.DEBUG)
    else:
        formatter = StandardFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    _configure_uvicorn_logging(formatter, level)

    third_party_log_level = LOG_LEVEL_MAP.get(third_party_level.upper(), logging.WARNING)
    for logger_name in THIRD_PARTY_LOGGERS:
        logging.getLogger(logger_name).setLevel(third_party_log_level)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, json=%s", logging.getLevelName(level), json_logs
    )


def _configure_uvicorn_logging(formatter: logging.Formatter, level: int) -> None:
    """Give uvicorn's loggers our formatter; errors go to stderr."""
    for name, stream in (
        ("uvicorn", sys.stdout),
        ("uvicorn.access", sys.stdout),
        ("uvicorn.error", sys.stderr),
    ):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = False
        uvicorn_logger.handlers.clear()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(formatter)
        uvicorn_logger.addHandler(handler)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    LoggerAdapter that merges its context into each call's ``extra``.

    Values passed explicitly in ``extra`` win over the bound context.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def add_log_context(logger: logging.Logger, **context: Any) -> ContextLoggerAdapter:
    """
    Bind context fields to every record emitted through the returned adapter.

    Example:
        log = add_log_context(logger, submission_id="sub_01", reviewer_id="u_9")
        log.warning("Registration failed", extra={"reason": result.error})
    """
    return ContextLoggerAdapter(logger, context)


__all__ = [
    "LOG_LEVEL_MAP",
    "ContextLoggerAdapter",
    "JSONFormatter",
    "StandardFormatter",
    "add_log_context",
    "setup_logging",
]
