"""Structured logging configuration.

Plain text lines by default, one JSON object per line when LOG_JSON is set.
Modules attach structured context with ``extra={"extra_fields": {...}}``;
the JSON formatter merges those keys into the emitted object.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from beststories import __version__
from beststories.utils.config import get_settings

# Request-level chatter from the HTTP stack, kept at WARNING or above
_QUIET_LOGGERS = ("httpx", "httpcore")


class JsonFormatter(logging.Formatter):
    """One JSON object per record, tagged with the service identity."""

    def __init__(self) -> None:
        super().__init__()
        settings = get_settings()
        self._service = {
            "app_name": settings.APP_NAME,
            "environment": settings.ENVIRONMENT,
            "version": __version__,
        }

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return created.strftime("%Y-%m-%dT%H:%M:%S.") + f"{int(record.msecs):03d}Z"

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            **self._service,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            log_data.update(extra_fields)

        # Cached stories carry datetimes
        return json.dumps(log_data, default=str)


class StandardFormatter(logging.Formatter):
    """Human readable ``[time] LEVEL - logger - message`` lines."""

    def __init__(self) -> None:
        super().__init__(
            fmt="[%(asctime)s] %(levelname)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


_logging_configured = False


def setup_logging(
    use_json: Optional[bool] = None,
    level: Optional[str] = None,
    force_reconfigure: bool = False,
) -> None:
    """
    Configure root logging to stdout.

    Safe to call repeatedly: only the handler installed here is replaced,
    handlers added by others (pytest's caplog, uvicorn) are left alone.

    Args:
        use_json: JSON lines if True, text if False, LOG_JSON setting if None
        level: Level name overriding LOG_LEVEL
        force_reconfigure: Apply again even if logging is already configured
    """
    global _logging_configured

    if _logging_configured and not force_reconfigure:
        return

    settings = get_settings()
    if use_json is None:
        use_json = settings.LOG_JSON
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        raise ValueError(f"Unknown log level: {level}")

    root_logger = logging.getLogger()
    for handler in [
        h for h in root_logger.handlers
        if isinstance(h, logging.StreamHandler) and h.stream == sys.stdout
    ]:
        root_logger.removeHandler(handler)

    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(JsonFormatter() if use_json else StandardFormatter())
    root_logger.addHandler(console_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    _logging_configured = True

    logging.getLogger(__name__).debug(
        "Logging configured: level=%s, format=%s", level_name, "json" if use_json else "standard"
    )


def get_logger(name: str) -> logging.Logger:
    """Get a named logger, configuring logging on first use."""
    if not _logging_configured:
        setup_logging()

    return logging.getLogger(name)


def reset_logging() -> None:
    """Drop all root handlers and forget the configuration. Used by tests."""
    global _logging_configured

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.WARNING)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET)

    _logging_configured = False
