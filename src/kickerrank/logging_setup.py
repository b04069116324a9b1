"""
Logging configuration for kickerrank.

Modules log through ``logging.getLogger(__name__)``; this applies the level
and format from settings to the ``kickerrank`` logger tree. Call it once from
whatever process hosts the core.

Usage:
    from kickerrank.logging_setup import configure_logging
    configure_logging()
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from kickerrank.config import Settings, settings as default_settings

CONSOLE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_HANDLER_NAME = "kickerrank"


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(config: Optional[Settings] = None) -> logging.Logger:
    """
    Attach a single stream handler to the ``kickerrank`` logger.

    Calling it again replaces the handler instead of stacking a second one.

    Returns:
        The configured package logger
    """
    config = config or default_settings
    logger = logging.getLogger("kickerrank")
    logger.setLevel(config.log_level)

    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    if config.log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(handler)
    return logger
