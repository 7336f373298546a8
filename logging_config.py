"""Application logging, configured once at startup.

Records are written to stdout as JSON lines so the hosting platform's log
collector can index them.
"""

import json
import logging
import os
from datetime import datetime, timezone


class JsonFormatter(logging.Formatter):
    """Format log records as JSON strings."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)


def configure_logging(level: str = None) -> None:
    """Configure the root logger with a JSON console handler.

    Args:
        level: Level name such as ``INFO``. Defaults to ``LOG_LEVEL`` or INFO.
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logger = logging.getLogger()
    logger.setLevel(level)
    # Drop handlers left by basicConfig or a previous call
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(JsonFormatter())
    logger.addHandler(console_handler)
