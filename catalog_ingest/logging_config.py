"""Logging setup for catalog ingestion.

Console output as text or one JSON object per line, plus an optional file
handler. Module code only ever calls logging.getLogger(__name__).
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

__all__ = ["JsonFormatter", "setup_logging", "setup_logging_from_settings", "LOGGER_NAME"]

LOGGER_NAME = "catalog_ingest"

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# LogRecord attributes that are not user-supplied `extra` fields
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Structured JSONL records: timestamp, level, logger, message + extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Configure the package logger.

    Args:
        level: Level name (DEBUG, INFO, ...)
        log_format: "json" or "text"
        log_file: Optional path that receives the same records

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    formatter: logging.Formatter
    if log_format == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def setup_logging_from_settings(settings: Any) -> logging.Logger:
    return setup_logging(settings.log_level, settings.log_format, settings.log_file)
