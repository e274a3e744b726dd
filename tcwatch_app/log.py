import os
import sys
import json
import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

# Package-wide logger; module loggers (tcwatch_app.*) propagate here
logger = logging.getLogger("tcwatch_app")

# Structured aggregation events, one JSON object per line
event_logger = logging.getLogger("tcwatch_app.events")

_STREAM_FORMAT = '%(message)s'
_FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Attach stdout (and optional rotating file) handlers to the package logger."""
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not any(getattr(h, "_tcwatch_stream", False) for h in logger.handlers):
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(logging.Formatter(_STREAM_FORMAT))  # Keep stdout clean
        stream_handler._tcwatch_stream = True
        logger.addHandler(stream_handler)

    if log_file and not any(
        getattr(h, "baseFilename", None) == os.path.abspath(log_file) for h in logger.handlers
    ):
        file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


def log_event(event: dict) -> None:
    """Write a structured event as compact JSON."""
    try:
        event_logger.info(json.dumps(event, ensure_ascii=True, separators=(',', ':'), default=str))
    except (TypeError, ValueError) as exc:
        logger.warning(f"Event log failure: {exc}")
