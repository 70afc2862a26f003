"""
Structured JSON logging module.

Usage:
    from ig_mcp_server.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("Adding tool", extra={"image": "trace_dns:latest", "tool": "trace_dns"})

Logs go to stderr: the stdio transport owns stdout.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from ig_mcp_server.errors import ConfigurationError

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_configured: list[logging.Logger] = []


class JSONFormatter(logging.Formatter):
    """Formats log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in ("component", "image", "tool", "gadget_id", "tools_count",
                    "namespace", "release", "error", "duration_ms", "extra"):
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def parse_log_level(level: str) -> int:
    """Map a level name (debug, info, warn, error) to a logging level."""
    try:
        return _LEVELS[level.strip().lower()]
    except KeyError:
        raise ConfigurationError(f"invalid log level: {level}") from None


def get_logger(name: str) -> logging.Logger:
    """Get a logger with JSON formatting.

    The initial level comes from the LOG_LEVEL environment variable (default: INFO);
    configure_logging() overrides it for every logger handed out here.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        level = os.environ.get("LOG_LEVEL", "INFO").upper()
        logger.setLevel(getattr(logging, level, logging.INFO))
        logger.propagate = False
        _configured.append(logger)

    return logger


def configure_logging(level: str) -> None:
    """Apply a log level to all loggers created by get_logger()."""
    resolved = parse_log_level(level)
    for logger in _configured:
        logger.setLevel(resolved)
