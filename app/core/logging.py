"""Structured logging configuration for the Cognitive Structure Engine."""

import logging
import sys

# Attributes every LogRecord carries; anything else came in through `extra=`
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


class StructuredFormatter(logging.Formatter):
    """key=value formatter; fields passed via `extra=` are appended after the message."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exc"] = self.formatException(record.exc_info)

        return " ".join(f"{k}={v}" for k, v in log_data.items())


def _level_for_env() -> int:
    try:
        from app.core.config import get_settings

        settings = get_settings()
    except Exception:
        # Settings unavailable (e.g. invalid env); fall back to INFO
        return logging.INFO

    if settings.LOG_LEVEL:
        level = logging.getLevelName(settings.LOG_LEVEL.upper())
        return level if isinstance(level, int) else logging.INFO
    return logging.DEBUG if settings.ENGINE_ENV == "dev" else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Only configure if not already configured
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.setLevel(_level_for_env())

    return logger
