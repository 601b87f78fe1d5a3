"""Logging setup for the ``circle_sync`` logger tree."""

import logging
import sys

LOGGER_NAME = "circle_sync"
HANDLER_NAME = "circle_sync.stdout"
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
# transport chatter, only useful when debugging the remote adapters
NOISY_LOGGERS = ("httpx", "httpcore")


def resolve_level(level: int | str) -> int:
    """Turn ``"debug"``/``"INFO"``/``10`` into a logging level; unknown names mean INFO."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Configure the ``circle_sync`` logger and return it.

    The stdout handler is attached once; calling again only changes the
    level.  At DEBUG the httpx request log is let through as well.
    """
    logger = logging.getLogger(LOGGER_NAME)
    resolved = resolve_level(level)
    logger.setLevel(resolved)
    if not any(h.get_name() == HANDLER_NAME for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    noisy_level = logging.DEBUG if resolved <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)
    return logger
