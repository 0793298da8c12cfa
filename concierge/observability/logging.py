"""Process-wide logging setup.

Every module calls get_logger(__name__). The first call attaches one stream
handler to the root logger; the level comes from CONCIERGE_LOG_LEVEL and is
re-read on each call so tests can change it with monkeypatch.
"""

from __future__ import annotations

import logging
import os
from typing import Final

_HANDLER_ATTACHED: bool = False
_FORMAT: Final[str] = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"

# Client libraries that log every request at INFO
_NOISY_LOGGERS: Final[tuple[str, ...]] = ("urllib3", "google.auth", "httpx", "httpcore")


def _resolve_level() -> int:
    level_name = os.getenv("CONCIERGE_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _attach_handler(level: int) -> None:
    global _HANDLER_ATTACHED

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    _HANDLER_ATTACHED = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; the shared handler is attached on first use."""
    level = _resolve_level()

    if not _HANDLER_ATTACHED:
        _attach_handler(level)
    else:
        logging.getLogger().setLevel(level)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
