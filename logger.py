"""
logger.py
Logging setup shared by the app and its services.
"""

from __future__ import annotations

import logging
import sys

_HANDLER_NAME = "gym-stdout"


def setup_logger(name: str = "gym", level: str | None = None) -> logging.Logger:
    """
    Install one stdout handler on the root logger and return the `name` logger.
    Module loggers (logging.getLogger(__name__)) and `name` both propagate to
    root, so every record is printed once. Safe to call on every Streamlit rerun.
    """
    if level is None:
        from config import settings

        level = settings.log_level

    log_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(log_level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
    root.setLevel(log_level)

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    return logger
