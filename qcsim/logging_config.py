# qcsim/logging_config.py
from __future__ import annotations

import logging

from qcsim.settings import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str | int | None = None) -> logging.Logger:
    """
    Configure root logging once and return the package logger.

    The level defaults to settings.LOG_LEVEL. Calling this again only
    adjusts the level; handlers installed by the host program are kept.
    """
    if level is None:
        level = get_settings().LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger = logging.getLogger("qcsim")
    logger.setLevel(level)
    return logger
