"""Logging setup.

Engine modules log through the ``logger`` exported here. Logging is disabled
until ``setup_logging`` is called.
"""

from __future__ import annotations

import sys

from loguru import logger

from .config import settings


DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level:<8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

logger.disable("dice_engine")


def setup_logging(level: str | None = None, colorize: bool = True) -> None:
    """Send dice engine logs to stderr.

    Args:
        level: Minimum level (DEBUG, INFO, WARNING, ...). Defaults to
            ``Settings.log_level``.
        colorize: Whether to emit ANSI colors.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.log_level).upper(),
        format=DEFAULT_FORMAT,
        colorize=colorize,
    )
    logger.enable("dice_engine")
