"""Loguru sink configuration for the vidflow services."""

import sys

from loguru import logger

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level> | {extra}"
)


def configure_logging(level: str = "INFO", serialize: bool = False) -> None:
    """Install a single stderr sink.

    Existing sinks are removed first so repeated calls (tests, app reloads)
    don't duplicate output.

    Args:
        level: Minimum level name (e.g. "DEBUG", "INFO")
        serialize: Emit one JSON document per record, for Cloud Logging
    """
    logger.remove()
    _ = logger.add(
        sys.stderr,
        level=level.upper(),
        format=_FORMAT,
        serialize=serialize,
        backtrace=False,
        diagnose=False,
    )
    logger.info(f"Logging initialized at level {level.upper()}")
