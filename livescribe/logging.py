"""Logging helpers for the livescribe project."""

from __future__ import annotations

import logging
from typing import Optional, Union

_LOGGER_CONFIGURED = False


def configure_logging(level: Union[int, str] = logging.INFO, force: bool = False) -> None:
    """Configure basic logging once for the application."""

    global _LOGGER_CONFIGURED
    if _LOGGER_CONFIGURED and not force:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        force=force,
    )
    _LOGGER_CONFIGURED = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Convenience helper that ensures logging is configured."""

    configure_logging()
    return logging.getLogger(name or "livescribe")


__all__ = ["configure_logging", "get_logger"]
