"""Structured logging utilities."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from housing.utils.config import get_settings


AUDIT_CHANNEL = "housing.audit"

_LOGGER_INITIALIZED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Configure process-wide logging once.

    The audit channel is kept at WARNING or louder regardless of the root
    level so that dropped audit writes are always visible to operators.
    """

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    settings = get_settings()
    resolved_level = (level or settings.log_level).upper()

    logging.basicConfig(
        level=resolved_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    audit_logger = logging.getLogger(AUDIT_CHANNEL)
    if audit_logger.getEffectiveLevel() > logging.WARNING:
        audit_logger.setLevel(logging.WARNING)
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger for the requested module."""
    configure_logging()
    return logging.getLogger(name)


def get_audit_logger() -> logging.Logger:
    """Return the side channel that reports audit-trail write failures."""
    return get_logger(AUDIT_CHANNEL)
