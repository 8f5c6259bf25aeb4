"""Structured logging utilities."""

from .events import (
    LEVEL_ERROR,
    LEVEL_INFO,
    LEVEL_WARNING,
    BuildEvent,
    JsonlEventLog,
    make_event,
    utc_timestamp,
)

__all__ = [
    "BuildEvent",
    "JsonlEventLog",
    "LEVEL_ERROR",
    "LEVEL_INFO",
    "LEVEL_WARNING",
    "make_event",
    "utc_timestamp",
]
